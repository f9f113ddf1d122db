"""Pydantic models tracking one user's dialogue state across turns."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from listings.schema import Offer, OfferType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    COLLECTING = "collecting"
    COLLECTING_CONTACT = "collecting_info"
    READY = "ready"


class RequestKind(str, Enum):
    PURCHASE = "purchase"
    RENTAL = "rental"


class Language(str, Enum):
    FR = "fr"
    EN = "en"


# Intent slots that must all be known before a search runs
REQUIRED_SLOTS = ("service", "town", "budget", "offer_type")


class SlotExtraction(BaseModel):
    """One turn's intent slots as read by the NLU. ``None`` means "not found"."""

    service: Optional[str] = None
    town: Optional[str] = None
    budget: Optional[float] = None
    offer_type: Optional[OfferType] = None
    language: Optional[Language] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class ContactExtraction(BaseModel):
    """Contact fields read from one free-text answer."""

    name: Optional[str] = None
    surname: Optional[str] = None
    current_city: Optional[str] = None
    email: Optional[str] = None
    number_of_days: Optional[int] = None
    start_date: Optional[str] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class ContactInfo(BaseModel):
    """Contact record populated incrementally during the contact sub-dialogue.

    ``name`` is the first name, ``surname`` the family name. The rental-only
    fields (email, number_of_days, start_date) are only asked for rentals.
    """

    name: Optional[str] = None
    surname: Optional[str] = None
    phone: Optional[str] = None
    current_city: Optional[str] = None
    email: Optional[str] = None
    number_of_days: Optional[int] = None
    start_date: Optional[str] = None

    def merge(self, extraction: ContactExtraction) -> list[str]:
        """Copy non-null extracted fields over; known fields are never cleared.

        Returns the names of fields whose value changed.
        """
        changed = []
        for field, value in extraction.model_dump().items():
            if value is None:
                continue
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed.append(field)
        return changed


class OfferSnapshot(BaseModel):
    """Copy of the selected offer's matched fields at selection time."""

    id: int
    offer_type: OfferType
    name: str = ""
    category: str = ""
    description: str = ""
    price: Optional[float] = None
    town: str = ""

    @classmethod
    def from_offer(cls, offer: Offer, offer_type: OfferType, language: str = "fr") -> "OfferSnapshot":
        return cls(
            id=offer.id,
            offer_type=offer_type,
            name=offer.display_name(language),
            category=offer.category_fr,
            description=offer.description,
            price=offer.price,
            town=offer.town(language),
        )


class Session(BaseModel):
    """Mutable dialogue state for a single user (keyed by sender id).

    Fields are populated progressively as the assistant learns the user's
    intent, proposes offers and collects contact details.
    """

    user_id: str

    # Intent slots
    service: Optional[str] = None
    town: Optional[str] = None
    budget: Optional[float] = None
    offer_type: Optional[OfferType] = None
    language: Optional[Language] = None

    status: SessionStatus = SessionStatus.COLLECTING

    # Most recent proposal batch, index-aligned with what the user saw
    last_proposed_offer_ids: list[int] = Field(default_factory=list)

    # Selection + contact sub-dialogue
    selected_offer_id: Optional[int] = None
    selected_offer_snapshot: Optional[OfferSnapshot] = None
    request_kind: Optional[RequestKind] = None
    contact_info: ContactInfo = Field(default_factory=ContactInfo)

    last_updated: datetime = Field(default_factory=utcnow)

    def reply_language(self, default: str = Language.FR.value) -> str:
        """Detected language, or ``default`` while none was detected."""
        return self.language.value if self.language else default

    def merge_slots(self, extraction: SlotExtraction) -> list[str]:
        """Additively merge extracted slots; known slots are never cleared.

        Returns the names of slots whose value changed.
        """
        changed = []
        for field, value in extraction.model_dump().items():
            if value is None:
                continue
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed.append(field)
        return changed

    def missing_slots(self) -> list[str]:
        return [slot for slot in REQUIRED_SLOTS if not getattr(self, slot)]

    @property
    def slots_complete(self) -> bool:
        return not self.missing_slots()

    def fields(self, *names: str) -> dict[str, Any]:
        """Current values of the named fields, for a field-level store update."""
        return {name: getattr(self, name) for name in names}
