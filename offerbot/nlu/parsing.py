"""Strict decoding of structured NLU output.

The completion backend is asked for a small JSON object. The reply may wrap
it in a fenced block or surround it with prose, so the object is located
first and then validated against a wire schema. Every field is optional with
``None`` as the explicit "not found" sentinel; values the schema cannot make
sense of become ``None`` instead of failing the whole object.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from listings.schema import OfferType
from offerbot.models.session import ContactExtraction, Language, SlotExtraction

_NULL_STRINGS = {"", "null", "none", "unknown", "n/a", "na", "nil", "inconnu", "-"}

_OFFER_TYPE_SYNONYMS = {
    "vehicle": OfferType.VEHICLE,
    "vehicule": OfferType.VEHICLE,
    "véhicule": OfferType.VEHICLE,
    "voiture": OfferType.VEHICLE,
    "car": OfferType.VEHICLE,
    "auto": OfferType.VEHICLE,
    "property": OfferType.PROPERTY,
    "immobilier": OfferType.PROPERTY,
    "real estate": OfferType.PROPERTY,
    "real_estate": OfferType.PROPERTY,
    "realestate": OfferType.PROPERTY,
    "housing": OfferType.PROPERTY,
    "logement": OfferType.PROPERTY,
}

_LANGUAGE_SYNONYMS = {
    "fr": Language.FR,
    "french": Language.FR,
    "français": Language.FR,
    "francais": Language.FR,
    "en": Language.EN,
    "english": Language.EN,
    "anglais": Language.EN,
}

_EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$")


def extract_json_object(text: str) -> dict | None:
    """Locate the first JSON object in a completion.

    Tries a fenced ```json block first, then a bare object spanning the whole
    reply, then any single line that is an object. Returns the parsed dict,
    or None if no object is found.
    """
    if not text:
        return None

    pattern = r"```(?:json)?\s*\n?({.*?})\s*\n?```"
    match = re.search(pattern, text, re.DOTALL)
    if match:
        try:
            data = json.loads(match.group(1))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        try:
            data = json.loads(stripped)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    for line in text.split("\n"):
        line = line.strip()
        if line.startswith("{") and line.endswith("}"):
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return data

    return None


def _null_or_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _NULL_STRINGS:
        return None
    return text


def parse_amount(value: Any) -> Optional[float]:
    """Read a money amount: ``50000``, ``"50 000 FCFA"``, ``"1.5M"``, ``"75k"``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None

    text = str(value).strip().lower()
    if text in _NULL_STRINGS:
        return None

    multiplier = 1.0
    if re.search(r"\d\s*(m|million|millions)\b", text):
        multiplier = 1_000_000.0
    elif re.search(r"\d\s*k\b", text):
        multiplier = 1_000.0

    match = re.search(r"\d[\d\s.,]*", text)
    if not match:
        return None
    digits = re.sub(r"\s", "", match.group(0))
    if multiplier > 1 and re.fullmatch(r"\d+[.,]\d+", digits):
        # "1.5M" / "2,5 millions": decimal mark
        amount = float(digits.replace(",", "."))
    else:
        # "50.000" / "50,000": thousands separators
        amount = float(re.sub(r"[.,]", "", digits))
    amount *= multiplier
    return amount if amount > 0 else None


def parse_day_count(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    match = re.search(r"\d+", str(value))
    if not match:
        return None
    days = int(match.group(0))
    return days if days > 0 else None


class SlotPayload(BaseModel):
    """Wire schema of the slot extraction reply."""

    model_config = ConfigDict(extra="ignore")

    service: Optional[str] = None
    town: Optional[str] = None
    budget: Optional[float] = None
    type: Optional[OfferType] = None
    language: Optional[Language] = None

    @field_validator("service", "town", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return _null_or_text(value)

    @field_validator("budget", mode="before")
    @classmethod
    def _budget(cls, value: Any) -> Optional[float]:
        return parse_amount(value)

    @field_validator("type", mode="before")
    @classmethod
    def _offer_type(cls, value: Any) -> Optional[OfferType]:
        text = _null_or_text(value)
        return _OFFER_TYPE_SYNONYMS.get(text.lower()) if text else None

    @field_validator("language", mode="before")
    @classmethod
    def _language(cls, value: Any) -> Optional[Language]:
        text = _null_or_text(value)
        return _LANGUAGE_SYNONYMS.get(text.lower()) if text else None

    def to_extraction(self) -> SlotExtraction:
        return SlotExtraction(
            service=self.service,
            town=self.town,
            budget=self.budget,
            offer_type=self.type,
            language=self.language,
        )


class ContactPayload(BaseModel):
    """Wire schema of the contact extraction reply."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    first_name: Optional[str] = Field(default=None)
    last_name: Optional[str] = Field(default=None)
    current_city: Optional[str] = None
    email: Optional[str] = None
    number_of_days: Optional[int] = None
    start_date: Optional[str] = None

    @field_validator("first_name", "last_name", "current_city", "start_date", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Optional[str]:
        return _null_or_text(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> Optional[str]:
        text = _null_or_text(value)
        if text and _EMAIL_RE.match(text):
            return text.lower()
        return None

    @field_validator("number_of_days", mode="before")
    @classmethod
    def _days(cls, value: Any) -> Optional[int]:
        return parse_day_count(value)

    def to_extraction(self) -> ContactExtraction:
        return ContactExtraction(
            name=self.first_name,
            surname=self.last_name,
            current_city=self.current_city,
            email=self.email,
            number_of_days=self.number_of_days,
            start_date=self.start_date,
        )


def decode_slots(text: str) -> SlotExtraction:
    """Decode a slot extraction reply; anything malformed yields the null extraction."""
    data = extract_json_object(text)
    if data is None:
        return SlotExtraction()
    return SlotPayload.model_validate(data).to_extraction()


def decode_contact(text: str) -> ContactExtraction:
    """Decode a contact extraction reply; anything malformed yields the null extraction."""
    data = extract_json_object(text)
    if data is None:
        return ContactExtraction()
    return ContactPayload.model_validate(data).to_extraction()


def parse_yes_no(text: str) -> bool | None:
    """Read a yes/no classification. Returns None when the reply is neither."""
    word = re.sub(r"[^a-zà-ÿ]", " ", (text or "").lower()).split()
    if not word:
        return None
    if word[0] in ("yes", "oui", "y"):
        return True
    if word[0] in ("no", "non", "n"):
        return False
    return None


def parse_option_index(text: str, count: int) -> int | None:
    """Read a 1-based option number from a classification reply.

    Returns the 0-based index, or None for an explicit "none".

    Raises:
        ValueError: the reply is neither a valid option number nor "none".
    """
    reply = (text or "").strip().lower()
    if reply.startswith(("none", "aucun", "aucune", "no")):
        return None
    match = re.search(r"\d+", reply)
    if not match:
        raise ValueError(f"Unparsable option reply: {text!r}")
    number = int(match.group(0))
    if not 1 <= number <= count:
        raise ValueError(f"Option {number} out of range 1..{count}")
    return number - 1
