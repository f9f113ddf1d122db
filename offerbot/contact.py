"""Contact sub-dialogue: which field to ask for next, in a fixed order."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from offerbot.models.session import ContactInfo, RequestKind

SENDER_SUFFIX = "@c.us"


class ContactField(str, Enum):
    NAME = "name"
    CURRENT_CITY = "current_city"
    EMAIL = "email"
    NUMBER_OF_DAYS = "number_of_days"
    START_DATE = "start_date"


PURCHASE_ORDER = (ContactField.NAME, ContactField.CURRENT_CITY)
RENTAL_ORDER = PURCHASE_ORDER + (
    ContactField.EMAIL,
    ContactField.NUMBER_OF_DAYS,
    ContactField.START_DATE,
)


def field_order(request_kind: Optional[RequestKind]) -> tuple[ContactField, ...]:
    return RENTAL_ORDER if request_kind == RequestKind.RENTAL else PURCHASE_ORDER


def is_filled(contact: ContactInfo, field: ContactField) -> bool:
    if field == ContactField.NAME:
        # Either part of the name satisfies the name step
        return bool(contact.name or contact.surname)
    return bool(getattr(contact, field.value))


def next_missing_field(
    contact: ContactInfo, request_kind: Optional[RequestKind],
) -> Optional[ContactField]:
    """The earliest unmet field, whatever order the answers arrived in."""
    for field in field_order(request_kind):
        if not is_filled(contact, field):
            return field
    return None


def phone_from_sender(sender_id: str) -> str:
    """Phone number as the channel knows it: the sender id minus its suffix."""
    if sender_id.endswith(SENDER_SUFFIX):
        return sender_id[: -len(SENDER_SUFFIX)]
    return sender_id
