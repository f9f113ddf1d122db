"""Data models for the dialogue layer."""

from .session import (
    ContactExtraction,
    ContactInfo,
    Language,
    OfferSnapshot,
    RequestKind,
    Session,
    SessionStatus,
    SlotExtraction,
)

__all__ = [
    "ContactExtraction",
    "ContactInfo",
    "Language",
    "OfferSnapshot",
    "RequestKind",
    "Session",
    "SessionStatus",
    "SlotExtraction",
]
