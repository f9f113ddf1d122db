"""Session, catalog and transcript stores."""

from .base import InventoryStore, SessionStore, TranscriptStore
from .json_file import JsonInventoryStore, JsonSessionStore
from .memory import InMemoryInventoryStore, InMemorySessionStore, InMemoryTranscriptStore

__all__ = [
    "InventoryStore",
    "SessionStore",
    "TranscriptStore",
    "InMemoryInventoryStore",
    "InMemorySessionStore",
    "InMemoryTranscriptStore",
    "JsonInventoryStore",
    "JsonSessionStore",
]
