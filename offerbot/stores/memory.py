"""In-memory store implementations (development and tests)."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterable, Optional

from listings.schema import Offer, OfferType
from offerbot.errors import SessionNotFoundError
from offerbot.models.session import Session, utcnow
from offerbot.stores.base import InventoryStore, SessionStore, TranscriptStore

log = logging.getLogger("offerbot.stores.memory")


class InMemorySessionStore(SessionStore):
    """Sessions held in a dict. Callers always get copies, never the stored object."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def find(self, user_id: str) -> Optional[Session]:
        session = self._sessions.get(user_id)
        return session.model_copy(deep=True) if session else None

    async def create(self, session: Session) -> Session:
        self._sessions[session.user_id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def update(self, user_id: str, fields: dict[str, Any]) -> Session:
        session = self._sessions.get(user_id)
        if session is None:
            raise SessionNotFoundError(user_id)
        data = session.model_dump()
        data.update(fields)
        data["last_updated"] = utcnow()
        updated = Session.model_validate(data).model_copy(deep=True)
        self._sessions[user_id] = updated
        return updated.model_copy(deep=True)

    async def all(self) -> list[Session]:
        return [s.model_copy(deep=True) for s in self._sessions.values()]

    async def delete_all(self) -> int:
        count = len(self._sessions)
        self._sessions.clear()
        return count


class InMemoryInventoryStore(InventoryStore):
    """A fixed catalog passed in at construction."""

    def __init__(self, offers: Optional[dict[OfferType, Iterable[Offer]]] = None) -> None:
        self._offers: dict[OfferType, list[Offer]] = {
            offer_type: list(items) for offer_type, items in (offers or {}).items()
        }

    async def list_offers(self, offer_type: OfferType) -> list[Offer]:
        return list(self._offers.get(offer_type, []))


class InMemoryTranscriptStore(TranscriptStore):
    """Bounded per-user turn buffer; older turns fall off the front."""

    def __init__(self, max_turns: int = 100) -> None:
        self._max_turns = max_turns
        self._turns: dict[str, deque[dict[str, str]]] = {}

    async def append(self, user_id: str, role: str, content: str) -> None:
        buf = self._turns.setdefault(user_id, deque(maxlen=self._max_turns))
        buf.append({"role": role, "content": content})

    async def recent(self, user_id: str, limit: int) -> list[dict[str, str]]:
        turns = list(self._turns.get(user_id, ()))
        return turns[-limit:] if limit > 0 else []

    async def history(self, user_id: str) -> list[dict[str, str]]:
        return list(self._turns.get(user_id, ()))

    async def clear(self, user_id: str) -> bool:
        return self._turns.pop(user_id, None) is not None

    async def clear_all(self) -> int:
        count = len(self._turns)
        self._turns.clear()
        log.info("Cleared %d transcripts", count)
        return count

    async def active_conversations(self) -> int:
        return sum(1 for turns in self._turns.values() if turns)
