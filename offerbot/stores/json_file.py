"""JSON-file store implementations.

Sessions live in one JSON object keyed by user id and are rewritten
atomically (temp file + rename) on every change. The catalog is read from
the files written by ``python -m listings.ingest``, fresh on every call.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from listings.schema import CATALOG_FILES, Offer, OfferType, parse_offer
from offerbot.errors import InventoryUnavailableError, SessionNotFoundError
from offerbot.models.session import Session, utcnow
from offerbot.stores.base import InventoryStore, SessionStore

log = logging.getLogger("offerbot.stores.json")


def _atomic_write(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class JsonSessionStore(SessionStore):
    """Sessions persisted to a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = self._load()

    def _load(self) -> dict[str, Session]:
        if not self._path.exists():
            return {}
        with open(self._path, encoding="utf-8") as f:
            raw = json.load(f)
        sessions = {}
        for user_id, data in raw.items():
            try:
                sessions[user_id] = Session.model_validate(data)
            except ValidationError as exc:
                log.warning("Skipping unreadable session %s: %s", user_id, exc)
        log.info("Loaded %d sessions from %s", len(sessions), self._path)
        return sessions

    async def _flush(self) -> None:
        payload = {uid: s.model_dump(mode="json") for uid, s in self._sessions.items()}
        await asyncio.get_running_loop().run_in_executor(None, _atomic_write, self._path, payload)

    async def find(self, user_id: str) -> Optional[Session]:
        session = self._sessions.get(user_id)
        return session.model_copy(deep=True) if session else None

    async def create(self, session: Session) -> Session:
        async with self._lock:
            self._sessions[session.user_id] = session.model_copy(deep=True)
            await self._flush()
        return session.model_copy(deep=True)

    async def update(self, user_id: str, fields: dict[str, Any]) -> Session:
        async with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                raise SessionNotFoundError(user_id)
            data = session.model_dump()
            data.update(fields)
            data["last_updated"] = utcnow()
            updated = Session.model_validate(data).model_copy(deep=True)
            self._sessions[user_id] = updated
            await self._flush()
        return updated.model_copy(deep=True)

    async def all(self) -> list[Session]:
        return [s.model_copy(deep=True) for s in self._sessions.values()]

    async def delete_all(self) -> int:
        async with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
            await self._flush()
        return count


class JsonInventoryStore(InventoryStore):
    """Catalog read from ``<catalog_dir>/vehicles.json`` and ``properties.json``.

    No caching: the file is re-read in full on every call, off the event
    loop, so a fresh ingestion is visible on the next search.
    """

    def __init__(self, catalog_dir: str | Path) -> None:
        self._dir = Path(catalog_dir)

    def path_for(self, offer_type: OfferType) -> Path:
        return self._dir / CATALOG_FILES[offer_type]

    def _read(self, offer_type: OfferType) -> list[Offer]:
        path = self.path_for(offer_type)
        try:
            with open(path, encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise InventoryUnavailableError(f"Cannot read catalog {path}: {exc}") from exc
        if not isinstance(records, list):
            raise InventoryUnavailableError(f"Catalog {path} is not a JSON array")

        offers = []
        for record in records:
            try:
                offers.append(parse_offer(offer_type, record))
            except ValidationError as exc:
                log.warning("Skipping invalid %s record in %s: %s", offer_type.value, path, exc)
        return offers

    async def list_offers(self, offer_type: OfferType) -> list[Offer]:
        return await asyncio.get_running_loop().run_in_executor(None, self._read, offer_type)
