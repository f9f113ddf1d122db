"""Abstract base classes for the persistence collaborators.

The dialogue engine talks to sessions, the offer catalog and the chat
transcript only through these interfaces. Any backend (in-memory, JSON
file, a document database...) implements them.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from listings.schema import Offer, OfferType
from offerbot.models.session import Session


class SessionStore(ABC):
    """Keyed persistence for per-user dialogue state."""

    @abstractmethod
    async def find(self, user_id: str) -> Optional[Session]:
        """Return the session for ``user_id``, or None if the user is new."""

    @abstractmethod
    async def create(self, session: Session) -> Session:
        """Persist a new session and return the stored copy."""

    @abstractmethod
    async def update(self, user_id: str, fields: dict[str, Any]) -> Session:
        """Apply a field-level update and stamp ``last_updated``.

        Args:
            user_id: The session key.
            fields: Session attribute names mapped to their new values.
                Attributes not named are left untouched.

        Returns:
            The updated session.

        Raises:
            SessionNotFoundError: no session exists for ``user_id``.
        """

    @abstractmethod
    async def all(self) -> list[Session]:
        """Every stored session."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Administrative reset. Returns the number of sessions removed."""


class InventoryStore(ABC):
    """Read-only offer catalog, partitioned by offer type."""

    @abstractmethod
    async def list_offers(self, offer_type: OfferType) -> list[Offer]:
        """Return the full catalog for ``offer_type`` in catalog order.

        Raises:
            InventoryUnavailableError: the catalog cannot be read.
        """

    async def get_offer(self, offer_type: OfferType, offer_id: int) -> Optional[Offer]:
        for offer in await self.list_offers(offer_type):
            if offer.id == offer_id:
                return offer
        return None


class TranscriptStore(ABC):
    """Recent chat turns per user, as ``{"role", "content"}`` dicts."""

    @abstractmethod
    async def append(self, user_id: str, role: str, content: str) -> None:
        """Record one turn. ``role`` is ``"user"`` or ``"assistant"``."""

    @abstractmethod
    async def recent(self, user_id: str, limit: int) -> list[dict[str, str]]:
        """The last ``limit`` turns, oldest first."""

    @abstractmethod
    async def history(self, user_id: str) -> list[dict[str, str]]:
        """Every retained turn for the user, oldest first."""

    @abstractmethod
    async def clear(self, user_id: str) -> bool:
        """Drop one user's transcript. Returns False if there was none."""

    @abstractmethod
    async def clear_all(self) -> int:
        """Drop every transcript. Returns the number of users cleared."""

    @abstractmethod
    async def active_conversations(self) -> int:
        """Number of users with a non-empty transcript."""
