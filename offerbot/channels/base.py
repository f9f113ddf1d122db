"""MessagingChannel ABC: the chat transport the dialogue talks through.

A channel owns its connection to the messaging network. Inbound messages
are normalized to ``InboundEvent`` and handed to a single subscriber (the
dispatcher); outbound messages go through ``send_text`` / ``send_media``.
The channel is an explicitly owned instance with a lifecycle:

  connect()  →  subscribe(handler)  →  send_*() ...  →  shutdown()
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

log = logging.getLogger("offerbot.channels")

# Sender ids that are never a 1:1 conversation
BROADCAST_SENDER = "status@broadcast"
GROUP_SUFFIX = "@g.us"


@dataclass
class InboundEvent:
    """One message received from a user.

    Voice notes arrive already transcribed; ``text`` is empty when the
    transcription failed.
    """

    sender_id: str
    text: str
    kind: str = "text"  # "text" or "voice"
    quoted: bool = False  # the message replies to (quotes) an earlier one
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_voice(self) -> bool:
        return self.kind == "voice"


EventHandler = Callable[[InboundEvent], Awaitable[None]]


def should_ignore(sender_id: str) -> bool:
    """Status updates and group chats are not conversations with the bot."""
    return sender_id == BROADCAST_SENDER or sender_id.endswith(GROUP_SUFFIX)


class MessagingChannel(ABC):
    """Abstract messaging transport.

    Subclasses implement the connection and the two send operations;
    inbound delivery to the subscriber is shared.
    """

    def __init__(self) -> None:
        self._handler: Optional[EventHandler] = None

    @abstractmethod
    async def connect(self) -> None:
        """Open the transport. Called once before any send."""

    def subscribe(self, handler: EventHandler) -> None:
        """Register the single consumer of inbound events."""
        self._handler = handler

    async def deliver(self, event: InboundEvent) -> bool:
        """Hand an inbound event to the subscriber.

        Returns:
            False if the event was dropped (ignored sender, no subscriber).
        """
        if should_ignore(event.sender_id):
            log.debug("Ignoring event from %s", event.sender_id)
            return False
        if self._handler is None:
            log.warning("Inbound event dropped: no subscriber")
            return False
        await self._handler(event)
        return True

    @abstractmethod
    async def send_text(self, recipient: str, text: str) -> None:
        """Send a text message.

        Raises:
            ChannelError: the message could not be delivered.
        """

    @abstractmethod
    async def send_media(self, recipient: str, media_url: str, caption: str = "") -> None:
        """Send an image with a caption.

        Args:
            recipient: The user's sender id.
            media_url: Public URL of the image; the gateway fetches it.
            caption: Text shown under the image.

        Raises:
            ChannelError: the media could not be fetched or delivered.
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """Release the transport."""
