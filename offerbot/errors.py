"""Exception taxonomy for the offer assistant."""


class OfferbotError(Exception):
    """Base class for all offer assistant errors."""


class NLUError(OfferbotError):
    """The NLU provider failed or returned nothing usable."""


class InventoryUnavailableError(OfferbotError):
    """The offer catalog could not be read."""


class ChannelError(OfferbotError):
    """An outbound message could not be delivered."""


class SessionNotFoundError(OfferbotError):
    """A field-level update targeted a session that does not exist."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No session for user {user_id!r}")
        self.user_id = user_id
