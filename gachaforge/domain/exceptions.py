"""Exceptions raised by gachaforge domain services."""


class GachaError(RuntimeError):
    """Base class for domain exceptions."""


class CooldownActive(GachaError):
    """Raised when a user tries to draw before the cooldown expires."""

    def __init__(self, seconds_remaining: int) -> None:
        super().__init__(f"Cooldown active for {seconds_remaining} seconds")
        self.seconds_remaining = seconds_remaining


class ExternalSourceUnavailable(GachaError):
    """Raised when the character source returns nothing for a candidate."""


class SessionExpired(GachaError):
    """Raised when a draw session timed out or is no longer open."""


class NotOwned(GachaError):
    """Raised when a user does not hold the requested item."""


class InsufficientQuantity(GachaError):
    """Raised when an ownership row holds fewer units than required."""

    def __init__(self, have: int, need: int) -> None:
        super().__init__(f"Insufficient quantity: have {have}, need {need}")
        self.have = have
        self.need = need


class MaxTierReached(GachaError):
    """Raised when merging an item already at the highest quality tier."""


class NotAuthorized(GachaError):
    """Raised when the caller may not perform the action."""


class InvalidState(GachaError):
    """Raised on a transition that the current state does not allow."""


class StaleOffer(GachaError):
    """Raised when a trade's offered item is no longer held by the proposer."""


class UnknownBanner(GachaError):
    """Raised when a banner name is not registered."""


class UnknownTrade(GachaError):
    """Raised when a trade id does not exist."""


class UnknownItem(GachaError):
    """Raised when no item with the given name exists."""
