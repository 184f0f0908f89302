"""Domain event dispatch."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, Iterable, Mapping

logger = logging.getLogger(__name__)

DRAW_STARTED = "draw.started"
DRAW_COMMITTED = "draw.committed"
DRAW_EXPIRED = "draw.expired"
LEDGER_MERGED = "ledger.merged"
LEDGER_TRANSFERRED = "ledger.transferred"
TRADE_PROPOSED = "trade.proposed"
TRADE_ACCEPTED = "trade.accepted"
TRADE_CANCELED = "trade.canceled"
BANNER_SAVED = "banner.saved"
BANNER_REMOVED = "banner.removed"
BANNER_ACTIVATED = "banner.activated"

EventPayload = Mapping[str, Any]
EventListener = Callable[[EventPayload], Awaitable[None]]


class EventBus:
    """Async pub-sub; listeners run in subscription order after a change is committed."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: EventListener) -> None:
        self._listeners[event_name].append(listener)

    def unsubscribe(self, event_name: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event_name)
        if listeners and listener in listeners:
            listeners.remove(listener)

    async def publish(self, event_name: str, payload: EventPayload) -> None:
        listeners = list(self._listeners.get(event_name, ()))
        logger.debug("Publishing %s to %d listener(s)", event_name, len(listeners))
        for listener in listeners:
            await listener(payload)

    def clear(self) -> None:
        self._listeners.clear()

    def listeners(self, event_name: str) -> Iterable[EventListener]:
        return tuple(self._listeners.get(event_name, ()))
