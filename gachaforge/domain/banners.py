"""Banners bias draws toward a set of focus groups."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .events import BANNER_ACTIVATED, BANNER_REMOVED, BANNER_SAVED, EventBus
from .exceptions import UnknownBanner
from ..storage.base import BannerRecord, BannerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Banner:
    name: str
    focus_groups: tuple[str, ...]
    bonus_percent: int

    def matches(self, group: str) -> bool:
        """Case-insensitive substring match of ``group`` against any focus label."""
        haystack = group.lower()
        return any(label.lower() in haystack for label in self.focus_groups)

    def reroll_chance(self, cap: float = 0.95) -> float:
        return max(0.0, min(cap, self.bonus_percent / 100))

    @property
    def focus_filter(self) -> str:
        return ";".join(self.focus_groups)

    @classmethod
    def from_record(cls, record: BannerRecord) -> "Banner":
        return cls(
            name=record.name,
            focus_groups=tuple(record.focus_groups),
            bonus_percent=record.bonus_percent,
        )


def parse_focus_groups(focus: str | Iterable[str]) -> tuple[str, ...]:
    """Accept ``"a; b"`` or an iterable of labels; blanks are dropped."""
    parts = focus.split(";") if isinstance(focus, str) else focus
    return tuple(label.strip() for label in parts if label and label.strip())


class BannerRegistry:
    """CRUD over banners plus the process-wide active pointer.

    Callers are expected to have checked admin capability before mutating.
    """

    def __init__(self, store: BannerStore, event_bus: EventBus) -> None:
        self._store = store
        self._events = event_bus

    async def save(self, name: str, focus: str | Iterable[str], bonus_percent: int) -> Banner:
        name = name.strip()
        if not name:
            raise ValueError("Banner name must not be empty")
        if not 0 <= bonus_percent <= 100:
            raise ValueError("Banner bonus must be between 0 and 100 percent")
        focus_groups = parse_focus_groups(focus)
        if not focus_groups:
            raise ValueError("Banner needs at least one focus group")
        record = BannerRecord(name=name, focus_groups=focus_groups, bonus_percent=bonus_percent)
        await self._store.upsert(record)
        logger.info("Banner %s saved: focus=%s bonus=%s%%", name, focus_groups, bonus_percent)
        await self._events.publish(BANNER_SAVED, {"name": name, "bonus_percent": bonus_percent})
        return Banner.from_record(record)

    async def get(self, name: str) -> Banner:
        record = await self._store.get(name)
        if record is None:
            raise UnknownBanner(f"Banner {name} not found")
        return Banner.from_record(record)

    async def list(self) -> list[Banner]:
        return [Banner.from_record(record) for record in await self._store.all()]

    async def remove(self, name: str) -> None:
        await self._store.delete(name)
        logger.info("Banner %s removed", name)
        await self._events.publish(BANNER_REMOVED, {"name": name})

    async def set_active(self, name: str) -> Banner:
        banner = await self.get(name)
        await self._store.set_active_name(banner.name)
        logger.info("Banner %s is now active", banner.name)
        await self._events.publish(BANNER_ACTIVATED, {"name": banner.name})
        return banner

    async def clear_active(self) -> None:
        await self._store.set_active_name(None)
        await self._events.publish(BANNER_ACTIVATED, {"name": None})

    async def active(self) -> Banner | None:
        name = await self._store.get_active_name()
        if not name:
            return None
        record = await self._store.get(name)
        return Banner.from_record(record) if record else None
