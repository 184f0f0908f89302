"""User identity and per-user statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Union

from .pity import PityState
from .rarity import RARITY_ORDER
from ..config import PityConfig
from ..storage.base import LedgerStore, UserRecord


@dataclass(frozen=True, slots=True)
class UserRef:
    """Normalized user identity built once at the front-end boundary."""

    id: str
    display_name: str | None = None

    @classmethod
    def of(cls, user_id: str | int, display_name: str | None = None) -> "UserRef":
        return cls(id=str(user_id), display_name=display_name)


UserLike = Union[UserRef, str, int]


def user_key(user: UserLike) -> str:
    return user.id if isinstance(user, UserRef) else str(user)


@dataclass(slots=True)
class UserStats:
    user_id: str
    display_name: str | None
    total_draws: int
    rarity_counts: Mapping[str, int]
    pity: PityState
    legendary_threshold: int
    mythic_threshold: int
    last_draw_at: datetime | None


class UserService:
    """Read model over user records."""

    def __init__(self, store: LedgerStore, pity_config: PityConfig) -> None:
        self._store = store
        self._pity = pity_config

    async def stats(self, user: UserLike) -> UserStats:
        display_name = user.display_name if isinstance(user, UserRef) else None
        async with self._store.transaction() as tx:
            record = await tx.get_or_create_user(user_key(user), display_name)
        return self._to_stats(record)

    def _to_stats(self, record: UserRecord) -> UserStats:
        return UserStats(
            user_id=record.user_id,
            display_name=record.display_name,
            total_draws=record.total_draws,
            rarity_counts={
                rarity.value: record.rarity_counts.get(rarity.value, 0) for rarity in RARITY_ORDER
            },
            pity=PityState.of(record),
            legendary_threshold=self._pity.legendary_threshold,
            mythic_threshold=self._pity.mythic_threshold,
            last_draw_at=record.last_draw_at,
        )
