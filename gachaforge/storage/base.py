"""Storage abstractions used by the gachaforge services."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, Sequence


class TradeStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CANCELED = "CANCELED"


@dataclass(slots=True)
class UserRecord:
    user_id: str
    display_name: str | None = None
    total_draws: int = 0
    rarity_counts: dict[str, int] = field(default_factory=dict)
    last_draw_at: datetime | None = None
    pity_legendary: int = 0
    pity_mythic: int = 0


@dataclass(slots=True)
class ItemRecord:
    item_id: int
    name: str
    group: str
    image_url: str | None = None


@dataclass(slots=True)
class OwnershipRecord:
    user_id: str
    item_id: int
    quantity: int = 1
    tier: int = 1


@dataclass(slots=True)
class TradeRecord:
    trade_id: str
    proposer_id: str
    recipient_id: str
    give_item_id: int
    requested_item_name: str | None
    created_at: datetime
    status: TradeStatus = TradeStatus.PENDING


@dataclass(slots=True)
class BannerRecord:
    name: str
    focus_groups: tuple[str, ...]
    bonus_percent: int


@dataclass(slots=True)
class InventoryRow:
    item: ItemRecord
    quantity: int
    tier: int


@dataclass(slots=True)
class LedgerTotals:
    users: int
    items: int
    ownerships: int


class LedgerTransaction(Protocol):
    """Unit of work over users, items, ownership rows and trades.

    Reads made through a transaction see the latest committed state and
    lock the rows they return until the transaction ends.
    """

    async def get_user(self, user_id: str) -> UserRecord | None:
        ...

    async def get_or_create_user(self, user_id: str, display_name: str | None = None) -> UserRecord:
        ...

    async def save_user(self, record: UserRecord) -> None:
        ...

    async def get_item(self, item_id: int) -> ItemRecord | None:
        ...

    async def find_item(self, name: str, group: str) -> ItemRecord | None:
        ...

    async def find_item_by_name(self, name: str) -> ItemRecord | None:
        ...

    async def get_or_create_item(self, name: str, group: str, image_url: str | None) -> ItemRecord:
        ...

    async def get_ownership(self, user_id: str, item_id: int) -> OwnershipRecord | None:
        ...

    async def find_ownership_by_name(
        self, user_id: str, name: str
    ) -> tuple[OwnershipRecord, ItemRecord] | None:
        ...

    async def save_ownership(self, record: OwnershipRecord) -> None:
        ...

    async def delete_ownership(self, user_id: str, item_id: int) -> None:
        ...

    async def add_trade(self, record: TradeRecord) -> None:
        ...

    async def get_trade(self, trade_id: str) -> TradeRecord | None:
        ...

    async def save_trade(self, record: TradeRecord) -> None:
        ...


class LedgerStore(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[LedgerTransaction]:
        ...

    async def inventory(self, user_id: str, limit: int = 20) -> Sequence[InventoryRow]:
        ...

    async def search_item_names(self, fragment: str, limit: int = 25) -> Sequence[str]:
        ...

    async def pending_trades(self, user_id: str) -> Sequence[TradeRecord]:
        ...

    async def totals(self) -> LedgerTotals:
        ...

    async def reset(self) -> None:
        ...


class BannerStore(Protocol):
    async def upsert(self, record: BannerRecord) -> None:
        ...

    async def get(self, name: str) -> BannerRecord | None:
        ...

    async def all(self) -> Sequence[BannerRecord]:
        ...

    async def delete(self, name: str) -> None:
        """Drop the banner and clear the active pointer if it names it."""
        ...

    async def get_active_name(self) -> str | None:
        ...

    async def set_active_name(self, name: str | None) -> None:
        ...

    async def reset(self) -> None:
        ...


class AuditStore(Protocol):
    async def add_entry(self, action: str, payload: dict) -> None:
        ...
