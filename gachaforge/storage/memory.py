"""In-memory storage backend for gachaforge."""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from copy import deepcopy
from datetime import datetime, timezone
from typing import AsyncIterator, Deque, Sequence

from .base import (
    AuditStore,
    BannerRecord,
    BannerStore,
    InventoryRow,
    ItemRecord,
    LedgerStore,
    LedgerTotals,
    LedgerTransaction,
    OwnershipRecord,
    TradeRecord,
    TradeStatus,
    UserRecord,
)


class InMemoryLedgerStore(LedgerStore):
    """Ledger kept in process memory.

    Transactions are serialized by a single lock; a snapshot taken on entry
    is restored when the transaction body raises.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._users: dict[str, UserRecord] = {}
        self._items: dict[int, ItemRecord] = {}
        self._ownership: dict[tuple[str, int], OwnershipRecord] = {}
        self._trades: dict[str, TradeRecord] = {}
        self._next_item_id = 1

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        async with self._lock:
            snapshot = deepcopy(
                (self._users, self._items, self._ownership, self._trades, self._next_item_id)
            )
            try:
                yield _InMemoryTransaction(self)
            except BaseException:
                (
                    self._users,
                    self._items,
                    self._ownership,
                    self._trades,
                    self._next_item_id,
                ) = snapshot
                raise

    async def inventory(self, user_id: str, limit: int = 20) -> Sequence[InventoryRow]:
        rows = [
            InventoryRow(item=deepcopy(self._items[own.item_id]), quantity=own.quantity, tier=own.tier)
            for (owner, _), own in self._ownership.items()
            if owner == user_id
        ]
        rows.sort(key=lambda row: (-row.quantity, row.item.name))
        return rows[:limit]

    async def search_item_names(self, fragment: str, limit: int = 25) -> Sequence[str]:
        needle = fragment.lower()
        names = {item.name for item in self._items.values() if needle in item.name.lower()}
        return sorted(names)[:limit]

    async def pending_trades(self, user_id: str) -> Sequence[TradeRecord]:
        trades = [
            deepcopy(trade)
            for trade in self._trades.values()
            if trade.status is TradeStatus.PENDING
            and user_id in (trade.proposer_id, trade.recipient_id)
        ]
        trades.sort(key=lambda trade: trade.created_at)
        return trades

    async def totals(self) -> LedgerTotals:
        return LedgerTotals(
            users=len(self._users),
            items=len(self._items),
            ownerships=len(self._ownership),
        )

    async def reset(self) -> None:
        async with self._lock:
            self._users.clear()
            self._items.clear()
            self._ownership.clear()
            self._trades.clear()
            self._next_item_id = 1


class _InMemoryTransaction(LedgerTransaction):
    def __init__(self, store: InMemoryLedgerStore) -> None:
        self._store = store

    async def get_user(self, user_id: str) -> UserRecord | None:
        record = self._store._users.get(user_id)
        return deepcopy(record) if record else None

    async def get_or_create_user(self, user_id: str, display_name: str | None = None) -> UserRecord:
        users = self._store._users
        if user_id not in users:
            users[user_id] = UserRecord(user_id=user_id, display_name=display_name)
        record = users[user_id]
        if display_name and record.display_name != display_name:
            record.display_name = display_name
        return deepcopy(record)

    async def save_user(self, record: UserRecord) -> None:
        self._store._users[record.user_id] = deepcopy(record)

    async def get_item(self, item_id: int) -> ItemRecord | None:
        item = self._store._items.get(item_id)
        return deepcopy(item) if item else None

    async def find_item(self, name: str, group: str) -> ItemRecord | None:
        for item in self._store._items.values():
            if item.name == name and item.group == group:
                return deepcopy(item)
        return None

    async def find_item_by_name(self, name: str) -> ItemRecord | None:
        matches = [item for item in self._store._items.values() if item.name == name]
        if not matches:
            return None
        return deepcopy(min(matches, key=lambda item: item.item_id))

    async def get_or_create_item(self, name: str, group: str, image_url: str | None) -> ItemRecord:
        existing = await self.find_item(name, group)
        if existing:
            return existing
        item = ItemRecord(
            item_id=self._store._next_item_id, name=name, group=group, image_url=image_url
        )
        self._store._items[item.item_id] = item
        self._store._next_item_id += 1
        return deepcopy(item)

    async def get_ownership(self, user_id: str, item_id: int) -> OwnershipRecord | None:
        record = self._store._ownership.get((user_id, item_id))
        return deepcopy(record) if record else None

    async def find_ownership_by_name(
        self, user_id: str, name: str
    ) -> tuple[OwnershipRecord, ItemRecord] | None:
        owned = [
            (own, self._store._items[own.item_id])
            for (owner, _), own in self._store._ownership.items()
            if owner == user_id and self._store._items[own.item_id].name == name
        ]
        if not owned:
            return None
        own, item = min(owned, key=lambda pair: pair[1].item_id)
        return deepcopy(own), deepcopy(item)

    async def save_ownership(self, record: OwnershipRecord) -> None:
        self._store._ownership[(record.user_id, record.item_id)] = deepcopy(record)

    async def delete_ownership(self, user_id: str, item_id: int) -> None:
        self._store._ownership.pop((user_id, item_id), None)

    async def add_trade(self, record: TradeRecord) -> None:
        if record.trade_id in self._store._trades:
            raise ValueError(f"Trade {record.trade_id} already exists")
        self._store._trades[record.trade_id] = deepcopy(record)

    async def get_trade(self, trade_id: str) -> TradeRecord | None:
        record = self._store._trades.get(trade_id)
        return deepcopy(record) if record else None

    async def save_trade(self, record: TradeRecord) -> None:
        self._store._trades[record.trade_id] = deepcopy(record)


class InMemoryBannerStore(BannerStore):
    def __init__(self) -> None:
        self._banners: dict[str, BannerRecord] = {}
        self._active: str | None = None

    async def upsert(self, record: BannerRecord) -> None:
        self._banners[record.name] = record

    async def get(self, name: str) -> BannerRecord | None:
        return self._banners.get(name)

    async def all(self) -> Sequence[BannerRecord]:
        return [self._banners[name] for name in sorted(self._banners)]

    async def delete(self, name: str) -> None:
        self._banners.pop(name, None)
        if self._active == name:
            self._active = None

    async def get_active_name(self) -> str | None:
        return self._active

    async def set_active_name(self, name: str | None) -> None:
        self._active = name

    async def reset(self) -> None:
        self._banners.clear()
        self._active = None


class InMemoryAuditStore(AuditStore):
    def __init__(self, *, maxlen: int = 1000) -> None:
        self._entries: Deque[tuple[datetime, str, dict]] = deque(maxlen=maxlen)

    async def add_entry(self, action: str, payload: dict) -> None:
        self._entries.append((datetime.now(timezone.utc), action, payload))

    def dump(self) -> list[tuple[datetime, str, dict]]:
        return list(self._entries)
