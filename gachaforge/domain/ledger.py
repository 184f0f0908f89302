"""Ownership ledger: acquisitions, merges and transfers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .events import LEDGER_MERGED, LEDGER_TRANSFERRED, EventBus
from .exceptions import InsufficientQuantity, MaxTierReached, NotOwned, UnknownItem
from .users import UserLike, user_key
from ..config import LedgerConfig
from ..storage.base import (
    InventoryRow,
    ItemRecord,
    LedgerStore,
    LedgerTransaction,
    OwnershipRecord,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeResult:
    item: ItemRecord
    quantity: int
    tier: int


@dataclass(slots=True)
class TransferResult:
    item_id: int
    from_user: str
    to_user: str
    count: int
    source_quantity: int
    destination_quantity: int


async def acquire_units(
    tx: LedgerTransaction, user_id: str, item_id: int, count: int = 1
) -> OwnershipRecord:
    """Add ``count`` units, inserting the row at tier 1 if the user had none."""
    if count <= 0:
        raise ValueError("Count must be positive")
    ownership = await tx.get_ownership(user_id, item_id)
    if ownership is None:
        ownership = OwnershipRecord(user_id=user_id, item_id=item_id, quantity=count, tier=1)
    else:
        ownership.quantity += count
    await tx.save_ownership(ownership)
    return ownership


async def transfer_units(
    tx: LedgerTransaction, from_user: str, to_user: str, item_id: int, count: int = 1
) -> TransferResult:
    """Move units between users inside an open transaction; empty rows are deleted."""
    if count <= 0:
        raise ValueError("Count must be positive")
    source = await tx.get_ownership(from_user, item_id)
    have = source.quantity if source else 0
    if source is None or have < count:
        raise InsufficientQuantity(have=have, need=count)
    if from_user == to_user:
        return TransferResult(
            item_id=item_id,
            from_user=from_user,
            to_user=to_user,
            count=count,
            source_quantity=have,
            destination_quantity=have,
        )

    source.quantity -= count
    if source.quantity <= 0:
        await tx.delete_ownership(from_user, item_id)
    else:
        await tx.save_ownership(source)

    await tx.get_or_create_user(to_user)
    destination = await acquire_units(tx, to_user, item_id, count)
    return TransferResult(
        item_id=item_id,
        from_user=from_user,
        to_user=to_user,
        count=count,
        source_quantity=max(source.quantity, 0),
        destination_quantity=destination.quantity,
    )


class OwnershipLedger:
    """Authoritative record of who owns how many units of which item."""

    def __init__(self, store: LedgerStore, config: LedgerConfig, event_bus: EventBus) -> None:
        self._store = store
        self._config = config
        self._events = event_bus

    async def acquire(self, user: UserLike, item_id: int, count: int = 1) -> OwnershipRecord:
        async with self._store.transaction() as tx:
            if await tx.get_item(item_id) is None:
                raise UnknownItem(f"Item {item_id} not found")
            user_id = user_key(user)
            await tx.get_or_create_user(user_id)
            return await acquire_units(tx, user_id, item_id, count)

    async def merge(self, user: UserLike, item_name: str) -> MergeResult:
        user_id = user_key(user)
        async with self._store.transaction() as tx:
            found = await tx.find_ownership_by_name(user_id, item_name)
            if found is None:
                raise NotOwned(f"User {user_id} does not own {item_name}")
            ownership, item = found
            if ownership.quantity < self._config.merge_min_quantity:
                raise InsufficientQuantity(
                    have=ownership.quantity, need=self._config.merge_min_quantity
                )
            if ownership.tier >= self._config.max_tier:
                raise MaxTierReached(f"{item_name} is already at tier {ownership.tier}")
            ownership.quantity -= self._config.merge_cost
            ownership.tier += 1
            if ownership.quantity <= 0:
                await tx.delete_ownership(user_id, item.item_id)
            else:
                await tx.save_ownership(ownership)

        logger.info("User %s merged %s to tier %d", user_id, item.name, ownership.tier)
        await self._events.publish(
            LEDGER_MERGED,
            {"user_id": user_id, "item_id": item.item_id, "tier": ownership.tier},
        )
        return MergeResult(item=item, quantity=ownership.quantity, tier=ownership.tier)

    async def transfer(
        self, from_user: UserLike, to_user: UserLike, item_id: int, count: int = 1
    ) -> TransferResult:
        async with self._store.transaction() as tx:
            result = await transfer_units(tx, user_key(from_user), user_key(to_user), item_id, count)
        logger.info(
            "Transferred %d x item %d from %s to %s",
            count,
            item_id,
            result.from_user,
            result.to_user,
        )
        await self._events.publish(
            LEDGER_TRANSFERRED,
            {
                "from_user": result.from_user,
                "to_user": result.to_user,
                "item_id": item_id,
                "count": count,
            },
        )
        return result

    async def holding(self, user: UserLike, item_name: str) -> tuple[OwnershipRecord, ItemRecord] | None:
        async with self._store.transaction() as tx:
            return await tx.find_ownership_by_name(user_key(user), item_name)

    async def inventory(self, user: UserLike, limit: int | None = None) -> Sequence[InventoryRow]:
        return await self._store.inventory(user_key(user), limit or self._config.inventory_limit)

    async def search_item_names(self, fragment: str, limit: int = 25) -> Sequence[str]:
        return await self._store.search_item_names(fragment.strip(), limit)
