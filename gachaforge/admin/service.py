"""Administrative operations over the ledger."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..domain.events import EventBus
from ..domain.exceptions import UnknownItem
from ..domain.ledger import acquire_units
from ..domain.users import UserLike, UserRef, user_key
from ..storage.base import AuditStore, BannerStore, LedgerStore, LedgerTotals, OwnershipRecord

logger = logging.getLogger(__name__)


class AdminService:
    """Privileged actions. Callers check ``AdminConfig.is_admin`` first."""

    def __init__(
        self,
        store: LedgerStore,
        banner_store: BannerStore,
        event_bus: EventBus,
        audit_store: AuditStore | None = None,
    ) -> None:
        self._store = store
        self._banners = banner_store
        self._events = event_bus
        self._audit_store = audit_store

    async def reset_all(self) -> None:
        await self._store.reset()
        await self._banners.reset()
        logger.warning("Ledger and banners wiped by admin")
        await self._audit("reset_all", {})
        await self._events.publish("admin.reset", {})

    async def global_stats(self) -> LedgerTotals:
        return await self._store.totals()

    async def grant_item(self, user: UserLike, item_name: str, quantity: int = 1) -> OwnershipRecord:
        if quantity <= 0:
            raise ValueError("Quantity must be positive")
        user_id = user_key(user)
        display_name = user.display_name if isinstance(user, UserRef) else None
        async with self._store.transaction() as tx:
            item = await tx.find_item_by_name(item_name)
            if item is None:
                raise UnknownItem(f"Item {item_name} not found")
            await tx.get_or_create_user(user_id, display_name)
            ownership = await acquire_units(tx, user_id, item.item_id, quantity)

        logger.info("Admin granted %d x %s to %s", quantity, item.name, user_id)
        await self._audit(
            "grant_item", {"user_id": user_id, "item_id": item.item_id, "quantity": quantity}
        )
        await self._events.publish(
            "admin.item.granted",
            {"user_id": user_id, "item_id": item.item_id, "quantity": quantity},
        )
        return ownership

    async def set_cooldown(self, user: UserLike, timestamp: datetime | None) -> None:
        user_id = user_key(user)
        async with self._store.transaction() as tx:
            record = await tx.get_or_create_user(user_id)
            record.last_draw_at = timestamp
            await tx.save_user(record)
        await self._audit(
            "set_cooldown",
            {
                "user_id": user_id,
                "timestamp": timestamp.isoformat() if timestamp else None,
            },
        )

    async def _audit(self, action: str, payload: dict) -> None:
        if self._audit_store is None:
            return
        await self._audit_store.add_entry(
            action,
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **payload,
            },
        )
