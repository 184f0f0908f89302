"""Storage backends for gachaforge."""

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
from .memory import InMemoryAuditStore, InMemoryBannerStore, InMemoryLedgerStore
from .sqlalchemy import AsyncSQLAlchemyStorage

__all__ = [
    "AuditStore",
    "BannerRecord",
    "BannerStore",
    "InventoryRow",
    "ItemRecord",
    "LedgerStore",
    "LedgerTotals",
    "LedgerTransaction",
    "OwnershipRecord",
    "TradeRecord",
    "TradeStatus",
    "UserRecord",
    "InMemoryAuditStore",
    "InMemoryBannerStore",
    "InMemoryLedgerStore",
    "AsyncSQLAlchemyStorage",
]
