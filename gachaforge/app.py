"""Top level application object for gachaforge."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from random import Random
from typing import Any, Callable, Mapping

from .admin.service import AdminService
from .config import GachaConfig
from .domain.banners import BannerRegistry
from .domain.candidates import CandidateDrawer, CandidatePool, CharacterSource
from .domain.draws import DEFAULT_POOL, DrawService
from .domain.events import EventBus
from .domain.ledger import OwnershipLedger
from .domain.pity import PityTracker
from .domain.rarity import DEFAULT_RARITY_TABLE
from .domain.trades import TradeService
from .domain.users import UserService
from .loaders.json_loader import load_builtin_pools, load_pool_from_json
from .sources.anilist import AniListCharacterSource
from .storage.base import AuditStore, BannerStore, LedgerStore
from .storage.memory import InMemoryAuditStore, InMemoryBannerStore, InMemoryLedgerStore
from .storage.sqlalchemy import AsyncSQLAlchemyStorage

logger = logging.getLogger(__name__)


class GachaApp:
    """Central dependency container used by front-ends and tooling."""

    def __init__(
        self,
        config: GachaConfig | None = None,
        *,
        ledger_store: LedgerStore | None = None,
        banner_store: BannerStore | None = None,
        audit_store: AuditStore | None = None,
        character_source: CharacterSource | None = None,
        extra_pools: Mapping[str, CandidatePool] | None = None,
        event_bus: EventBus | None = None,
        rng: Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or GachaConfig()
        self.event_bus = event_bus or EventBus()
        self._rng = rng or (Random(self.config.rng_seed) if self.config.rng_seed is not None else Random())

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        (
            self.ledger_store,
            self.banner_store,
            self.audit_store,
        ) = self._wire_storage(ledger_store, banner_store, audit_store)

        self.rarity_table = DEFAULT_RARITY_TABLE.with_weights(self.config.draw.rarity_weights)
        self.pity = PityTracker(self.rarity_table, self.config.pity)

        self._owns_source = character_source is None
        self.character_source = character_source or AniListCharacterSource(self.config.source, rng=self._rng)
        self.pools: dict[str, CandidatePool] = {
            DEFAULT_POOL: CandidateDrawer(
                self.character_source,
                rng=self._rng,
                max_attempts=self.config.draw.max_banner_attempts,
                max_reroll_chance=self.config.draw.max_reroll_chance,
            )
        }
        self.pools.update(load_builtin_pools(rng=self._rng))
        if extra_pools:
            self.pools.update(extra_pools)

        self.banners = BannerRegistry(self.banner_store, self.event_bus)
        self.ledger = OwnershipLedger(self.ledger_store, self.config.ledger, self.event_bus)
        self.trades = TradeService(self.ledger_store, self.event_bus, clock=clock)
        self.users = UserService(self.ledger_store, self.config.pity)
        self.draws = DrawService(
            self.ledger_store,
            self.pools,
            self.pity,
            self.banners,
            self.config.draw,
            self.event_bus,
            rng=self._rng,
            clock=clock,
        )
        self.admin = AdminService(
            self.ledger_store,
            self.banner_store,
            self.event_bus,
            self.audit_store if self.config.admin.enable_audit_logs else None,
        )

    def _wire_storage(
        self,
        ledger_store: LedgerStore | None,
        banner_store: BannerStore | None,
        audit_store: AuditStore | None,
    ) -> tuple[LedgerStore, BannerStore, AuditStore]:
        if ledger_store and banner_store and audit_store:
            return ledger_store, banner_store, audit_store

        backend = self.config.storage.backend
        if backend == "memory":
            return (
                ledger_store or InMemoryLedgerStore(),
                banner_store or InMemoryBannerStore(),
                audit_store or InMemoryAuditStore(),
            )
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(dsn, echo=self.config.storage.echo_sql)
            self._sqlalchemy_storage = storage
            return (
                ledger_store or storage.ledger_store(),
                banner_store or storage.banner_store(),
                audit_store or storage.audit_store(),
            )
        raise ValueError(f"Unsupported storage backend {backend}")

    def load_pool(self, path: str | Path) -> CandidatePool:
        """Register an extra local pool from a JSON file."""
        pool = load_pool_from_json(path, rng=self._rng)
        self.draws.register_pool(pool.name, pool)
        self.pools[pool.name] = pool
        logger.info("Loaded pool %s with %d entries from %s", pool.name, len(pool.entries), path)
        return pool

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        return {
            "storage": self.config.storage.backend,
            "pools": sorted(self.pools),
            "rarities": {
                tier.rarity.value: {"weight": tier.weight, "window": list(tier.rank_window)}
                for tier in self.rarity_table
            },
            "pity": {
                "legendary": self.config.pity.legendary_threshold,
                "mythic": self.config.pity.mythic_threshold,
            },
            "cooldown_seconds": self.config.draw.cooldown_seconds,
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def aclose(self) -> None:
        if self._owns_source and isinstance(self.character_source, AniListCharacterSource):
            await self.character_source.aclose()
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()
