"""Configuration models for gachaforge."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Literal, Mapping


StorageBackend = Literal["memory", "sqlalchemy"]

ANILIST_URL = "https://graphql.anilist.co"


@dataclass(slots=True)
class StorageConfig:
    """Configure how users, ledger rows and banners are persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./gachaforge.db"
        return None


@dataclass(slots=True)
class AdminConfig:
    """Who counts as an administrator and whether admin actions are audited."""

    admin_ids: set[str] = field(default_factory=set)
    enable_audit_logs: bool = True

    def is_admin(self, user_id: str | int) -> bool:
        return str(user_id) in self.admin_ids


@dataclass(slots=True)
class DrawConfig:
    """Rules controlling draw sessions and candidate generation."""

    cooldown_seconds: int = 15 * 60
    candidates_per_draw: int = 3
    choice_timeout_seconds: float = 60.0
    max_banner_attempts: int = 4
    max_reroll_chance: float = 0.95
    rarity_weights: Mapping[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class PityConfig:
    legendary_threshold: int = 30
    mythic_threshold: int = 100


@dataclass(slots=True)
class LedgerConfig:
    """Merge rules: ``merge_min_quantity`` units needed, ``merge_cost`` consumed."""

    merge_min_quantity: int = 3
    merge_cost: int = 2
    max_tier: int = 5
    inventory_limit: int = 20


@dataclass(slots=True)
class SourceConfig:
    anilist_url: str = ANILIST_URL
    per_page: int = 50
    timeout_seconds: float = 10.0


@dataclass(slots=True)
class GachaConfig:
    """Top-level configuration container."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)
    draw: DrawConfig = field(default_factory=DrawConfig)
    pity: PityConfig = field(default_factory=PityConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    rng_seed: int | None = None

    @classmethod
    def from_env(cls) -> "GachaConfig":
        """Create config from environment variables prefixed with GACHAFORGE_."""
        prefix = "GACHAFORGE_"

        storage = StorageConfig(
            backend=os.getenv(f"{prefix}STORAGE_BACKEND", "memory"),
            dsn=os.getenv(f"{prefix}STORAGE_DSN"),
            echo_sql=_flag(os.getenv(f"{prefix}STORAGE_ECHO_SQL", "false")),
        )

        admin = AdminConfig(
            admin_ids={
                _id.strip()
                for _id in os.getenv(f"{prefix}ADMIN_IDS", "").split(",")
                if _id.strip()
            },
            enable_audit_logs=_flag(os.getenv(f"{prefix}ADMIN_ENABLE_AUDIT_LOGS", "true")),
        )

        draw = DrawConfig(
            cooldown_seconds=int(os.getenv(f"{prefix}DRAW_COOLDOWN", str(15 * 60))),
            candidates_per_draw=int(os.getenv(f"{prefix}DRAW_CANDIDATES", "3")),
            choice_timeout_seconds=float(os.getenv(f"{prefix}DRAW_CHOICE_TIMEOUT", "60")),
            max_banner_attempts=int(os.getenv(f"{prefix}DRAW_MAX_BANNER_ATTEMPTS", "4")),
            max_reroll_chance=float(os.getenv(f"{prefix}DRAW_MAX_REROLL_CHANCE", "0.95")),
            rarity_weights=_parse_rarity_weights(os.getenv(f"{prefix}DRAW_RARITY_WEIGHTS")),
        )

        pity = PityConfig(
            legendary_threshold=int(os.getenv(f"{prefix}PITY_LEGENDARY", "30")),
            mythic_threshold=int(os.getenv(f"{prefix}PITY_MYTHIC", "100")),
        )

        ledger = LedgerConfig(
            merge_min_quantity=int(os.getenv(f"{prefix}MERGE_MIN_QUANTITY", "3")),
            merge_cost=int(os.getenv(f"{prefix}MERGE_COST", "2")),
            max_tier=int(os.getenv(f"{prefix}MAX_TIER", "5")),
            inventory_limit=int(os.getenv(f"{prefix}INVENTORY_LIMIT", "20")),
        )

        source = SourceConfig(
            anilist_url=os.getenv(f"{prefix}ANILIST_URL", ANILIST_URL) or ANILIST_URL,
            per_page=int(os.getenv(f"{prefix}ANILIST_PER_PAGE", "50")),
            timeout_seconds=float(os.getenv(f"{prefix}ANILIST_TIMEOUT", "10")),
        )

        return cls(
            storage=storage,
            admin=admin,
            draw=draw,
            pity=pity,
            ledger=ledger,
            source=source,
            rng_seed=(
                int(os.getenv(f"{prefix}RNG_SEED")) if os.getenv(f"{prefix}RNG_SEED") else None
            ),
        )


def _flag(raw: str) -> bool:
    return raw.lower() in {"1", "true", "yes"}


def _parse_rarity_weights(raw: str | None) -> Mapping[str, float]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON for GACHAFORGE_DRAW_RARITY_WEIGHTS") from exc
    if not isinstance(data, dict):
        raise ValueError("GACHAFORGE_DRAW_RARITY_WEIGHTS must be a JSON object")
    return {str(k): float(v) for k, v in data.items()}
