"""Pity counters that force rare outcomes after long dry streaks."""

from __future__ import annotations

from dataclasses import dataclass
from random import Random

from .rarity import Rarity, RarityTable, RarityTier
from ..config import PityConfig
from ..storage.base import UserRecord


@dataclass(frozen=True, slots=True)
class PityState:
    legendary: int = 0
    mythic: int = 0

    @classmethod
    def of(cls, record: UserRecord) -> "PityState":
        return cls(legendary=record.pity_legendary, mythic=record.pity_mythic)

    def apply_to(self, record: UserRecord) -> None:
        record.pity_legendary = self.legendary
        record.pity_mythic = self.mythic


class PityTracker:
    """Choose the rarity of a draw and advance counters once a draw is committed."""

    def __init__(self, table: RarityTable, config: PityConfig) -> None:
        if config.legendary_threshold < 1 or config.mythic_threshold < 1:
            raise ValueError("Pity thresholds must be positive")
        self._table = table
        self._config = config

    @property
    def config(self) -> PityConfig:
        return self._config

    def forced_rarity(self, state: PityState) -> Rarity | None:
        if state.mythic >= self._config.mythic_threshold - 1:
            return Rarity.MYTHIC
        if state.legendary >= self._config.legendary_threshold - 1:
            return Rarity.LEGENDARY
        return None

    def select(self, state: PityState, rng: Random) -> RarityTier:
        forced = self.forced_rarity(state)
        if forced is not None:
            return self._table.get(forced)
        return self._table.roll(rng)

    def advance(self, state: PityState, rarity: Rarity) -> PityState:
        legendary_cap = self._config.legendary_threshold
        mythic_cap = self._config.mythic_threshold
        if rarity is Rarity.MYTHIC:
            return PityState(legendary=0, mythic=0)
        if rarity is Rarity.LEGENDARY:
            return PityState(legendary=0, mythic=min(state.mythic + 1, mythic_cap))
        return PityState(
            legendary=min(state.legendary + 1, legendary_cap),
            mythic=min(state.mythic + 1, mythic_cap),
        )
