"""Rarity tiers and the weighted rarity roll."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from random import Random
from typing import Iterable, Iterator, Mapping


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


RARITY_ORDER: tuple[Rarity, ...] = tuple(Rarity)


@dataclass(frozen=True, slots=True)
class RarityTier:
    """One outcome class of the rarity roll.

    ``rank_window`` is the inclusive popularity page range handed to the
    character source so higher tiers yield more obscure characters.
    """

    rarity: Rarity
    weight: int
    rank_window: tuple[int, int]
    display_class: str = ""


@dataclass(frozen=True, slots=True)
class RarityTable:
    """Immutable weighted catalog of rarity tiers, ordered common first."""

    tiers: tuple[RarityTier, ...]

    def __post_init__(self) -> None:
        if not self.tiers:
            raise ValueError("Rarity table must contain at least one tier")
        positions = [RARITY_ORDER.index(tier.rarity) for tier in self.tiers]
        if positions != sorted(set(positions)):
            raise ValueError("Rarity tiers must be unique and declared from common to mythic")
        for tier in self.tiers:
            if tier.weight < 0:
                raise ValueError(f"Rarity {tier.rarity.value} has negative weight {tier.weight}")
            low, high = tier.rank_window
            if low < 1 or high < low:
                raise ValueError(f"Rarity {tier.rarity.value} has invalid window {tier.rank_window}")
        if self.total_weight <= 0:
            raise ValueError("Rarity weights must sum to a positive total")

    @property
    def total_weight(self) -> int:
        return sum(tier.weight for tier in self.tiers)

    def __iter__(self) -> Iterator[RarityTier]:
        return iter(self.tiers)

    def get(self, rarity: Rarity | str) -> RarityTier:
        rarity = Rarity(rarity)
        for tier in self.tiers:
            if tier.rarity is rarity:
                return tier
        raise KeyError(f"Rarity {rarity.value} is not part of the table")

    def roll(self, rng: Random) -> RarityTier:
        """Inverse-CDF sample; ties resolve to the first tier in declared order."""
        threshold = rng.random() * self.total_weight
        for tier in self.tiers:
            threshold -= tier.weight
            if threshold < 0:
                return tier
        # Float rounding can leave a residue at the very top of the range.
        return next(tier for tier in reversed(self.tiers) if tier.weight > 0)

    def probabilities(self) -> dict[Rarity, float]:
        total = self.total_weight
        return {tier.rarity: tier.weight / total for tier in self.tiers}

    def with_weights(self, weights: Mapping[str, float]) -> "RarityTable":
        """Return a copy with some tier weights overridden."""
        overrides: dict[Rarity, int] = {}
        for key, value in weights.items():
            if value != int(value):
                raise ValueError(f"Weight for {key} must be an integer, got {value}")
            overrides[Rarity(key)] = int(value)
        return RarityTable(
            tuple(
                replace(tier, weight=overrides[tier.rarity]) if tier.rarity in overrides else tier
                for tier in self.tiers
            )
        )

    @classmethod
    def from_tiers(cls, tiers: Iterable[RarityTier]) -> "RarityTable":
        return cls(tuple(tiers))


DEFAULT_RARITY_TABLE = RarityTable(
    (
        RarityTier(Rarity.COMMON, 60, (1, 10), "grey"),
        RarityTier(Rarity.RARE, 25, (11, 30), "blue"),
        RarityTier(Rarity.EPIC, 10, (31, 80), "purple"),
        RarityTier(Rarity.LEGENDARY, 4, (81, 150), "gold"),
        RarityTier(Rarity.MYTHIC, 1, (151, 300), "red"),
    )
)
