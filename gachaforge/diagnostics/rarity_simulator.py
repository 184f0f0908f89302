"""Rarity outcome simulation with pity."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Literal

from ..domain.pity import PityState, PityTracker
from ..domain.rarity import RARITY_ORDER, Rarity, RarityTier

ChoiceStrategy = Literal["best", "first", "random"]


@dataclass(slots=True)
class SimulationResult:
    draws: int
    committed: dict[Rarity, int] = field(default_factory=lambda: {r: 0 for r in RARITY_ORDER})
    offered: dict[Rarity, int] = field(default_factory=lambda: {r: 0 for r in RARITY_ORDER})
    forced: int = 0
    longest_mythic_drought: int = 0

    def share(self, rarity: Rarity) -> float:
        return self.committed[rarity] / self.draws if self.draws else 0.0


class RaritySimulator:
    """Monte-Carlo over committed draws, tracking pity the way draw sessions do."""

    def __init__(
        self,
        pity: PityTracker,
        *,
        candidates_per_draw: int = 3,
        rng: Random | None = None,
    ) -> None:
        self._pity = pity
        self._candidates = candidates_per_draw
        self._rng = rng or Random()

    def simulate(self, *, draws: int = 10_000, strategy: ChoiceStrategy = "best") -> SimulationResult:
        if draws <= 0:
            raise ValueError("Draw count must be positive")
        result = SimulationResult(draws=draws)
        state = PityState()
        drought = 0
        for _ in range(draws):
            if self._pity.forced_rarity(state) is not None:
                result.forced += 1
            offered = [self._pity.select(state, self._rng) for _ in range(self._candidates)]
            for tier in offered:
                result.offered[tier.rarity] += 1
            chosen = self._choose(offered, strategy)
            result.committed[chosen.rarity] += 1
            state = self._pity.advance(state, chosen.rarity)

            drought = 0 if chosen.rarity is Rarity.MYTHIC else drought + 1
            result.longest_mythic_drought = max(result.longest_mythic_drought, drought)
        return result

    def _choose(self, offered: list[RarityTier], strategy: ChoiceStrategy) -> RarityTier:
        if strategy == "best":
            return max(offered, key=lambda tier: RARITY_ORDER.index(tier.rarity))
        if strategy == "first":
            return offered[0]
        if strategy == "random":
            return self._rng.choice(offered)
        raise ValueError(f"Unknown choice strategy {strategy}")
