"""Candidate generation for draw sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from random import Random
from typing import Mapping, Protocol, Sequence

from .banners import Banner
from .exceptions import ExternalSourceUnavailable
from .rarity import Rarity, RarityTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Character:
    """A drawable character as returned by a character source."""

    name: str
    group: str
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class Candidate:
    tier: RarityTier
    character: Character
    attempts: int = 1
    banner_match: bool = False
    form: str | None = None
    stats: Mapping[str, int] = field(default_factory=dict)

    @property
    def rarity(self) -> Rarity:
        return self.tier.rarity


class CharacterSource(Protocol):
    async def fetch(self, rank_low: int, rank_high: int) -> Sequence[Character]:
        """Return characters from the popularity window; empty on failure."""
        ...


class CandidatePool(Protocol):
    async def draw(self, tier: RarityTier, banner: Banner | None) -> Candidate:
        ...


class CandidateDrawer(CandidatePool):
    """Draw one candidate from an external source, rerolling toward the banner."""

    def __init__(
        self,
        source: CharacterSource,
        *,
        rng: Random | None = None,
        max_attempts: int = 4,
        max_reroll_chance: float = 0.95,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._source = source
        self._rng = rng or Random()
        self._max_attempts = max_attempts
        self._max_reroll_chance = max_reroll_chance

    async def draw(self, tier: RarityTier, banner: Banner | None) -> Candidate:
        attempts = 0
        while True:
            low, high = tier.rank_window
            characters = list(await self._source.fetch(low, high))
            attempts += 1
            if not characters:
                raise ExternalSourceUnavailable(
                    f"Character source returned nothing for {tier.rarity.value} window {low}-{high}"
                )
            character = self._rng.choice(characters)

            if banner is None:
                return Candidate(tier=tier, character=character, attempts=attempts)
            if banner.matches(character.group):
                return Candidate(tier=tier, character=character, attempts=attempts, banner_match=True)

            reroll = self._rng.random() < banner.reroll_chance(self._max_reroll_chance)
            if reroll and attempts < self._max_attempts:
                logger.debug(
                    "Rerolling %s (%s) off banner %s, attempt %d",
                    character.name,
                    character.group,
                    banner.name,
                    attempts,
                )
                continue
            return Candidate(tier=tier, character=character, attempts=attempts)
