"""Fixed local catalogs with rolled stats."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Mapping, Sequence

from ..domain.banners import Banner
from ..domain.candidates import Candidate, Character
from ..domain.rarity import Rarity, RarityTier

DEFAULT_FORM = "normal"


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    name: str
    image_url: str | None = None
    form: str = DEFAULT_FORM


@dataclass(frozen=True, slots=True)
class StatRange:
    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError(f"Stat range {self.low}-{self.high} is inverted")

    def roll(self, rng: Random) -> int:
        return rng.randint(self.low, self.high)


@dataclass(slots=True)
class LocalCatalogPool:
    """Candidate pool over a fixed list of entries sharing one group label.

    Banners are ignored. When form weights are configured for a rarity a
    form is picked by weight first, then an entry of that form uniformly;
    a form without entries falls back to the whole catalog.
    """

    name: str
    group: str
    entries: Sequence[CatalogEntry]
    stat_rules: Mapping[Rarity, Mapping[str, StatRange]] = field(default_factory=dict)
    form_weights: Mapping[Rarity, Mapping[str, float]] = field(default_factory=dict)
    rng: Random = field(default_factory=Random, repr=False)

    def __post_init__(self) -> None:
        if not self.entries:
            raise ValueError(f"Pool {self.name} has no entries")

    @property
    def forms(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(entry.form for entry in self.entries))

    async def draw(self, tier: RarityTier, banner: Banner | None) -> Candidate:
        entry = self._pick_entry(tier.rarity)
        stats = {
            stat: bounds.roll(self.rng)
            for stat, bounds in self.stat_rules.get(tier.rarity, {}).items()
        }
        return Candidate(
            tier=tier,
            character=Character(name=entry.name, group=self.group, image_url=entry.image_url),
            form=entry.form,
            stats=stats,
        )

    def _pick_entry(self, rarity: Rarity) -> CatalogEntry:
        form = self._pick_form(rarity)
        if form is not None:
            matching = [entry for entry in self.entries if entry.form == form]
            if matching:
                return self.rng.choice(matching)
        return self.rng.choice(list(self.entries))

    def _pick_form(self, rarity: Rarity) -> str | None:
        weights = [(form, weight) for form, weight in self.form_weights.get(rarity, {}).items() if weight > 0]
        if not weights:
            return None
        threshold = self.rng.random() * sum(weight for _, weight in weights)
        for form, weight in weights:
            threshold -= weight
            if threshold < 0:
                return form
        return weights[-1][0]
