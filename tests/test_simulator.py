from random import Random

import pytest

from gachaforge.config import PityConfig
from gachaforge.diagnostics import RaritySimulator
from gachaforge.domain.pity import PityTracker
from gachaforge.domain.rarity import DEFAULT_RARITY_TABLE, Rarity


def _simulator(seed=21, **config):
    return RaritySimulator(PityTracker(DEFAULT_RARITY_TABLE, PityConfig(**config)), rng=Random(seed))


def test_every_draw_commits_once():
    result = _simulator().simulate(draws=5_000, strategy="first")
    assert sum(result.committed.values()) == 5_000
    assert sum(result.offered.values()) == 15_000


def test_mythic_drought_never_exceeds_pity():
    result = _simulator().simulate(draws=20_000, strategy="first")
    assert result.longest_mythic_drought <= 99
    assert result.committed[Rarity.MYTHIC] > 0


def test_keeping_the_best_shifts_share_upward():
    first = _simulator(seed=4).simulate(draws=20_000, strategy="first")
    best = _simulator(seed=4).simulate(draws=20_000, strategy="best")
    assert best.share(Rarity.COMMON) < first.share(Rarity.COMMON)
    assert best.share(Rarity.MYTHIC) > first.share(Rarity.MYTHIC)


def test_small_pity_forces_rarities():
    result = _simulator(legendary_threshold=2, mythic_threshold=4).simulate(draws=100, strategy="first")
    assert result.forced > 0
    assert result.longest_mythic_drought <= 3


def test_rejects_bad_arguments():
    simulator = _simulator()
    with pytest.raises(ValueError):
        simulator.simulate(draws=0)
    with pytest.raises(ValueError):
        simulator.simulate(draws=10, strategy="worst")
