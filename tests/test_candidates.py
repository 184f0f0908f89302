import pytest

from gachaforge.domain.banners import Banner
from gachaforge.domain.candidates import CandidateDrawer, Character
from gachaforge.domain.exceptions import ExternalSourceUnavailable
from gachaforge.domain.rarity import DEFAULT_RARITY_TABLE, Rarity
from gachaforge.testing import CharacterFactory, ScriptedCharacterSource

SPIKE = Character("Spike Spiegel", "Cowboy Bebop")
EDWARD = Character("Edward Elric", "Fullmetal Alchemist: Brotherhood")
LUFFY = Character("Monkey D. Luffy", "ONE PIECE")


class _PinnedRandom:
    """Always picks the first entry and always wants to reroll."""

    def __init__(self, value: float = 0.0) -> None:
        self.value = value

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[0]


def _tier(rarity=Rarity.EPIC):
    return DEFAULT_RARITY_TABLE.get(rarity)


@pytest.mark.asyncio()
async def test_draw_without_banner_uses_tier_window():
    source = ScriptedCharacterSource([[SPIKE, EDWARD]])
    drawer = CandidateDrawer(source, rng=_PinnedRandom())

    candidate = await drawer.draw(_tier(Rarity.LEGENDARY), None)

    assert candidate.character == SPIKE
    assert candidate.rarity is Rarity.LEGENDARY
    assert candidate.attempts == 1
    assert source.calls == [(81, 150)]


@pytest.mark.asyncio()
async def test_banner_match_is_accepted_immediately():
    source = ScriptedCharacterSource([[EDWARD]])
    drawer = CandidateDrawer(source, rng=_PinnedRandom())
    banner = Banner("fma", ("fullmetal",), 100)

    candidate = await drawer.draw(_tier(), banner)

    assert candidate.banner_match is True
    assert len(source.calls) == 1


@pytest.mark.asyncio()
async def test_banner_rerolls_until_match():
    source = ScriptedCharacterSource([[SPIKE], [LUFFY], [EDWARD]])
    drawer = CandidateDrawer(source, rng=_PinnedRandom(0.0))
    banner = Banner("fma", ("Fullmetal",), 80)

    candidate = await drawer.draw(_tier(), banner)

    assert candidate.character == EDWARD
    assert candidate.banner_match is True
    assert candidate.attempts == 3


@pytest.mark.asyncio()
async def test_banner_reroll_stops_after_four_fetches():
    source = ScriptedCharacterSource(default=[SPIKE])
    drawer = CandidateDrawer(source, rng=_PinnedRandom(0.0))
    banner = Banner("fma", ("Fullmetal",), 100)

    candidate = await drawer.draw(_tier(), banner)

    assert candidate.character == SPIKE
    assert candidate.banner_match is False
    assert candidate.attempts == 4
    assert len(source.calls) == 4


@pytest.mark.asyncio()
async def test_zero_bonus_never_rerolls():
    source = ScriptedCharacterSource(default=[SPIKE])
    drawer = CandidateDrawer(source, rng=_PinnedRandom(0.0))
    banner = Banner("fma", ("Fullmetal",), 0)

    candidate = await drawer.draw(_tier(), banner)

    assert candidate.attempts == 1
    assert len(source.calls) == 1


@pytest.mark.asyncio()
async def test_empty_fetch_raises():
    drawer = CandidateDrawer(ScriptedCharacterSource(), rng=_PinnedRandom())
    with pytest.raises(ExternalSourceUnavailable):
        await drawer.draw(_tier(), None)


@pytest.mark.asyncio()
async def test_empty_fetch_during_reroll_raises():
    source = ScriptedCharacterSource([[SPIKE], []])
    drawer = CandidateDrawer(source, rng=_PinnedRandom(0.0))
    with pytest.raises(ExternalSourceUnavailable):
        await drawer.draw(_tier(), Banner("fma", ("Fullmetal",), 100))


def test_banner_matching_is_case_insensitive_substring():
    banner = Banner("mix", ("bebop", "One Piece"), 40)
    assert banner.matches("Cowboy Bebop")
    assert banner.matches("ONE PIECE FILM: RED")
    assert not banner.matches("Naruto")


def test_reroll_chance_is_clamped():
    assert Banner("a", ("x",), 100).reroll_chance() == pytest.approx(0.95)
    assert Banner("a", ("x",), 30).reroll_chance() == pytest.approx(0.30)
    assert Banner("a", ("x",), 0).reroll_chance() == 0.0


def test_drawer_requires_one_attempt():
    with pytest.raises(ValueError):
        CandidateDrawer(ScriptedCharacterSource(), max_attempts=0)


@pytest.mark.asyncio()
async def test_banner_matches_generated_characters():
    roster = list(CharacterFactory().batch(5, group="Trigun"))
    source = ScriptedCharacterSource(default=roster)
    drawer = CandidateDrawer(source, rng=_PinnedRandom())
    banner = Banner(name="desert", focus_groups=("trigun",), bonus_percent=80)

    candidate = await drawer.draw(_tier(), banner)

    assert candidate.character == roster[0]
    assert candidate.banner_match
    assert candidate.attempts == 1
