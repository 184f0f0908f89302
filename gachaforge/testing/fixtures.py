"""Pytest fixtures for gachaforge."""

from __future__ import annotations

from random import Random

import pytest

from ..app import GachaApp
from ..config import GachaConfig
from ..domain.candidates import Character
from .sources import ScriptedCharacterSource

DEFAULT_CHARACTERS = (
    Character("Spike Spiegel", "Cowboy Bebop", "https://img.example/spike.png"),
    Character("Faye Valentine", "Cowboy Bebop", "https://img.example/faye.png"),
    Character("Edward Elric", "Fullmetal Alchemist", "https://img.example/ed.png"),
)


@pytest.fixture()
def memory_app() -> GachaApp:
    return app_fixture()


def app_fixture(
    config: GachaConfig | None = None,
    *,
    source: ScriptedCharacterSource | None = None,
    seed: int = 7,
    **kwargs,
) -> GachaApp:
    """Memory-backed app wired to a scripted character source."""
    return GachaApp(
        config or GachaConfig(),
        character_source=source or ScriptedCharacterSource(default=DEFAULT_CHARACTERS),
        rng=Random(seed),
        **kwargs,
    )
