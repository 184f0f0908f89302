"""Testing utilities for gachaforge."""

from .clock import FrozenClock
from .factory import CharacterFactory, UserRefFactory
from .fixtures import app_fixture, memory_app
from .sources import ScriptedCharacterSource

__all__ = [
    "CharacterFactory",
    "FrozenClock",
    "UserRefFactory",
    "ScriptedCharacterSource",
    "app_fixture",
    "memory_app",
]
