"""Candidate pools and the character sources behind them."""

from .anilist import AniListCharacterSource, parse_characters
from .local import CatalogEntry, LocalCatalogPool, StatRange

__all__ = [
    "AniListCharacterSource",
    "CatalogEntry",
    "LocalCatalogPool",
    "StatRange",
    "parse_characters",
]
