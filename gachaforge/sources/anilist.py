"""AniList GraphQL character source."""

from __future__ import annotations

import logging
from random import Random
from typing import Any, Sequence

import httpx

from ..config import SourceConfig
from ..domain.candidates import Character

logger = logging.getLogger(__name__)

CHARACTERS_QUERY = """
query ($page: Int, $perPage: Int) {
  Page(page: $page, perPage: $perPage) {
    characters(sort: FAVOURITES_DESC) {
      name { full }
      image { large }
      media(perPage: 1) { nodes { title { romaji english native } } }
    }
  }
}
"""

UNKNOWN_GROUP = "Unknown"


class AniListCharacterSource:
    """Fetch one page of popular characters from a popularity window.

    Failures of any kind are logged and reported as an empty page; the
    candidate drawer turns that into ``ExternalSourceUnavailable``.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        rng: Random | None = None,
    ) -> None:
        self._config = config or SourceConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)
        self._rng = rng or Random()

    async def fetch(self, rank_low: int, rank_high: int) -> Sequence[Character]:
        if rank_low < 1 or rank_high < rank_low:
            raise ValueError(f"Invalid popularity window {rank_low}-{rank_high}")
        page = self._rng.randint(rank_low, rank_high)
        payload = {
            "query": CHARACTERS_QUERY,
            "variables": {"page": page, "perPage": self._config.per_page},
        }
        try:
            response = await self._client.post(
                self._config.anilist_url,
                json=payload,
                timeout=self._config.timeout_seconds,
            )
            response.raise_for_status()
            characters = parse_characters(response.json())
        except httpx.HTTPError as exc:
            logger.warning("AniList request for page %d failed: %s", page, exc)
            return []
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("AniList returned a malformed payload for page %d: %s", page, exc)
            return []

        if not characters:
            logger.warning("AniList page %d returned no characters", page)
        return characters

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def parse_characters(data: dict[str, Any]) -> list[Character]:
    """Turn an AniList ``Page.characters`` response into characters."""
    nodes = (((data or {}).get("data") or {}).get("Page") or {}).get("characters") or []
    characters: list[Character] = []
    for node in nodes:
        name = (node.get("name") or {}).get("full")
        if not name:
            continue
        image = (node.get("image") or {}).get("large")
        characters.append(Character(name=name, group=_group_label(node), image_url=image))
    return characters


def _group_label(node: dict[str, Any]) -> str:
    media = (node.get("media") or {}).get("nodes") or []
    title = (media[0].get("title") if media else None) or {}
    return title.get("romaji") or title.get("english") or title.get("native") or UNKNOWN_GROUP
