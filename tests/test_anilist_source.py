import json
from random import Random

import httpx
import pytest

from gachaforge.config import SourceConfig
from gachaforge.sources.anilist import AniListCharacterSource, parse_characters


def _payload(*characters):
    return {"data": {"Page": {"characters": list(characters)}}}


def _character(name, romaji=None, english=None, native=None, image="https://img.example/x.png"):
    title = {"romaji": romaji, "english": english, "native": native}
    return {
        "name": {"full": name},
        "image": {"large": image},
        "media": {"nodes": [{"title": title}]},
    }


def _source(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AniListCharacterSource(SourceConfig(), client=client, rng=Random(5), **kwargs), client


@pytest.mark.asyncio()
async def test_fetch_posts_query_for_page_in_window():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_payload(_character("Spike Spiegel", romaji="Cowboy Bebop")))

    source, client = _source(handler)
    characters = await source.fetch(11, 30)
    await client.aclose()

    assert [c.name for c in characters] == ["Spike Spiegel"]
    assert characters[0].group == "Cowboy Bebop"
    assert characters[0].image_url == "https://img.example/x.png"
    variables = seen[0]["variables"]
    assert 11 <= variables["page"] <= 30
    assert variables["perPage"] == 50
    assert "FAVOURITES_DESC" in seen[0]["query"]


def test_group_label_falls_back_through_titles():
    characters = parse_characters(
        _payload(
            _character("A", romaji="Shingeki no Kyojin", english="Attack on Titan"),
            _character("B", english="Attack on Titan", native="進撃の巨人"),
            _character("C", native="進撃の巨人"),
            {"name": {"full": "D"}, "image": {"large": None}, "media": {"nodes": []}},
        )
    )
    assert [c.group for c in characters] == [
        "Shingeki no Kyojin",
        "Attack on Titan",
        "進撃の巨人",
        "Unknown",
    ]
    assert characters[3].image_url is None


@pytest.mark.asyncio()
async def test_error_status_maps_to_empty():
    source, client = _source(lambda request: httpx.Response(500, text="down"))
    assert await source.fetch(1, 10) == []
    await client.aclose()


@pytest.mark.asyncio()
async def test_transport_error_maps_to_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    source, client = _source(handler)
    assert await source.fetch(1, 10) == []
    await client.aclose()


@pytest.mark.asyncio()
async def test_malformed_payload_maps_to_empty():
    source, client = _source(lambda request: httpx.Response(200, text="<html>"))
    assert await source.fetch(1, 10) == []
    await client.aclose()

    source, client = _source(lambda request: httpx.Response(200, json={"data": None}))
    assert await source.fetch(1, 10) == []
    await client.aclose()

    source, client = _source(lambda request: httpx.Response(200, json=["unexpected"]))
    assert await source.fetch(1, 10) == []
    await client.aclose()


@pytest.mark.asyncio()
async def test_invalid_window_is_rejected():
    source, client = _source(lambda request: httpx.Response(200, json=_payload()))
    with pytest.raises(ValueError):
        await source.fetch(10, 1)
    await client.aclose()


@pytest.mark.asyncio()
async def test_injected_client_is_left_open():
    source, client = _source(lambda request: httpx.Response(200, json=_payload()))
    await source.aclose()
    assert not client.is_closed
    await client.aclose()
