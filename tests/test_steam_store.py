"""
Tests for the Steam Web API connector.
"""
import aiohttp
import pytest

from http_fakes import FakeResponse, FakeSession
from steamshelf.exceptions import TransportError
from steamshelf.stores.steam import SteamStore


def make_store(responses):
    session = FakeSession(responses)
    return SteamStore("api-key", "76561198000000000", session), session


@pytest.mark.asyncio
async def test_get_library_maps_games():
    store, session = make_store([FakeResponse(200, {'response': {'game_count': 2, 'games': [
        {'appid': 620, 'name': 'Portal 2', 'playtime_forever': 75},
        {'appid': 400, 'name': 'Portal'},
    ]}})])

    games = await store.get_library()

    assert [(g.external_id, g.name, g.playtime_minutes) for g in games] == [
        (620, 'Portal 2', 75),
        (400, 'Portal', None),
    ]
    params = session.calls[0]['params']
    assert params['steamid'] == "76561198000000000"
    assert params['include_appinfo'] == '1'
    assert store.store_name == 'steam'


@pytest.mark.asyncio
async def test_private_profile_returns_empty_list():
    store, _ = make_store([FakeResponse(200, {'response': {}})])
    assert await store.get_library() == []


@pytest.mark.asyncio
async def test_http_error_raises_transport_error():
    store, _ = make_store([FakeResponse(403, 'Forbidden')])

    with pytest.raises(TransportError) as exc_info:
        await store.get_library()

    assert exc_info.value.status == 403


@pytest.mark.asyncio
async def test_network_error_raises_transport_error():
    store, _ = make_store([aiohttp.ClientConnectionError("unreachable")])

    with pytest.raises(TransportError):
        await store.get_library()


@pytest.mark.asyncio
async def test_malformed_body_raises_transport_error():
    store, _ = make_store([FakeResponse(200, b'<html>')])

    with pytest.raises(TransportError):
        await store.get_library()


@pytest.mark.asyncio
async def test_missing_response_object_raises_transport_error():
    store, _ = make_store([FakeResponse(200, {'error': 'nope'})])

    with pytest.raises(TransportError):
        await store.get_library()
