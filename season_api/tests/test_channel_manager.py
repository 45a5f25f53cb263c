from __future__ import annotations

import json

import httpx
import pytest

from season_api.core.errors import ChannelManagerError
from season_api.schemas.channel_manager import (
    ChannelManagerBlock,
    ChannelManagerPayload,
    Restrictions,
)
from season_api.services.channel_manager import (
    ChannelManagerClient,
    clear_room_types_cache,
)

PROXY_URL = "https://project.supabase.co/functions/v1/channel-manager"


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_room_types_cache()
    yield
    clear_room_types_cache()


def _client(handler, **kwargs) -> ChannelManagerClient:
    return ChannelManagerClient(
        PROXY_URL, "user-token", transport=httpx.MockTransport(handler), **kwargs
    )


def test_save_posts_action_and_blocks_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"saved": 1}})

    payload = ChannelManagerPayload(
        cm={
            "block_0": ChannelManagerBlock(
                id_room_type=7,
                id_rate=1,
                cod_channel="BE",
                date_from="2026-07-01",
                date_to="2026-07-31",
                price=140,
                restrictions=Restrictions(MINST=2),
            )
        }
    )

    result = _run_async(_client(handler).save_channel_manager_settings(payload))

    assert result == {"saved": 1}
    assert seen["auth"] == "Bearer user-token"
    assert seen["body"] == {
        "action": "save_channel_manager",
        "cm": {
            "block_0": {
                "id_room_type": 7,
                "id_rate": 1,
                "cod_channel": "BE",
                "date_from": "2026-07-01",
                "date_to": "2026-07-31",
                "price": 140.0,
                "restrictions": {"MINST": 2},
            }
        },
    }


def test_error_status_raises_with_details():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": "upstream rejected block_0"})

    with pytest.raises(ChannelManagerError) as excinfo:
        _run_async(_client(handler)._call("save_channel_manager", {"cm": {}}))

    assert excinfo.value.status_code == 502
    assert "upstream rejected block_0" in str(excinfo.value)


def test_transport_failure_raises_channel_manager_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ChannelManagerError) as excinfo:
        _run_async(_client(handler)._call("get_room_types"))

    assert excinfo.value.status_code is None


def test_fetch_room_types_groups_and_caches():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content)["action"])
        return httpx.Response(
            200,
            json={
                "data": [
                    {"id_room_type": 7, "room_type_label": "Studio", "id_room": 70, "label": "Studio 1"},
                    {"id_room_type": 7, "room_type_label": "Studio", "id_room": 71, "label": "Studio 2"},
                    {"id_room_type": 9, "id_room": 90, "label": "Villa"},
                    {"id_room_type": None, "id_room": 99},
                ]
            },
        )

    client = _client(handler)
    first = _run_async(client.fetch_room_types())
    second = _run_async(client.fetch_room_types())

    assert calls == ["get_room_types"]
    assert [(t.id_room_type, t.label, len(t.rooms)) for t in first] == [
        (7, "Studio", 2),
        (9, "Type 9", 1),
    ]
    assert second == first


def test_fetch_room_types_without_cache_refetches():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json={"data": []})

    client = _client(handler, cache_seconds=0)
    _run_async(client.fetch_room_types())
    _run_async(client.fetch_room_types())

    assert len(calls) == 2


def test_fetch_prices_keeps_partial_results():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["id_room_type"] == 9:
            return httpx.Response(500, json={"error": "timeout"})
        return httpx.Response(
            200, json={"data": [{"date": body["date_from"], "price": 120}]}
        )

    prices = _run_async(
        _client(handler).fetch_prices([7, 9, 11], "2026-07-01", "2026-07-07")
    )

    assert sorted(prices) == [7, 11]
    assert prices[7] == [{"date": "2026-07-01", "price": 120}]


def _run_async(coro):
    import asyncio

    return asyncio.run(coro)
