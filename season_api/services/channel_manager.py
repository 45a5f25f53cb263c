"""Client for the channel manager proxy.

Every call is a POST of ``{"action": ..., **payload}`` to the proxy edge
function, authorised with the caller's bearer token. The proxy answers
``{"data": ...}`` on success. No call is retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import httpx

from season_api.core.config import get_settings
from season_api.core.errors import ChannelManagerError
from season_api.schemas.channel_manager import ChannelManagerPayload, RoomType, RoomTypeRoom

logger = logging.getLogger(__name__)

DEFAULT_RATE_ID = 1
DEFAULT_CHANNEL = "BE"

_room_types_cache: dict[str, tuple[float, list[RoomType]]] = {}


def clear_room_types_cache() -> None:
    _room_types_cache.clear()


def _error_details(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or json.dumps(body))
    return json.dumps(body)


class ChannelManagerClient:
    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout: float = 30.0,
        cache_seconds: int = 300,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.access_token = access_token
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self._transport = transport

    async def _call(self, action: str, payload: dict | None = None) -> Any:
        logger.info("Calling channel manager proxy: %s", action)
        body = {"action": action, **(payload or {})}
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout), transport=self._transport
            ) as client:
                response = await client.post(
                    self.base_url,
                    json=body,
                    headers={"Authorization": f"Bearer {self.access_token}"},
                )
        except httpx.HTTPError as exc:
            raise ChannelManagerError(f"Channel manager unreachable: {exc}") from exc

        if response.is_error:
            details = _error_details(response)
            logger.error(
                "Channel manager %s failed with %s: %s", action, response.status_code, details
            )
            raise ChannelManagerError(
                f"Channel manager returned {response.status_code}: {details}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ChannelManagerError("Channel manager returned a non-JSON body.") from exc
        return data.get("data") if isinstance(data, dict) else data

    async def save_channel_manager_settings(self, payload: ChannelManagerPayload) -> Any:
        return await self._call("save_channel_manager", payload.to_wire())

    async def fetch_room_types(self) -> list[RoomType]:
        cached = _room_types_cache.get(self.base_url)
        if cached and time.monotonic() - cached[0] < self.cache_seconds:
            return cached[1]

        flat_rooms = await self._call("get_room_types")
        if not isinstance(flat_rooms, list):
            logger.warning("Unexpected get_room_types response: %r", flat_rooms)
            return []

        by_type: dict[int, RoomType] = {}
        for room in flat_rooms:
            type_id = room.get("id_room_type")
            if not type_id:
                continue
            room_type = by_type.setdefault(
                type_id,
                RoomType(
                    id_room_type=type_id,
                    label=room.get("room_type_label") or f"Type {type_id}",
                ),
            )
            if room.get("id_room") is not None:
                room_type.rooms.append(
                    RoomTypeRoom(id_room=room["id_room"], label=room.get("label") or "")
                )

        room_types = list(by_type.values())
        _room_types_cache[self.base_url] = (time.monotonic(), room_types)
        return room_types

    async def fetch_prices(
        self,
        room_type_ids: list[int],
        date_from: str,
        date_to: str,
        *,
        id_rate: int = DEFAULT_RATE_ID,
        cod_channel: str = DEFAULT_CHANNEL,
    ) -> dict[int, Any]:
        """Prices per room type; a failing room type is logged and left out."""
        results = await asyncio.gather(
            *[
                self._call(
                    "get_prices",
                    {
                        "id_room_type": room_type_id,
                        "id_rate": id_rate,
                        "cod_channel": cod_channel,
                        "date_from": date_from,
                        "date_to": date_to,
                    },
                )
                for room_type_id in room_type_ids
            ],
            return_exceptions=True,
        )

        prices: dict[int, Any] = {}
        for room_type_id, result in zip(room_type_ids, results):
            if isinstance(result, Exception):
                logger.warning("Prices for room type %s failed: %s", room_type_id, result)
                continue
            prices[room_type_id] = result
        return prices


def build_channel_manager_client(access_token: str) -> ChannelManagerClient:
    settings = get_settings()
    if not settings.channel_manager_proxy_url:
        raise ChannelManagerError("CHANNEL_MANAGER_PROXY_URL is not configured.")
    return ChannelManagerClient(
        settings.channel_manager_proxy_url,
        access_token,
        timeout=settings.channel_manager_timeout_seconds,
        cache_seconds=settings.room_types_cache_seconds,
    )
