from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel


class Restrictions(BaseModel):
    MINST: int | None = None
    MINSA: int | None = None
    MAXST: int | None = None
    MAXSA: int | None = None
    EXST: int | None = None
    EXSTAR: int | None = None
    CLARR: bool | None = None
    CLDEP: bool | None = None


class ChannelManagerBlock(BaseModel):
    id_room_type: int
    id_rate: int
    cod_channel: str
    date_from: str  # YYYY-MM-DD
    date_to: str  # YYYY-MM-DD
    price: float | None = None
    closed: bool | None = None
    restrictions: Restrictions | None = None


class ChannelManagerPayload(BaseModel):
    cm: dict[str, ChannelManagerBlock]

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)


class RoomTypeRoom(BaseModel):
    id_room: int
    label: str


class RoomType(BaseModel):
    id_room_type: int
    label: str
    rooms: list[RoomTypeRoom] = []


class RoomTypeListResponse(BaseModel):
    items: list[RoomType]


class RoomTypePrices(BaseModel):
    id_room_type: int
    prices: Any = None


class PriceLookupResponse(BaseModel):
    date_from: date
    date_to: date
    items: list[RoomTypePrices]
    # room types whose lookup failed; the others are still returned
    failed: list[int] = []
