from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class NewPriceOverride(BaseModel):
    room_id: str = Field(..., min_length=1)
    room_name: str = ""
    start_date: date
    end_date: date
    price: float | None = Field(None, ge=0)
    closed: bool | None = None
    min_stay: int | None = Field(None, ge=0)
    closed_on_arrival: bool | None = None
    closed_on_departure: bool | None = None

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class PriceOverrideResponse(BaseModel):
    id: str
    user_id: str
    room_id: str
    room_name: str | None = None
    start_date: date
    end_date: date
    price: float | None = None
    closed: bool | None = None
    min_stay: int | None = None
    closed_on_arrival: bool | None = None
    closed_on_departure: bool | None = None
    created_at: datetime | None = None


class PriceOverrideListResponse(BaseModel):
    items: list[PriceOverrideResponse]


class OverrideClient(BaseModel):
    id: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class AdminPriceOverrideResponse(PriceOverrideResponse):
    profiles: OverrideClient | None = None


class AdminPriceOverridePage(BaseModel):
    items: list[AdminPriceOverrideResponse]
    count: int
    page: int
    page_size: int


class CalendarBlock(BaseModel):
    id: str
    label: str
    room_id: str
    room_name: str | None = None
    check_in_date: date
    check_out_date: date
    status: str
    cod_channel: str


class CalendarBlockListResponse(BaseModel):
    items: list[CalendarBlock]


class GridCell(BaseModel):
    date: date
    price: float | None = None
    min_stay: int | None = None
    closed: bool = False
    closed_on_arrival: bool = False
    closed_on_departure: bool = False
    override_id: str | None = None


class RoomPriceRow(BaseModel):
    room_id: str
    room_name: str | None = None
    cells: list[GridCell]


class PriceGridResponse(BaseModel):
    start_date: date
    end_date: date
    rooms: list[RoomPriceRow]
