from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

SeasonPricingStatus = Literal["pending", "done", "rejected"]


class SeasonPeriod(BaseModel):
    """One row of the season calendar file. Dates stay in dd/MM/yyyy."""

    model_config = {"frozen": True}

    start_date: str
    end_date: str
    period_type: str
    season_label: str
    min_stay_text: str
    comment: str = ""


class CsvParseError(BaseModel):
    line: int
    raw: str
    reason: str


class SeasonCounts(BaseModel):
    tres_haute: int = 0
    haute: int = 0
    moyenne: int = 0
    basse: int = 0


class SeasonCalendarResponse(BaseModel):
    season_year: int
    periods: list[SeasonPeriod]
    errors: list[CsvParseError] = []
    counts: SeasonCounts


class SeasonPricingItem(BaseModel):
    start_date: date
    end_date: date
    period_type: str = ""
    season: str = ""
    price: float | None = Field(None, ge=0)
    min_stay: int | None = Field(None, ge=0)
    comment: str = ""
    closed: bool = False
    closed_on_arrival: bool = False
    closed_on_departure: bool = False

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class PeriodInput(BaseModel):
    """Owner-entered values for one period, addressed by its index in the calendar."""

    price: float | None = Field(None, ge=0)
    min_stay: int | None = Field(None, ge=0)
    closed: bool = False
    closed_on_arrival: bool = False
    closed_on_departure: bool = False


class BasePrices(BaseModel):
    base_min: float | None = None
    base_standard: float | None = None
    base_max: float | None = None


class SuggestionResponse(BaseModel):
    season_year: int
    suggestions: list[int | float | None]


class SeasonPricingRequestCreate(BaseModel):
    room_id: str = Field(..., min_length=1)
    room_name: str | None = None
    items: list[SeasonPricingItem] | None = None
    # Alternative to ``items``: index -> values, merged with the season calendar.
    inputs: dict[int, PeriodInput] | None = None


class AdminSeasonPricingRequestCreate(SeasonPricingRequestCreate):
    user_id: str = Field(..., min_length=1)
    season_year: int


class SeasonPricingResubmit(BaseModel):
    items: list[SeasonPricingItem] = Field(..., min_length=1)


class SeasonPricingItemsUpdate(BaseModel):
    items: list[SeasonPricingItem] = Field(..., min_length=1)


class SeasonPricingStatusUpdate(BaseModel):
    status: SeasonPricingStatus


class ProfileSummary(BaseModel):
    id: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class SeasonPricingRequestResponse(BaseModel):
    id: str
    user_id: str
    season_year: int
    room_id: str | None = None
    room_name: str | None = None
    items: list[SeasonPricingItem]
    status: SeasonPricingStatus
    supersedes_id: str | None = None
    needs_reconciliation: bool = False
    reconciliation_error: str | None = None
    trace_written: bool = False
    created_at: datetime | None = None
    profiles: ProfileSummary | None = None


class SeasonPricingRequestListResponse(BaseModel):
    items: list[SeasonPricingRequestResponse]


class ExistingRoomIdsResponse(BaseModel):
    season_year: int
    room_ids: list[str]


class ApplyResultResponse(BaseModel):
    request: SeasonPricingRequestResponse
    blocks_applied: int
    overrides_created: int
