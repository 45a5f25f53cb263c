from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from supabase import Client

from season_api.api import deps
from season_api.crud.price_override import add_override, delete_override, get_overrides
from season_api.crud.room import get_user_rooms, user_owns_room
from season_api.db.base import get_supabase
from season_api.schemas.price_override import (
    CalendarBlockListResponse,
    NewPriceOverride,
    PriceGridResponse,
    PriceOverrideListResponse,
    PriceOverrideResponse,
)
from season_api.services.calendar_view import build_price_grid, closed_override_blocks

router = APIRouter(prefix="/v1.0/price-overrides", tags=["price-overrides"])

MAX_GRID_DAYS = 366


@router.get("", response_model=PriceOverrideListResponse)
async def list_overrides(
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """The caller's override log, newest first."""
    rows = await get_overrides(client, current_user["id"])
    return PriceOverrideListResponse(items=rows)


@router.post("", response_model=PriceOverrideResponse, status_code=status.HTTP_201_CREATED)
async def create_override(
    payload: NewPriceOverride,
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    if not await user_owns_room(client, current_user["id"], payload.room_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return await add_override(client, current_user["id"], payload.model_dump(mode="json"))


@router.delete("/{override_id}", status_code=status.HTTP_200_OK)
async def remove_override(
    override_id: str,
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """Delete a log entry. This does not revert anything in the channel manager."""
    if not await delete_override(client, override_id, current_user["id"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Override not found")
    return {"message": "Override deleted", "id": override_id}


@router.get("/calendar-blocks", response_model=CalendarBlockListResponse)
async def list_calendar_blocks(
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """Closed periods from the override log, shaped like calendar reservations."""
    rows = await get_overrides(client, current_user["id"])
    overrides = [PriceOverrideResponse.model_validate(row) for row in rows]
    return CalendarBlockListResponse(items=closed_override_blocks(overrides))


@router.get("/grid", response_model=PriceGridResponse)
async def get_price_grid(
    start: date = Query(...),
    end: date = Query(...),
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="'start' must be less than or equal to 'end'",
        )
    if (end - start).days >= MAX_GRID_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"The grid covers at most {MAX_GRID_DAYS} days.",
        )

    rooms = await get_user_rooms(client, current_user["id"])
    rows = await get_overrides(client, current_user["id"])
    overrides = [PriceOverrideResponse.model_validate(row) for row in rows]
    return PriceGridResponse(
        start_date=start,
        end_date=end,
        rooms=build_price_grid(overrides, rooms, start, end),
    )
