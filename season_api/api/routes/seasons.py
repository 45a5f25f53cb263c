import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from supabase import Client

from season_api.api import deps
from season_api.core.errors import (
    DuplicateSeasonRequest,
    InvalidStatusTransition,
    SeasonCalendarNotFound,
    SeasonRequestNotFound,
)
from season_api.crud.profile import can_manage_prices
from season_api.crud.room import get_user_rooms, user_owns_room
from season_api.crud.season_request import (
    create_season_pricing_request,
    get_current_season_request,
    get_existing_season_pricing_room_ids,
    get_user_season_pricing_requests,
    has_existing_season_pricing_request,
    resubmit_season_pricing_request,
)
from season_api.db.base import get_supabase
from season_api.schemas.season import (
    BasePrices,
    ExistingRoomIdsResponse,
    SeasonCalendarResponse,
    SeasonPricingRequestCreate,
    SeasonPricingRequestListResponse,
    SeasonPricingRequestResponse,
    SeasonPricingResubmit,
    SuggestionResponse,
)
from season_api.services.price_suggestion import suggest_prices
from season_api.services.season_calendar import (
    SeasonCalendarParse,
    build_items,
    count_seasons,
    load_season_calendar,
)

router = APIRouter(prefix="/v1.0/seasons/{season_year}", tags=["seasons"])


async def _load_calendar(season_year: int) -> SeasonCalendarParse:
    try:
        return await load_season_calendar(season_year)
    except SeasonCalendarNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except httpx.HTTPError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not load the season calendar: {e}",
        )


def _check_can_manage_prices(current_user: dict) -> None:
    if not can_manage_prices(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Season requests are not available for smart pricing accounts.",
        )


@router.get("/periods", response_model=SeasonCalendarResponse)
async def get_season_periods(
    season_year: int,
    current_user: dict = Depends(deps.get_current_user),
):
    """Season calendar for a year, with any rows that could not be parsed."""
    parsed = await _load_calendar(season_year)
    return SeasonCalendarResponse(
        season_year=season_year,
        periods=parsed.periods,
        errors=parsed.errors,
        counts=count_seasons(parsed.periods),
    )


@router.post("/suggestions", response_model=SuggestionResponse)
async def get_price_suggestions(
    season_year: int,
    payload: BasePrices,
    current_user: dict = Depends(deps.get_current_user),
):
    """Suggested price for every period of the season, from the owner's base prices."""
    if payload.base_standard is None or payload.base_standard <= 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="A positive standard price is required.",
        )
    parsed = await _load_calendar(season_year)
    return SuggestionResponse(
        season_year=season_year,
        suggestions=suggest_prices(
            parsed.periods, payload.base_min, payload.base_standard, payload.base_max
        ),
    )


@router.get("/requests", response_model=SeasonPricingRequestListResponse)
async def list_my_requests(
    season_year: int,
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    rows = await get_user_season_pricing_requests(client, current_user["id"], season_year)
    return SeasonPricingRequestListResponse(items=rows)


@router.get("/requests/rooms", response_model=ExistingRoomIdsResponse)
async def list_requested_rooms(
    season_year: int,
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """Rooms of the caller that already have a pending or done request this season."""
    room_ids = await get_existing_season_pricing_room_ids(
        client, current_user["id"], season_year
    )
    return ExistingRoomIdsResponse(season_year=season_year, room_ids=room_ids)


@router.get("/requests/current", response_model=SeasonPricingRequestResponse)
async def get_current_request(
    season_year: int,
    room_id: str = Query(..., min_length=1),
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """The applied season in force for a room: the done request no later one supersedes."""
    if not await user_owns_room(client, current_user["id"], room_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    request = await get_current_season_request(client, season_year, room_id)
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No applied season for this room in {season_year}.",
        )
    return request


@router.post(
    "/requests",
    response_model=SeasonPricingRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_season_request(
    season_year: int,
    payload: SeasonPricingRequestCreate,
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """Submit a whole season of prices for one room, for admin review."""
    _check_can_manage_prices(current_user)
    if not await user_owns_room(client, current_user["id"], payload.room_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    if await has_existing_season_pricing_request(client, season_year, payload.room_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"A request already exists for this room in {season_year}. "
                "Wait for it to be processed or ask an administrator to cancel it."
            ),
        )

    items = payload.items
    if items is None:
        parsed = await _load_calendar(season_year)
        items = build_items(parsed.periods, payload.inputs)
    if not items:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No period to submit.",
        )

    room_name = payload.room_name
    if room_name is None:
        rooms = await get_user_rooms(client, current_user["id"])
        room_name = next(
            (r.get("room_name") for r in rooms if r.get("room_id") == payload.room_id), None
        )

    try:
        return await create_season_pricing_request(
            client,
            user_id=current_user["id"],
            season_year=season_year,
            room_id=payload.room_id,
            room_name=room_name,
            items=[item.model_dump(mode="json") for item in items],
        )
    except DuplicateSeasonRequest as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post(
    "/requests/{request_id}/resubmit",
    response_model=SeasonPricingRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def resubmit_season_request(
    season_year: int,
    request_id: str,
    payload: SeasonPricingResubmit,
    current_user: dict = Depends(deps.get_current_user),
    client: Client = Depends(get_supabase),
):
    """Propose new prices for an already applied season; the applied request is kept."""
    _check_can_manage_prices(current_user)
    try:
        created = await resubmit_season_pricing_request(
            client,
            current_user["id"],
            request_id,
            [item.model_dump(mode="json") for item in payload.items],
            season_year=season_year,
        )
    except SeasonRequestNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (InvalidStatusTransition, DuplicateSeasonRequest) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return created
