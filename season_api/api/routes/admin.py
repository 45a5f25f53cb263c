import logging
from datetime import date
from typing import Literal

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from supabase import Client

from season_api.api import deps
from season_api.core.errors import (
    ChannelManagerError,
    DuplicateSeasonRequest,
    InvalidStatusTransition,
    NotFlaggedForReconciliation,
    ReconciliationError,
    ReconciliationPending,
    RoomTypeNotResolved,
    SeasonCalendarNotFound,
    SeasonRequestNotFound,
)
from season_api.crud.price_override import get_all_price_overrides_admin
from season_api.crud.room import find_owner_room
from season_api.crud.season_request import (
    create_season_pricing_request,
    get_all_season_pricing_requests,
    get_season_pricing_request,
    has_existing_season_pricing_request,
    update_season_pricing_request_items,
    update_season_pricing_request_status,
)
from season_api.db.base import get_supabase
from season_api.schemas.channel_manager import (
    PriceLookupResponse,
    RoomTypeListResponse,
    RoomTypePrices,
)
from season_api.schemas.price_override import AdminPriceOverridePage
from season_api.schemas.season import (
    AdminSeasonPricingRequestCreate,
    ApplyResultResponse,
    SeasonPricingItemsUpdate,
    SeasonPricingRequestListResponse,
    SeasonPricingRequestResponse,
    SeasonPricingStatus,
    SeasonPricingStatusUpdate,
)
from season_api.services.channel_manager import ChannelManagerClient
from season_api.services.exports import export_request_items_csv, export_requests_csv
from season_api.services.reconciliation import apply_request_to_room, reconcile_request
from season_api.services.season_calendar import build_items, load_season_calendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1.0/admin", tags=["admin"])


async def _get_request_or_404(client: Client, request_id: str) -> dict:
    request = await get_season_pricing_request(client, request_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Season request not found")
    return request


@router.get("/season-requests", response_model=SeasonPricingRequestListResponse)
async def list_season_requests(
    status_filter: SeasonPricingStatus | None = Query(None, alias="status"),
    season_year: int | None = None,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    rows = await get_all_season_pricing_requests(client, status_filter, season_year)
    return SeasonPricingRequestListResponse(items=rows)


@router.get("/season-requests/export")
async def export_season_requests(
    kind: Literal["requests", "items"] = "requests",
    status_filter: SeasonPricingStatus | None = Query(None, alias="status"),
    season_year: int | None = None,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    """CSV download of the request list, or of every period of every request."""
    rows = await get_all_season_pricing_requests(client, status_filter, season_year)
    body = export_requests_csv(rows) if kind == "requests" else export_request_items_csv(rows)
    file_name = f"season_requests_{kind}_{status_filter or 'all'}_{date.today():%Y%m%d}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/season-requests/{request_id}", response_model=SeasonPricingRequestResponse)
async def get_season_request(
    request_id: str,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    return await _get_request_or_404(client, request_id)


@router.post(
    "/season-requests",
    response_model=SeasonPricingRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_validated_season_request(
    payload: AdminSeasonPricingRequestCreate,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    """Record a season already agreed with the owner, directly as done."""
    room = await find_owner_room(client, payload.user_id, payload.room_id, payload.room_name)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    # the pending-only unique index does not cover done rows
    if await has_existing_season_pricing_request(client, payload.season_year, room["room_id"]):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"A request already exists for this room in {payload.season_year}. "
                "Reject the pending one, or resubmit the applied season."
            ),
        )

    items = payload.items
    if items is None:
        try:
            parsed = await load_season_calendar(payload.season_year, adjust_easter=False)
        except SeasonCalendarNotFound as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except httpx.HTTPError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        items = build_items(parsed.periods, payload.inputs)
    if not items:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No period to submit.",
        )

    try:
        return await create_season_pricing_request(
            client,
            user_id=payload.user_id,
            season_year=payload.season_year,
            room_id=room["room_id"],
            room_name=payload.room_name or room.get("room_name"),
            items=[item.model_dump(mode="json") for item in items],
            status="done",
        )
    except DuplicateSeasonRequest as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.patch("/season-requests/{request_id}/status", response_model=SeasonPricingRequestResponse)
async def set_season_request_status(
    request_id: str,
    payload: SeasonPricingStatusUpdate,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    """Mark a pending request done (already applied by hand) or rejected."""
    try:
        return await update_season_pricing_request_status(client, request_id, payload.status)
    except SeasonRequestNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.put("/season-requests/{request_id}/items", response_model=SeasonPricingRequestResponse)
async def edit_season_request_items(
    request_id: str,
    payload: SeasonPricingItemsUpdate,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    try:
        return await update_season_pricing_request_items(
            client, request_id, [item.model_dump(mode="json") for item in payload.items]
        )
    except SeasonRequestNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/season-requests/{request_id}/apply", response_model=ApplyResultResponse)
async def apply_season_request(
    request_id: str,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
    channel_manager: ChannelManagerClient = Depends(deps.get_channel_manager),
):
    """Push an approved request to the channel manager and log it as overrides."""
    request = await _get_request_or_404(client, request_id)
    try:
        result = await apply_request_to_room(client, channel_manager, request)
    except (InvalidStatusTransition, ReconciliationPending) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except RoomTypeNotResolved as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ChannelManagerError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ReconciliationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    logger.info("Admin %s applied season request %s", admin["id"], request_id)
    return ApplyResultResponse(
        request=result.request,
        blocks_applied=result.blocks_applied,
        overrides_created=result.overrides_created,
    )


@router.post("/season-requests/{request_id}/reconcile", response_model=ApplyResultResponse)
async def reconcile_season_request(
    request_id: str,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    """Finish a flagged request from its stored items. Nothing is sent to the channel manager."""
    request = await _get_request_or_404(client, request_id)
    try:
        result = await reconcile_request(client, request)
    except NotFlaggedForReconciliation as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ReconciliationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    logger.info("Admin %s reconciled season request %s", admin["id"], request_id)
    return ApplyResultResponse(
        request=result.request,
        blocks_applied=result.blocks_applied,
        overrides_created=result.overrides_created,
    )


@router.get("/channel-manager/room-types", response_model=RoomTypeListResponse)
async def list_room_types(
    admin: dict = Depends(deps.require_admin),
    channel_manager: ChannelManagerClient = Depends(deps.get_channel_manager),
):
    try:
        room_types = await channel_manager.fetch_room_types()
    except ChannelManagerError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return RoomTypeListResponse(items=room_types)


@router.get("/channel-manager/prices", response_model=PriceLookupResponse)
async def lookup_channel_manager_prices(
    date_from: date = Query(...),
    date_to: date = Query(...),
    room_type_id: list[int] | None = Query(None),
    admin: dict = Depends(deps.require_admin),
    channel_manager: ChannelManagerClient = Depends(deps.get_channel_manager),
):
    """Current channel manager prices, one lookup per room type.

    Without ``room_type_id`` every known room type is queried. Room types whose
    lookup failed are listed in ``failed``.
    """
    if date_to < date_from:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="'date_from' must be less than or equal to 'date_to'",
        )

    if room_type_id:
        room_type_ids = room_type_id
    else:
        try:
            room_types = await channel_manager.fetch_room_types()
        except ChannelManagerError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
        room_type_ids = [room_type.id_room_type for room_type in room_types]

    prices = await channel_manager.fetch_prices(
        room_type_ids, date_from.isoformat(), date_to.isoformat()
    )
    return PriceLookupResponse(
        date_from=date_from,
        date_to=date_to,
        items=[
            RoomTypePrices(id_room_type=type_id, prices=prices[type_id])
            for type_id in room_type_ids
            if type_id in prices
        ],
        failed=[type_id for type_id in room_type_ids if type_id not in prices],
    )


@router.get("/price-overrides", response_model=AdminPriceOverridePage)
async def list_all_price_overrides(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    q_client: str | None = None,
    q_room: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    q_price: str | None = None,
    q_min_stay: str | None = None,
    admin: dict = Depends(deps.require_admin),
    client: Client = Depends(get_supabase),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="'date_from' must be less than or equal to 'date_to'",
        )
    rows, count = await get_all_price_overrides_admin(
        client,
        page=page,
        page_size=page_size,
        q_client=q_client,
        q_room=q_room,
        date_from=date_from,
        date_to=date_to,
        q_price=q_price,
        q_min_stay=q_min_stay,
    )
    return AdminPriceOverridePage(items=rows, count=count, page=page, page_size=page_size)
