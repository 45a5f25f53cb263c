"""Applying an approved season request to the channel manager.

Order of operations:

1. resolve the room type id (no side effect happens before this succeeds),
2. push every period as one block in a single channel manager call,
3. log one price override per period,
4. mark the request done.

The channel manager is the source of truth. When step 3 or 4 fails after step
2 succeeded the request is flagged ``needs_reconciliation``. A flagged request
is never pushed again: ``reconcile_request`` writes the missing trace and marks
it done without calling the channel manager.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from supabase import Client

from season_api.core.errors import (
    InvalidStatusTransition,
    NotFlaggedForReconciliation,
    ReconciliationError,
    ReconciliationPending,
    RoomTypeNotResolved,
)
from season_api.crud.price_override import add_overrides
from season_api.crud.room import find_owner_room
from season_api.crud.season_request import (
    complete_reconciliation,
    flag_for_reconciliation,
    update_season_pricing_request_status,
)
from season_api.schemas.channel_manager import (
    ChannelManagerBlock,
    ChannelManagerPayload,
    Restrictions,
)
from season_api.schemas.season import SeasonPricingItem
from season_api.services.channel_manager import (
    DEFAULT_CHANNEL,
    DEFAULT_RATE_ID,
    ChannelManagerClient,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_STAY = 2


@dataclass
class ApplyResult:
    request: dict
    blocks_applied: int
    overrides_created: int


def _parse_room_type_id(value) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


async def resolve_room_type_id(client: Client, request: dict) -> int:
    room = await find_owner_room(
        client, request["user_id"], request.get("room_id"), request.get("room_name")
    )
    room_type_id = _parse_room_type_id(room.get("room_id_2")) if room else None
    if room_type_id is None:
        raise RoomTypeNotResolved(
            f"No channel manager room type for room "
            f"{request.get('room_name') or request.get('room_id')}."
        )
    return room_type_id


def build_block(room_type_id: int, item: SeasonPricingItem) -> ChannelManagerBlock:
    restrictions = Restrictions(
        MINST=item.min_stay if item.min_stay is not None else DEFAULT_MIN_STAY,
        CLARR=True if item.closed_on_arrival else None,
        CLDEP=True if item.closed_on_departure else None,
    )
    return ChannelManagerBlock(
        id_room_type=room_type_id,
        id_rate=DEFAULT_RATE_ID,
        cod_channel=DEFAULT_CHANNEL,
        date_from=item.start_date.isoformat(),
        date_to=item.end_date.isoformat(),
        price=item.price,
        closed=True if item.closed else None,
        restrictions=restrictions,
    )


def build_payload(room_type_id: int, items: list[SeasonPricingItem]) -> ChannelManagerPayload:
    return ChannelManagerPayload(
        cm={f"block_{idx}": build_block(room_type_id, item) for idx, item in enumerate(items)}
    )


def build_override_rows(request: dict, items: list[SeasonPricingItem]) -> list[dict]:
    return [
        {
            "user_id": request["user_id"],
            "room_id": request.get("room_id"),
            "room_name": request.get("room_name") or "",
            "start_date": item.start_date.isoformat(),
            "end_date": item.end_date.isoformat(),
            "price": item.price,
            "closed": item.closed,
            "min_stay": item.min_stay,
            "closed_on_arrival": item.closed_on_arrival,
            "closed_on_departure": item.closed_on_departure,
        }
        for item in items
    ]


def _items(request: dict) -> list[SeasonPricingItem]:
    return [SeasonPricingItem.model_validate(item) for item in request.get("items") or []]


async def apply_request_to_room(
    client: Client, channel_manager: ChannelManagerClient, request: dict
) -> ApplyResult:
    if request.get("needs_reconciliation"):
        raise ReconciliationPending(
            f"Season request {request['id']} was already sent; reconcile it instead."
        )
    if request["status"] != "pending":
        raise InvalidStatusTransition(request["status"], "done")

    room_type_id = await resolve_room_type_id(client, request)
    items = _items(request)

    payload = build_payload(room_type_id, items)
    await channel_manager.save_channel_manager_settings(payload)
    logger.info(
        "Applied %d block(s) for request %s to room type %s",
        len(payload.cm),
        request["id"],
        room_type_id,
    )

    try:
        overrides = await add_overrides(client, build_override_rows(request, items))
    except Exception as exc:
        await flag_for_reconciliation(client, request["id"], str(exc))
        raise ReconciliationError(
            "Prices were sent to the channel manager but the override log could not be written."
        ) from exc

    try:
        updated = await update_season_pricing_request_status(client, request["id"], "done")
    except InvalidStatusTransition as exc:
        # another admin moved the request while the blocks were being pushed
        await flag_for_reconciliation(client, request["id"], str(exc), trace_written=True)
        raise ReconciliationError(
            "Prices were sent to the channel manager but the request changed status meanwhile."
        ) from exc

    return ApplyResult(
        request=updated,
        blocks_applied=len(payload.cm),
        overrides_created=len(overrides),
    )


async def reconcile_request(client: Client, request: dict) -> ApplyResult:
    """Finish a flagged request without calling the channel manager again.

    The override trace is written unless it already was, then the flag is
    cleared and the request marked done.
    """
    if not request.get("needs_reconciliation"):
        raise NotFlaggedForReconciliation(
            f"Season request {request['id']} is not flagged for reconciliation."
        )

    overrides_created = 0
    if not request.get("trace_written"):
        try:
            overrides = await add_overrides(client, build_override_rows(request, _items(request)))
        except Exception as exc:
            await flag_for_reconciliation(client, request["id"], str(exc))
            raise ReconciliationError("The override log could not be written.") from exc
        overrides_created = len(overrides)

    updated = await complete_reconciliation(client, request["id"])
    return ApplyResult(request=updated, blocks_applied=0, overrides_created=overrides_created)
