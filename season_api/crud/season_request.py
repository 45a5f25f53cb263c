from __future__ import annotations

import logging

from postgrest.exceptions import APIError
from supabase import Client

from season_api.core.errors import (
    DuplicateSeasonRequest,
    InvalidStatusTransition,
    NotFlaggedForReconciliation,
    SeasonRequestNotFound,
)

logger = logging.getLogger(__name__)

TABLE = "season_price_requests"
UNIQUE_VIOLATION = "23505"

# Requests in these states block a new submission for the same room and year.
BLOCKING_STATUSES = ("pending", "done")

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"done", "rejected"},
    "done": set(),
    "rejected": set(),
}


def _with_defaults(row: dict) -> dict:
    row.setdefault("needs_reconciliation", False)
    return row


async def create_season_pricing_request(
    client: Client,
    *,
    user_id: str,
    season_year: int,
    room_id: str,
    room_name: str | None,
    items: list[dict],
    status: str = "pending",
    supersedes_id: str | None = None,
) -> dict:
    row = {
        "user_id": user_id,
        "season_year": season_year,
        "room_id": room_id,
        "room_name": room_name,
        "items": items,
        "status": status,
    }
    if supersedes_id:
        row["supersedes_id"] = supersedes_id

    try:
        response = client.table(TABLE).insert(row).execute()
    except APIError as exc:
        # unique index on (room_id, season_year) for pending rows
        if exc.code == UNIQUE_VIOLATION:
            raise DuplicateSeasonRequest(
                f"A pending request already exists for room {room_id} in {season_year}."
            ) from exc
        raise
    logger.info(
        "Season request created for room %s (%s), status=%s", room_id, season_year, status
    )
    return _with_defaults(response.data[0])


async def has_existing_season_pricing_request(
    client: Client, season_year: int, room_id: str
) -> bool:
    response = (
        client.table(TABLE)
        .select("id")
        .eq("season_year", season_year)
        .eq("room_id", room_id)
        .in_("status", list(BLOCKING_STATUSES))
        .limit(1)
        .execute()
    )
    return bool(response.data)


async def has_pending_season_pricing_request(
    client: Client, season_year: int, room_id: str
) -> bool:
    response = (
        client.table(TABLE)
        .select("id")
        .eq("season_year", season_year)
        .eq("room_id", room_id)
        .eq("status", "pending")
        .limit(1)
        .execute()
    )
    return bool(response.data)


async def get_existing_season_pricing_room_ids(
    client: Client, user_id: str, season_year: int
) -> list[str]:
    response = (
        client.table(TABLE)
        .select("room_id")
        .eq("user_id", user_id)
        .eq("season_year", season_year)
        .in_("status", list(BLOCKING_STATUSES))
        .execute()
    )
    return sorted({row["room_id"] for row in response.data or [] if row.get("room_id")})


async def get_user_season_pricing_requests(
    client: Client, user_id: str, season_year: int | None = None
) -> list[dict]:
    query = client.table(TABLE).select("*").eq("user_id", user_id)
    if season_year is not None:
        query = query.eq("season_year", season_year)
    response = query.order("created_at", desc=True).execute()
    return [_with_defaults(row) for row in response.data or []]


async def get_all_season_pricing_requests(
    client: Client, status: str | None = None, season_year: int | None = None
) -> list[dict]:
    query = client.table(TABLE).select("*, profiles(id, email, first_name, last_name)")
    if status:
        query = query.eq("status", status)
    if season_year is not None:
        query = query.eq("season_year", season_year)
    response = query.order("created_at", desc=True).execute()
    return [_with_defaults(row) for row in response.data or []]


async def get_season_pricing_request(client: Client, request_id: str) -> dict | None:
    response = client.table(TABLE).select("*").eq("id", request_id).execute()
    if not response.data:
        return None
    return _with_defaults(response.data[0])


async def update_season_pricing_request_status(
    client: Client, request_id: str, status: str
) -> dict:
    current = await get_season_pricing_request(client, request_id)
    if current is None:
        raise SeasonRequestNotFound(f"Season request {request_id} not found.")
    if status not in ALLOWED_TRANSITIONS.get(current["status"], set()):
        raise InvalidStatusTransition(current["status"], status)

    # Guarded on the current status so two admins cannot both transition it.
    response = (
        client.table(TABLE)
        .update({"status": status})
        .eq("id", request_id)
        .eq("status", current["status"])
        .execute()
    )
    if not response.data:
        latest = await get_season_pricing_request(client, request_id)
        raise InvalidStatusTransition(latest["status"] if latest else "unknown", status)
    logger.info("Season request %s: %s -> %s", request_id, current["status"], status)
    return _with_defaults(response.data[0])


async def update_season_pricing_request_items(
    client: Client, request_id: str, items: list[dict]
) -> dict:
    current = await get_season_pricing_request(client, request_id)
    if current is None:
        raise SeasonRequestNotFound(f"Season request {request_id} not found.")
    if current["status"] != "pending":
        raise InvalidStatusTransition(current["status"], "pending")

    response = (
        client.table(TABLE)
        .update({"items": items})
        .eq("id", request_id)
        .eq("status", "pending")
        .execute()
    )
    if not response.data:
        raise InvalidStatusTransition("unknown", "pending")
    return _with_defaults(response.data[0])


async def flag_for_reconciliation(
    client: Client, request_id: str, error: str, *, trace_written: bool = False
) -> None:
    client.table(TABLE).update(
        {
            "needs_reconciliation": True,
            "reconciliation_error": error,
            "trace_written": trace_written,
        }
    ).eq("id", request_id).execute()
    logger.error("Season request %s flagged for reconciliation: %s", request_id, error)


async def complete_reconciliation(client: Client, request_id: str) -> dict:
    """Clear the flag and mark the request done.

    The blocks are already in the channel manager, so the request ends up
    ``done`` whatever status it reached in the meantime.
    """
    response = (
        client.table(TABLE)
        .update(
            {
                "status": "done",
                "needs_reconciliation": False,
                "reconciliation_error": None,
                "trace_written": False,
            }
        )
        .eq("id", request_id)
        .eq("needs_reconciliation", True)
        .execute()
    )
    if not response.data:
        raise NotFlaggedForReconciliation(
            f"Season request {request_id} is not flagged for reconciliation."
        )
    logger.info("Season request %s reconciled", request_id)
    return _with_defaults(response.data[0])


async def resubmit_season_pricing_request(
    client: Client,
    user_id: str,
    original_id: str,
    items: list[dict],
    season_year: int | None = None,
) -> dict:
    """Create a new pending request superseding a done one; the original is left as is."""
    original = await get_season_pricing_request(client, original_id)
    if original is None or original["user_id"] != user_id or (
        season_year is not None and original["season_year"] != season_year
    ):
        raise SeasonRequestNotFound(f"Season request {original_id} not found.")
    if original["status"] != "done":
        raise InvalidStatusTransition(original["status"], "pending")
    if await has_pending_season_pricing_request(
        client, original["season_year"], original["room_id"]
    ):
        raise DuplicateSeasonRequest(
            f"A pending request already exists for room {original['room_id']}."
        )

    return await create_season_pricing_request(
        client,
        user_id=user_id,
        season_year=original["season_year"],
        room_id=original["room_id"],
        room_name=original.get("room_name"),
        items=items,
        supersedes_id=original_id,
    )


async def get_current_season_request(
    client: Client, season_year: int, room_id: str
) -> dict | None:
    """The done request governing a room and year.

    A done request stops being current once another done request supersedes
    it; among the remaining ones the newest wins.
    """
    response = (
        client.table(TABLE)
        .select("*")
        .eq("season_year", season_year)
        .eq("room_id", room_id)
        .eq("status", "done")
        .order("created_at", desc=True)
        .execute()
    )
    rows = response.data or []
    superseded = {row.get("supersedes_id") for row in rows if row.get("supersedes_id")}
    for row in rows:
        if row["id"] not in superseded:
            return _with_defaults(row)
    return None
