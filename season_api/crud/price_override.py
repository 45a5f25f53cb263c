from __future__ import annotations

from datetime import date, datetime, time, timezone

from supabase import Client

TABLE = "price_overrides"

ADMIN_SELECT = """
    id,
    created_at,
    user_id,
    room_id,
    room_name,
    start_date,
    end_date,
    price,
    min_stay,
    closed,
    closed_on_arrival,
    closed_on_departure,
    profiles:profiles!inner (
        id,
        email,
        first_name,
        last_name
    )
"""


async def add_override(client: Client, user_id: str, data: dict) -> dict:
    row = {**data, "user_id": user_id}
    response = client.table(TABLE).insert(row).execute()
    return response.data[0]


async def add_overrides(client: Client, rows: list[dict]) -> list[dict]:
    if not rows:
        return []
    response = client.table(TABLE).insert(rows).execute()
    return response.data or []


async def get_overrides(client: Client, user_id: str) -> list[dict]:
    response = (
        client.table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return response.data or []


async def delete_override(client: Client, override_id: str, user_id: str) -> bool:
    response = (
        client.table(TABLE)
        .delete()
        .eq("id", override_id)
        .eq("user_id", user_id)
        .execute()
    )
    return bool(response.data)


def _parse_number(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _start_of_day(value: date) -> str:
    return datetime.combine(value, time.min, tzinfo=timezone.utc).isoformat()


def _end_of_day(value: date) -> str:
    return datetime.combine(value, time.max, tzinfo=timezone.utc).isoformat()


async def get_all_price_overrides_admin(
    client: Client,
    *,
    page: int = 1,
    page_size: int = 25,
    q_client: str | None = None,
    q_room: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    q_price: str | None = None,
    q_min_stay: str | None = None,
) -> tuple[list[dict], int]:
    """Every owner's override log, joined with the owner profile.

    Text filters are substring matches; price and min stay are exact and
    ignored when not numeric. ``date_to`` includes the whole day.
    """
    query = (
        client.table(TABLE)
        .select(ADMIN_SELECT, count="exact")
        .order("created_at", desc=True)
    )

    if date_from:
        query = query.gte("created_at", _start_of_day(date_from))
    if date_to:
        query = query.lte("created_at", _end_of_day(date_to))
    if q_room and q_room.strip():
        term = f"%{q_room.strip()}%"
        query = query.or_(f"room_name.ilike.{term},room_id.ilike.{term}")

    price = _parse_number(q_price)
    if price is not None:
        query = query.eq("price", price)
    min_stay = _parse_number(q_min_stay)
    if min_stay is not None:
        query = query.eq("min_stay", int(min_stay))

    if q_client and q_client.strip():
        term = f"%{q_client.strip()}%"
        query = query.or_(
            f"email.ilike.{term},first_name.ilike.{term},last_name.ilike.{term}",
            reference_table="profiles",
        )

    start = (page - 1) * page_size
    end = start + page_size - 1
    response = query.range(start, end).execute()
    return response.data or [], response.count or 0
