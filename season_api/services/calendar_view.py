from __future__ import annotations

from datetime import date, timedelta

from season_api.schemas.price_override import (
    CalendarBlock,
    GridCell,
    PriceOverrideResponse,
    RoomPriceRow,
)

OWNER_BLOCK_CHANNEL = "OWNER_BLOCK"
BLOCKED_LABEL = "Période bloquée"


def closed_override_blocks(overrides: list[PriceOverrideResponse]) -> list[CalendarBlock]:
    """Closed overrides shown as reservations; the end date is inclusive so check-out is the day after."""
    return [
        CalendarBlock(
            id=f"override-{override.id}",
            label=BLOCKED_LABEL,
            room_id=override.room_id,
            room_name=override.room_name,
            check_in_date=override.start_date,
            check_out_date=override.end_date + timedelta(days=1),
            status="BLOCKED",
            cod_channel=OWNER_BLOCK_CHANNEL,
        )
        for override in overrides
        if override.closed
    ]


def _days(start: date, end: date) -> list[date]:
    return [start + timedelta(days=n) for n in range((end - start).days + 1)]


def build_price_grid(
    overrides: list[PriceOverrideResponse],
    rooms: list[dict],
    start: date,
    end: date,
) -> list[RoomPriceRow]:
    """One row per room, one cell per day, filled from the most recent override covering it.

    This is a display projection of the override log; actual prices live in
    the channel manager.
    """
    days = _days(start, end)
    # oldest first, so later overrides paint over earlier ones
    ordered = sorted(overrides, key=lambda o: (o.created_at is not None, o.created_at))

    rows: list[RoomPriceRow] = []
    for room in rooms:
        cells = {day: GridCell(date=day) for day in days}
        for override in ordered:
            if override.room_id != room["room_id"]:
                continue
            first = max(override.start_date, start)
            last = min(override.end_date, end)
            for day in _days(first, last) if first <= last else []:
                cells[day] = GridCell(
                    date=day,
                    price=override.price,
                    min_stay=override.min_stay,
                    closed=bool(override.closed),
                    closed_on_arrival=bool(override.closed_on_arrival),
                    closed_on_departure=bool(override.closed_on_departure),
                    override_id=override.id,
                )
        rows.append(
            RoomPriceRow(
                room_id=room["room_id"],
                room_name=room.get("room_name"),
                cells=[cells[day] for day in days],
            )
        )
    return rows
