from __future__ import annotations

import csv
import io
from datetime import date, datetime

from season_api.services.season_calendar import date_to_dmy, iso_to_dmy

REQUEST_HEADERS = ["User", "Room", "Year", "Periods", "Status", "Date"]
ITEM_HEADERS = [
    "Request ID",
    "User",
    "Room",
    "Period #",
    "From",
    "To",
    "Type",
    "Season",
    "Price",
    "Min stay",
    "Closed",
    "Closed on arrival",
    "Closed on departure",
    "Comment",
]


def _owner_name(request: dict) -> str:
    profile = request.get("profiles") or {}
    first = (profile.get("first_name") or "").strip()
    last = (profile.get("last_name") or "").strip()
    return f"{first} {last}".strip()


def _created(request: dict) -> str:
    value = request.get("created_at")
    if not value:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value.strftime("%d/%m/%Y")


def _yes_no(value) -> str:
    return "Yes" if value else "No"


def _number(value) -> str:
    return "" if value is None else str(value)


def _dmy(value) -> str:
    if isinstance(value, date):
        return date_to_dmy(value)
    return iso_to_dmy(value) if value else ""


def export_requests_csv(requests: list[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(REQUEST_HEADERS)
    for request in requests:
        writer.writerow([
            _owner_name(request),
            request.get("room_name") or request.get("room_id") or "",
            request.get("season_year"),
            len(request.get("items") or []),
            request.get("status"),
            _created(request),
        ])
    return buffer.getvalue()


def export_request_items_csv(requests: list[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(ITEM_HEADERS)
    for request in requests:
        for idx, item in enumerate(request.get("items") or [], start=1):
            writer.writerow([
                request.get("id"),
                _owner_name(request),
                request.get("room_name") or request.get("room_id") or "",
                idx,
                _dmy(item.get("start_date")),
                _dmy(item.get("end_date")),
                item.get("period_type") or "",
                item.get("season") or "",
                _number(item.get("price")),
                _number(item.get("min_stay")),
                _yes_no(item.get("closed")),
                _yes_no(item.get("closed_on_arrival")),
                _yes_no(item.get("closed_on_departure")),
                item.get("comment") or "",
            ])
    return buffer.getvalue()
