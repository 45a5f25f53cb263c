from __future__ import annotations

from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from season_api.api import deps
from season_api.core.errors import (
    DuplicateSeasonRequest,
    InvalidStatusTransition,
    SeasonCalendarNotFound,
    SeasonRequestNotFound,
)
from season_api.db.base import get_supabase
from season_api.services.season_calendar import parse_season_csv
import season_api.api.routes.seasons as season_routes

season_test_app = FastAPI()
season_test_app.include_router(season_routes.router)

CALENDAR = parse_season_csv(
    "Début;Fin;Type;Saison;Séjour min;Commentaire\n"
    "03/01/2026;30/01/2026;Semaine;Basse Saison;2 nuits;\n"
    "01/07/2026;31/08/2026;Semaine;Haute Saison;3 nuits;Vacances d'été\n"
    "bad;row\n"
)

STORED_REQUEST = {
    "id": "req-1",
    "user_id": "user-1",
    "season_year": 2026,
    "room_id": "101",
    "room_name": "Studio Vieux Port",
    "items": [{"start_date": "2026-07-01", "end_date": "2026-08-31", "price": 140}],
    "status": "pending",
    "needs_reconciliation": False,
    "created_at": "2026-03-01T09:01:00+00:00",
}


def _override_current_user():
    return {"id": "user-1", "email": "owner@example.com", "can_manage_prices": True}


def _override_smart_pricing_user():
    return {"id": "user-1", "email": "owner@example.com", "can_manage_prices": False}


def _install(current_user=_override_current_user):
    season_test_app.dependency_overrides[deps.get_current_user] = current_user
    season_test_app.dependency_overrides[get_supabase] = lambda: object()


def test_get_periods_returns_calendar_with_errors(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "load_season_calendar", AsyncMock(return_value=CALENDAR))

    try:
        with TestClient(season_test_app) as client:
            response = client.get("/v1.0/seasons/2026/periods")

        assert response.status_code == 200
        body = response.json()
        assert body["season_year"] == 2026
        assert [p["start_date"] for p in body["periods"]] == ["03/01/2026", "01/07/2026"]
        assert body["errors"][0]["line"] == 4
        assert body["counts"] == {"tres_haute": 0, "haute": 1, "moyenne": 0, "basse": 1}
    finally:
        season_test_app.dependency_overrides = {}


def test_get_periods_unknown_year_is_404(monkeypatch):
    _install()
    monkeypatch.setattr(
        season_routes,
        "load_season_calendar",
        AsyncMock(side_effect=SeasonCalendarNotFound("No season file for 2031.")),
    )

    try:
        with TestClient(season_test_app) as client:
            response = client.get("/v1.0/seasons/2031/periods")

        assert response.status_code == 404
    finally:
        season_test_app.dependency_overrides = {}


def test_suggestions_use_base_prices(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "load_season_calendar", AsyncMock(return_value=CALENDAR))

    try:
        with TestClient(season_test_app) as client:
            response = client.post(
                "/v1.0/seasons/2026/suggestions",
                json={"base_min": 80, "base_standard": 100, "base_max": 200},
            )

        assert response.status_code == 200
        # Basse -> 0.90, Haute + vacances -> 1.10 * 1.04
        assert response.json()["suggestions"] == [90, 114]
        assert all(isinstance(value, int) for value in response.json()["suggestions"])
    finally:
        season_test_app.dependency_overrides = {}


def test_suggestions_require_standard_price(monkeypatch):
    _install()
    loader = AsyncMock(return_value=CALENDAR)
    monkeypatch.setattr(season_routes, "load_season_calendar", loader)

    try:
        with TestClient(season_test_app) as client:
            response = client.post("/v1.0/seasons/2026/suggestions", json={"base_standard": 0})

        assert response.status_code == 422
        loader.assert_not_awaited()
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_builds_items_from_inputs(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=True))
    monkeypatch.setattr(
        season_routes, "has_existing_season_pricing_request", AsyncMock(return_value=False)
    )
    monkeypatch.setattr(season_routes, "load_season_calendar", AsyncMock(return_value=CALENDAR))
    create_mock = AsyncMock(return_value=STORED_REQUEST)
    monkeypatch.setattr(season_routes, "create_season_pricing_request", create_mock)

    try:
        with TestClient(season_test_app) as client:
            response = client.post(
                "/v1.0/seasons/2026/requests",
                json={
                    "room_id": "101",
                    "room_name": "Studio Vieux Port",
                    "inputs": {"1": {"price": 140, "closed_on_arrival": True}},
                },
            )

        assert response.status_code == 201
        assert response.json()["id"] == "req-1"
        kwargs = create_mock.await_args.kwargs
        assert kwargs["season_year"] == 2026
        assert kwargs["room_id"] == "101"
        items = kwargs["items"]
        assert len(items) == 2
        assert items[0]["start_date"] == "2026-01-03"
        assert items[0]["price"] is None
        assert items[1]["price"] == 140
        assert items[1]["min_stay"] == 3
        assert items[1]["closed_on_arrival"] is True
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_rejected_for_smart_pricing_accounts(monkeypatch):
    _install(_override_smart_pricing_user)
    owns = AsyncMock(return_value=True)
    monkeypatch.setattr(season_routes, "user_owns_room", owns)

    try:
        with TestClient(season_test_app) as client:
            response = client.post("/v1.0/seasons/2026/requests", json={"room_id": "101"})

        assert response.status_code == 403
        owns.assert_not_awaited()
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_for_room_not_owned(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=False))

    try:
        with TestClient(season_test_app) as client:
            response = client.post("/v1.0/seasons/2026/requests", json={"room_id": "999"})

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_when_request_exists_is_conflict(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=True))
    monkeypatch.setattr(
        season_routes, "has_existing_season_pricing_request", AsyncMock(return_value=True)
    )
    create_mock = AsyncMock()
    monkeypatch.setattr(season_routes, "create_season_pricing_request", create_mock)

    try:
        with TestClient(season_test_app) as client:
            response = client.post(
                "/v1.0/seasons/2026/requests",
                json={"room_id": "101", "items": STORED_REQUEST["items"]},
            )

        assert response.status_code == 409
        create_mock.assert_not_awaited()
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_losing_the_insert_race_is_conflict(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=True))
    monkeypatch.setattr(
        season_routes, "has_existing_season_pricing_request", AsyncMock(return_value=False)
    )
    monkeypatch.setattr(
        season_routes,
        "create_season_pricing_request",
        AsyncMock(side_effect=DuplicateSeasonRequest("A pending request already exists.")),
    )

    try:
        with TestClient(season_test_app) as client:
            response = client.post(
                "/v1.0/seasons/2026/requests",
                json={"room_id": "101", "room_name": "Studio", "items": STORED_REQUEST["items"]},
            )

        assert response.status_code == 409
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_with_empty_items_is_rejected(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=True))
    monkeypatch.setattr(
        season_routes, "has_existing_season_pricing_request", AsyncMock(return_value=False)
    )

    try:
        with TestClient(season_test_app) as client:
            response = client.post(
                "/v1.0/seasons/2026/requests", json={"room_id": "101", "items": []}
            )

        assert response.status_code == 422
    finally:
        season_test_app.dependency_overrides = {}


def test_submit_rejects_inverted_item_dates():
    _install()

    try:
        with TestClient(season_test_app) as client:
            response = client.post(
                "/v1.0/seasons/2026/requests",
                json={
                    "room_id": "101",
                    "items": [{"start_date": "2026-07-10", "end_date": "2026-07-01"}],
                },
            )

        assert response.status_code == 422
    finally:
        season_test_app.dependency_overrides = {}


def test_list_requested_rooms(monkeypatch):
    _install()
    rooms_mock = AsyncMock(return_value=["101", "102"])
    monkeypatch.setattr(season_routes, "get_existing_season_pricing_room_ids", rooms_mock)

    try:
        with TestClient(season_test_app) as client:
            response = client.get("/v1.0/seasons/2026/requests/rooms")

        assert response.status_code == 200
        assert response.json() == {"season_year": 2026, "room_ids": ["101", "102"]}
        assert rooms_mock.await_args.args[1:] == ("user-1", 2026)
    finally:
        season_test_app.dependency_overrides = {}


def test_list_my_requests(monkeypatch):
    _install()
    monkeypatch.setattr(
        season_routes, "get_user_season_pricing_requests", AsyncMock(return_value=[STORED_REQUEST])
    )

    try:
        with TestClient(season_test_app) as client:
            response = client.get("/v1.0/seasons/2026/requests")

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["id"] for item in items] == ["req-1"]
        assert items[0]["status"] == "pending"
    finally:
        season_test_app.dependency_overrides = {}


def test_current_request_for_owned_room(monkeypatch):
    _install()
    monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=True))
    current_mock = AsyncMock(return_value=dict(STORED_REQUEST, status="done"))
    monkeypatch.setattr(season_routes, "get_current_season_request", current_mock)

    try:
        with TestClient(season_test_app) as client:
            response = client.get("/v1.0/seasons/2026/requests/current", params={"room_id": "101"})

        assert response.status_code == 200
        assert response.json()["status"] == "done"
        assert current_mock.await_args.args[1:] == (2026, "101")
    finally:
        season_test_app.dependency_overrides = {}


def test_current_request_errors(monkeypatch):
    _install()
    current_mock = AsyncMock(return_value=None)
    monkeypatch.setattr(season_routes, "get_current_season_request", current_mock)

    try:
        with TestClient(season_test_app) as client:
            monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=False))
            forbidden = client.get(
                "/v1.0/seasons/2026/requests/current", params={"room_id": "999"}
            )
            monkeypatch.setattr(season_routes, "user_owns_room", AsyncMock(return_value=True))
            missing = client.get("/v1.0/seasons/2026/requests/current", params={"room_id": "101"})
            no_room = client.get("/v1.0/seasons/2026/requests/current")

        assert forbidden.status_code == 403
        assert missing.status_code == 404
        assert missing.json()["detail"] == "No applied season for this room in 2026."
        assert no_room.status_code == 422
        assert current_mock.await_count == 1
    finally:
        season_test_app.dependency_overrides = {}


def test_resubmit_maps_errors(monkeypatch):
    _install()
    body = {"items": STORED_REQUEST["items"]}

    try:
        with TestClient(season_test_app) as client:
            monkeypatch.setattr(
                season_routes,
                "resubmit_season_pricing_request",
                AsyncMock(side_effect=SeasonRequestNotFound("missing")),
            )
            missing = client.post("/v1.0/seasons/2026/requests/req-9/resubmit", json=body)

            monkeypatch.setattr(
                season_routes,
                "resubmit_season_pricing_request",
                AsyncMock(side_effect=InvalidStatusTransition("pending", "pending")),
            )
            not_done = client.post("/v1.0/seasons/2026/requests/req-1/resubmit", json=body)

            created = dict(STORED_REQUEST, id="req-2", supersedes_id="req-1")
            resubmit_mock = AsyncMock(return_value=created)
            monkeypatch.setattr(season_routes, "resubmit_season_pricing_request", resubmit_mock)
            ok = client.post("/v1.0/seasons/2026/requests/req-1/resubmit", json=body)

        assert missing.status_code == 404
        assert not_done.status_code == 409
        assert ok.status_code == 201
        assert ok.json()["supersedes_id"] == "req-1"
        assert resubmit_mock.await_args.kwargs["season_year"] == 2026
    finally:
        season_test_app.dependency_overrides = {}
