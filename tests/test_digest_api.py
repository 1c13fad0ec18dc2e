"""
Tests for the daily digest API endpoint.
"""
from datetime import date, datetime, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.services.database import get_db

pytestmark = pytest.mark.unit


@pytest.fixture
def client(session_factory):
    """Test client bound to the in-memory database."""
    def override_get_db():
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def utc_settings():
    """Pin the digest calendar to UTC with Monday-start weeks."""
    with patch("api.routes.digest.settings") as route_settings, \
            patch("api.services.daily_digest.settings") as service_settings:
        for mocked in (route_settings, service_settings):
            mocked.tz = timezone.utc
            mocked.week_start_index = 0
        yield


def headers_for(user):
    return {"X-User-Id": str(user.id)}


class TestDailyDigestEndpoint:

    def test_endpoint_exists(self, client, user):
        response = client.get("/api/v1/daily_digest", headers=headers_for(user))
        assert response.status_code != 404
        assert response.status_code != 405

    def test_returns_digest_for_date(self, client, user, make_todo, make_event, utc_settings):
        make_todo(user, "Ship release", "today")
        make_todo(user, "Renew passport", "urgent")
        make_event(user, "Standup", datetime(2024, 3, 15, 9, 0), datetime(2024, 3, 15, 9, 15))

        response = client.get(
            "/api/v1/daily_digest", params={"date": "2024-03-15"}, headers=headers_for(user)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["date"] == "2024-03-15"
        assert [t["title"] for t in data["todos"]["today"]] == ["Ship release"]
        assert [t["title"] for t in data["todos"]["overdue"]] == ["Renew passport"]
        assert [e["title"] for e in data["events"]["today"]] == ["Standup"]
        assert data["summary"] == {
            "todos_count": 1,
            "overdue_count": 1,
            "events_today": 1,
            "events_this_week": 1,
        }

    def test_includes_generated_at(self, client, user, utc_settings):
        response = client.get(
            "/api/v1/daily_digest", params={"date": "2024-03-15"}, headers=headers_for(user)
        )

        generated_at = datetime.fromisoformat(response.json()["generated_at"])
        assert generated_at.tzinfo is not None

    def test_null_relations_serialize_as_null(self, client, user, make_todo, make_event, utc_settings):
        make_todo(user, "Solo", "today")
        make_event(user, "Dentist", datetime(2024, 3, 15, 15, 0), datetime(2024, 3, 15, 16, 0))

        data = client.get(
            "/api/v1/daily_digest", params={"date": "2024-03-15"}, headers=headers_for(user)
        ).json()

        todo = data["todos"]["today"][0]
        event = data["events"]["today"][0]
        assert todo["milestone"] is None
        assert todo["project"] is None
        assert event["project"] is None
        assert event["description"] is None

    def test_repeated_requests_differ_only_in_generated_at(self, client, user, make_todo, utc_settings):
        make_todo(user, "Ship release", "today")
        params = {"date": "2024-03-15"}

        first = client.get("/api/v1/daily_digest", params=params, headers=headers_for(user)).json()
        second = client.get("/api/v1/daily_digest", params=params, headers=headers_for(user)).json()

        first.pop("generated_at")
        second.pop("generated_at")
        assert first == second

    def test_missing_date_defaults_to_today(self, client, user, make_todo, utc_settings):
        make_todo(user, "Ship release", "today")

        with patch("api.routes.digest.today_in", return_value=date(2024, 3, 15)):
            implicit = client.get("/api/v1/daily_digest", headers=headers_for(user)).json()
        explicit = client.get(
            "/api/v1/daily_digest", params={"date": "2024-03-15"}, headers=headers_for(user)
        ).json()

        implicit.pop("generated_at")
        explicit.pop("generated_at")
        assert implicit == explicit

    @pytest.mark.parametrize("edge_date", ["9999-12-31", "0001-01-01"])
    def test_calendar_edge_dates_succeed(self, client, user, edge_date):
        with patch("api.routes.digest.settings") as route_settings, \
                patch("api.services.daily_digest.settings") as service_settings:
            for mocked in (route_settings, service_settings):
                mocked.tz = ZoneInfo("Asia/Tokyo")
                mocked.week_start_index = 0
            response = client.get(
                "/api/v1/daily_digest", params={"date": edge_date}, headers=headers_for(user)
            )

        assert response.status_code == 200
        assert response.json()["date"] == edge_date


class TestInvalidDate:

    @pytest.mark.parametrize("bad_date", ["not-a-date", "2024-13-01", "2024-02-30", ""])
    def test_rejects_malformed_date(self, client, user, bad_date):
        response = client.get(
            "/api/v1/daily_digest", params={"date": bad_date}, headers=headers_for(user)
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid date format"}

    def test_malformed_date_does_not_build_digest(self, client, user):
        with patch("api.routes.digest.DailyDigestService") as mock_service:
            response = client.get(
                "/api/v1/daily_digest", params={"date": "not-a-date"}, headers=headers_for(user)
            )

        assert response.status_code == 400
        mock_service.assert_not_called()


class TestCurrentUser:

    def test_missing_user_header_is_unauthorized(self, client):
        response = client.get("/api/v1/daily_digest", params={"date": "2024-03-15"})
        assert response.status_code == 401

    def test_unknown_user_is_not_found(self, client, user):
        response = client.get(
            "/api/v1/daily_digest",
            params={"date": "2024-03-15"},
            headers={"X-User-Id": str(user.id + 1000)},
        )
        assert response.status_code == 404

    def test_non_numeric_user_header_is_bad_request(self, client):
        response = client.get(
            "/api/v1/daily_digest",
            params={"date": "2024-03-15"},
            headers={"X-User-Id": "abc"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"


def test_health_check():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
