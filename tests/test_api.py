"""
Tests for the REST API endpoints.
"""

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from weather_station import api
from weather_station.api import create_app, utc_today

from .conftest import TABLE_URL, write_records


@pytest.fixture
def client(local_config):
    """Test client backed by a local-only store seeded with default records."""
    with TestClient(create_app(local_config)) as client:
        yield client


@pytest.fixture
def empty_client(tmp_path, local_config):
    write_records(tmp_path, [])
    with TestClient(create_app(local_config)) as client:
        yield client


def submission(**overrides):
    body = {
        "date": "2025-02-10",
        "rainfall": 3.5,
        "maxTemperature": 31.0,
        "minTemperature": 22.0,
        "humidity": 80,
    }
    body.update(overrides)
    return body


def test_root_and_ping(client):
    assert client.get("/").status_code == 200
    assert client.get("/api/ping").json() == {"message": "pong"}


def test_health_on_local_store(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["storage"]["primary"] == "local"


def test_store_unavailable_without_startup(local_config):
    client = TestClient(create_app(local_config))
    assert client.get("/api/weather/history").status_code == 503


def test_today(client):
    response = client.get("/api/weather/today")
    assert response.status_code == 200
    data = response.json()
    assert data["today"]["date"] == "2025-01-15"
    assert data["today"]["humidity"]["previous"] == 75
    assert response.headers["X-Weather-Source"] == "local"


def test_today_on_empty_store(empty_client):
    assert empty_client.get("/api/weather/today").status_code == 404


def test_history_newest_first(client):
    data = client.get("/api/weather/history").json()
    assert data["total"] == 2
    assert [r["date"] for r in data["data"]] == ["2025-01-15", "2025-01-14"]


def test_history_by_month(empty_client):
    for day in ("2025-01-31", "2025-02-01", "2025-02-28", "2025-03-01"):
        assert empty_client.post("/api/weather/add", json=submission(date=day)).status_code == 200

    data = empty_client.get("/api/weather/history", params={"year": 2025, "month": 2}).json()
    assert [r["date"] for r in data["data"]] == ["2025-02-28", "2025-02-01"]

    data = empty_client.get("/api/weather/history", params={"year": 2025}).json()
    assert data["total"] == 4


def test_history_rejects_bad_month(client):
    assert client.get("/api/weather/history", params={"year": 2025, "month": 13}).status_code == 422


def test_available_dates(client):
    data = client.get("/api/weather/available-dates").json()
    assert data == {"years": [2025], "months": {"2025": [1]}, "totalRecords": 2}


def test_add_then_resubmit_updates_same_record(empty_client):
    first = empty_client.post("/api/weather/add", json=submission()).json()
    assert first["success"] is True
    assert first["created"] is True

    second = empty_client.post("/api/weather/add", json=submission(humidity=40)).json()
    assert second["id"] == first["id"]
    assert second["created"] is False

    records = empty_client.get("/api/weather/history").json()["data"]
    assert len(records) == 1
    assert records[0]["humidity"] == 40


def test_add_rejects_inverted_temperatures(empty_client):
    response = empty_client.post("/api/weather/add", json=submission(minTemperature=30, maxTemperature=20))
    assert response.status_code == 400
    assert "Minimum temperature" in response.json()["detail"]
    assert empty_client.get("/api/weather/history").json()["total"] == 0


def test_add_requires_all_fields(empty_client):
    response = empty_client.post("/api/weather/add", json={"date": "2025-02-10"})
    assert response.status_code == 400
    assert "required" in response.json()["detail"]


def test_patch_record(client):
    response = client.patch("/api/weather/1", json={"rainfall": 0})
    assert response.status_code == 200
    data = response.json()
    assert data["rainfall"] == 0
    assert data["createdAt"] == "2025-01-15T06:00:00Z"


def test_patch_unknown_record(client):
    assert client.patch("/api/weather/nope", json={"rainfall": 0}).status_code == 404


def test_delete(client):
    assert client.delete("/api/weather/delete/2").status_code == 200
    assert client.delete("/api/weather/delete/2").status_code == 404
    assert client.get("/api/weather/history").json()["total"] == 1


def test_download_csv(client):
    response = client.get("/api/weather/download", params={"format": "csv", "year": 2025, "month": 1})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="weather-data-2025-01.csv"' in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0].startswith("Date,Rainfall (mm)")
    assert lines[1].startswith("2025-01-14,")


def test_download_json(client):
    response = client.get("/api/weather/download")
    assert 'filename="weather-data-all.json"' in response.headers["content-disposition"]
    data = response.json()
    assert data["totalRecords"] == 2
    assert data["data"][0]["date"] == "2025-01-14"


def test_download_rejects_unknown_format(client):
    assert client.get("/api/weather/download", params={"format": "xml"}).status_code == 422


def test_backup(client, tmp_path):
    response = client.post("/api/weather/backup")
    assert response.status_code == 200
    assert (tmp_path / response.json()["backup"]).exists()


def test_remote_failure_is_visible(remote_config, requests_mock):
    requests_mock.get(TABLE_URL, status_code=500, text="boom")

    with TestClient(create_app(remote_config)) as client:
        response = client.get("/api/weather/history")
        assert response.status_code == 200
        assert response.json()["total"] == 2
        assert response.headers["X-Weather-Source"] == "local"

        health = client.get("/health").json()
        assert health["status"] == "degraded"
        assert health["storage"]["diverged"] is True


def test_utc_today_matches_utc_clock():
    before = datetime.now(timezone.utc).date()
    today = utc_today()
    after = datetime.now(timezone.utc).date()
    assert today in (before, after)


def test_today_uses_utc_date(client, monkeypatch):
    monkeypatch.setattr(api, "utc_today", lambda: date(2025, 1, 14))

    data = client.get("/api/weather/today").json()

    assert data["today"]["date"] == "2025-01-14"
    assert data["today"]["humidity"]["previous"] is None


def test_health_reports_fallback_count(remote_config, requests_mock):
    requests_mock.get(TABLE_URL, json=[{"id": 1, "date": None}])

    with TestClient(create_app(remote_config)) as client:
        assert client.get("/api/weather/available-dates").status_code == 200
        storage = client.get("/health").json()["storage"]
        assert storage["fallback_count"] == 1
        assert "last_source" not in storage
