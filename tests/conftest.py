"""Shared fixtures for the Weather Station tests."""

import json

import pytest

from weather_station.config import StoreConfig
from weather_station.store import WeatherRecordStore

REMOTE_URL = "https://remote.test"
TABLE_URL = f"{REMOTE_URL}/rest/v1/weather_data"


def write_records(data_dir, records):
    """Write a raw record list as the local data file."""
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "weather-data.json").write_text(json.dumps(records), encoding="utf-8")


def make_row(record_id, day, rainfall=1.0, max_temp=30.0, min_temp=20.0, humidity=70):
    return {
        "id": record_id,
        "date": day,
        "rainfall": rainfall,
        "maxTemperature": max_temp,
        "minTemperature": min_temp,
        "humidity": humidity,
        "createdAt": f"{day}T06:00:00Z",
        "updatedAt": f"{day}T06:00:00Z",
    }


@pytest.fixture
def local_config(tmp_path):
    return StoreConfig(data_dir=tmp_path)


@pytest.fixture
def remote_config(tmp_path):
    return StoreConfig(data_dir=tmp_path, remote_url=REMOTE_URL, remote_api_key="test-key")


@pytest.fixture
def local_store(local_config):
    """Store backed only by the local file, seeded with the default records."""
    return WeatherRecordStore(local_config)


@pytest.fixture
def empty_store(tmp_path, local_config):
    write_records(tmp_path, [])
    return WeatherRecordStore(local_config)


@pytest.fixture
def remote_store(remote_config):
    store = WeatherRecordStore(remote_config)
    yield store
    store.close()
