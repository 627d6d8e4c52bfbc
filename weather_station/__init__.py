"""
Weather Station Backend

Record keeping for a single school weather station:
- Manual daily entry (rainfall, min/max temperature, humidity)
- Remote REST table as primary storage, local JSON file as fallback
- Calendar-aware month/year queries
- Today vs yesterday comparisons and CSV/JSON export
"""

from .config import StoreConfig
from .local import LocalWeatherFile, StorageError
from .records import WeatherRecord, ValidationError
from .remote import RemoteWeatherClient, RemoteError
from .store import WeatherRecordStore
from .api import app, create_app

__version__ = "1.0.0"

__all__ = [
    "StoreConfig",
    "LocalWeatherFile",
    "StorageError",
    "WeatherRecord",
    "ValidationError",
    "RemoteWeatherClient",
    "RemoteError",
    "WeatherRecordStore",
    "app",
    "create_app",
]
