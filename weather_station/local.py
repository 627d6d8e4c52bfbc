"""
Local file backend for the Weather Station backend.

Keeps the full record set in memory and persists it as a single
pretty-printed JSON array:
- Whole-file rewrite after every mutation
- Seed records when the file is missing or malformed
- Timestamped backups written next to the data file on demand
"""

import json
import logging
import threading
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .records import (
    WeatherRecord,
    default_records,
    find_first,
    in_range,
    month_bounds,
    newest_first,
    parse_date,
    parse_timestamp,
    summarize_dates,
    utc_now_iso,
    year_bounds,
)

logger = logging.getLogger(__name__)

DATA_FILE_NAME = "weather-data.json"
BACKUP_PREFIX = "weather-data-backup-"


class StorageError(Exception):
    """Raised when the local data file cannot be written."""
    pass


class LocalWeatherFile:
    """
    JSON file store holding every record in memory.

    Not safe against concurrent writers in other processes; calls within
    one process are serialized by an internal lock.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._records: List[WeatherRecord] = []
        self._load()
        logger.info(f"Local weather file loaded from {self._path} ({len(self._records)} records)")

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        """Read the file, falling back to seed records if it is unusable."""
        with self._lock:
            if not self._path.exists():
                logger.info(f"No data file at {self._path}, writing default records")
                self._reset_to_defaults()
                return

            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
                if not isinstance(data, list):
                    logger.warning("Invalid weather data format, using default data")
                    self._reset_to_defaults()
                    return
                records = [WeatherRecord.from_dict(item) for item in data]
                for record in records:
                    parse_date(record.date)
            except Exception as e:
                logger.error(f"Error loading weather data from {self._path}: {e}")
                self._reset_to_defaults()
                return

            self._records = records

    def _reset_to_defaults(self) -> None:
        self._records = default_records()
        try:
            self._save()
        except StorageError as e:
            # Keep serving the seed records from memory
            logger.error(f"Could not write default data: {e}")

    def _save(self) -> None:
        """Rewrite the whole file. Caller holds the lock."""
        payload = json.dumps([r.to_dict() for r in self._records], indent=2, ensure_ascii=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(payload, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving weather data to {self._path}: {e}")
            raise StorageError(f"Failed to save weather data: {e}") from e

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_all(self) -> List[WeatherRecord]:
        with self._lock:
            return list(self._records)

    def get_by_date(self, day: str) -> Optional[WeatherRecord]:
        with self._lock:
            return find_first(self._records, date=day)

    def get_by_id(self, record_id: str) -> Optional[WeatherRecord]:
        with self._lock:
            return find_first(self._records, id=record_id)

    def get_between(self, start: date, end: date) -> List[WeatherRecord]:
        """Records with start <= date <= end, most recent first."""
        with self._lock:
            matches = [r for r in self._records if in_range(r, start, end)]
        return newest_first(matches)

    def get_by_month(self, year: int, month: int) -> List[WeatherRecord]:
        start, end = month_bounds(year, month)
        logger.debug(f"Filtering file data for {year}-{month}: {start} to {end}")
        return self.get_between(start, end)

    def get_by_year(self, year: int) -> List[WeatherRecord]:
        return self.get_between(*year_bounds(year))

    def get_available_dates(self) -> Dict[str, Any]:
        return summarize_dates(self.get_all())

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def add(self, fields: Dict[str, Any]) -> WeatherRecord:
        """Append a new record. Fields are expected to be validated already."""
        now = utc_now_iso()
        record = WeatherRecord.from_dict({
            **fields,
            "id": uuid.uuid4().hex,
            "createdAt": now,
            "updatedAt": now,
        })
        with self._lock:
            self._records.append(record)
            try:
                self._save()
            except StorageError:
                self._records.pop()
                raise
        logger.info(f"Weather data added to file storage: {record.id} ({record.date})")
        return record

    def update(self, record_id: str, changes: Dict[str, Any]) -> Optional[WeatherRecord]:
        """Merge changes into an existing record; None if the id is unknown."""
        with self._lock:
            index = next((i for i, r in enumerate(self._records) if r.id == record_id), None)
            if index is None:
                return None

            previous = self._records[index]
            merged = {**previous.to_dict(), **changes}
            merged["id"] = previous.id
            merged["createdAt"] = previous.created_at
            merged["updatedAt"] = _later(utc_now_iso(), previous.updated_at)
            updated = WeatherRecord.from_dict(merged)

            self._records[index] = updated
            try:
                self._save()
            except StorageError:
                self._records[index] = previous
                raise
        logger.info(f"Weather data updated in file storage: {record_id}")
        return updated

    def delete(self, record_id: str) -> bool:
        with self._lock:
            index = next((i for i, r in enumerate(self._records) if r.id == record_id), None)
            if index is None:
                return False

            removed = self._records.pop(index)
            try:
                self._save()
            except StorageError:
                self._records.insert(index, removed)
                raise
        logger.info(f"Weather data deleted from file storage: {record_id}")
        return True

    def create_backup(self) -> Path:
        """Write a timestamped copy of the current records next to the data file."""
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        backup_path = self._path.with_name(f"{BACKUP_PREFIX}{stamp}.json")
        with self._lock:
            payload = json.dumps([r.to_dict() for r in self._records], indent=2, ensure_ascii=False)
        try:
            backup_path.write_text(payload, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error creating backup: {e}")
            raise StorageError(f"Failed to create backup: {e}") from e
        logger.info(f"Backup created: {backup_path}")
        return backup_path


def _later(candidate: str, previous: str) -> str:
    """Keep updatedAt monotonic even if the clock steps backwards."""
    try:
        if parse_timestamp(candidate) < parse_timestamp(previous):
            return previous
    except ValueError:
        pass
    return candidate
