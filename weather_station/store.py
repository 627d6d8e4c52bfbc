"""
Hybrid record store for the Weather Station backend.

Single entry point for route handlers:
- Remote table as primary backend when credentials are configured
- Local JSON file as per-call fallback (no retry, no reconciliation)
- Validation before any backend is touched
- Atomic upsert-by-date
"""

import logging
import threading
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import StoreConfig
from .local import LocalWeatherFile
from .records import (
    WeatherRecord,
    check_merged,
    validate_changes,
    validate_new_entry,
)
from .remote import RemoteError, RemoteWeatherClient

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"


class WeatherRecordStore:
    """
    CRUD and date-range queries over weather records.

    The backend is chosen once at construction. When the remote backend
    fails, the call is served from the local file and the store remembers
    it: `fallback_count` and `diverged` let callers see that the two copies
    may no longer agree. `last_source` names the backend that served the
    most recent call made from the current thread or task.
    """

    def __init__(
        self,
        config: StoreConfig,
        remote: Optional[RemoteWeatherClient] = None,
    ) -> None:
        self.config = config
        self.local = LocalWeatherFile(config.data_file)
        self.remote = remote
        if self.remote is None and config.remote_enabled:
            self.remote = RemoteWeatherClient(
                base_url=config.remote_url,
                api_key=config.remote_api_key,
                table=config.remote_table,
                timeout=config.remote_timeout,
            )

        self._upsert_lock = threading.RLock()
        self._stats_lock = threading.Lock()
        self._served_by: ContextVar[Optional[str]] = ContextVar(f"served_by_{id(self)}", default=None)
        self.fallback_count = 0
        self.last_remote_error: Optional[str] = None

        if self.remote is not None:
            logger.info(f"Using remote table '{self.remote.table}' for persistent storage")
        else:
            logger.info(f"Using file storage at {self.local.path}")

    @property
    def uses_remote(self) -> bool:
        return self.remote is not None

    @property
    def last_source(self) -> Optional[str]:
        return self._served_by.get()

    @property
    def diverged(self) -> bool:
        """True once any call fell back to the local file."""
        return self.uses_remote and self.fallback_count > 0

    def _call(self, operation: str, *args: Any) -> Any:
        """Run an operation on the primary backend, falling back to the file."""
        if self.remote is not None:
            try:
                result = getattr(self.remote, operation)(*args)
                self._served_by.set(SOURCE_REMOTE)
                return result
            except RemoteError as e:
                with self._stats_lock:
                    self.fallback_count += 1
                    self.last_remote_error = str(e)
                logger.error(f"Remote error during {operation}, falling back to file storage: {e}")

        result = getattr(self.local, operation)(*args)
        self._served_by.set(SOURCE_LOCAL)
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_all(self) -> List[WeatherRecord]:
        return self._call("get_all")

    def get_by_date(self, day: str) -> Optional[WeatherRecord]:
        return self._call("get_by_date", day)

    def get_by_id(self, record_id: str) -> Optional[WeatherRecord]:
        return self._call("get_by_id", record_id)

    def get_by_month(self, year: int, month: int) -> List[WeatherRecord]:
        return self._call("get_by_month", year, month)

    def get_by_year(self, year: int) -> List[WeatherRecord]:
        return self._call("get_by_year", year)

    def get_available_dates(self) -> Dict[str, Any]:
        """Years (newest first), months per year (ascending) and total count."""
        return self._call("get_available_dates")

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, fields: Dict[str, Any]) -> WeatherRecord:
        """
        Create a new record.

        Always inserts, even if a record already exists for that date;
        use upsert_by_date for one-record-per-day submissions.
        """
        cleaned = validate_new_entry(fields)
        return self._call("add", cleaned)

    def update(self, record_id: str, changes: Dict[str, Any]) -> Optional[WeatherRecord]:
        """Merge changes into a record. Returns None if the id is unknown."""
        cleaned = validate_changes(changes)

        if ("minTemperature" in cleaned) != ("maxTemperature" in cleaned):
            existing = self.get_by_id(record_id)
            if existing is None:
                return None
            check_merged(existing, cleaned)

        return self._call("update", record_id, cleaned)

    def delete(self, record_id: str) -> bool:
        return self._call("delete", record_id)

    def upsert_by_date(self, fields: Dict[str, Any]) -> Tuple[WeatherRecord, bool]:
        """
        Update the record for the submitted date, or add one if none exists.

        Returns (record, created). The lookup and the write happen under one
        lock so two submissions for the same day in this process cannot both
        insert.
        """
        cleaned = validate_new_entry(fields)

        with self._upsert_lock:
            existing = self.get_by_date(cleaned["date"])
            if existing is not None:
                changes = {k: v for k, v in cleaned.items() if k != "date"}
                updated = self._call("update", existing.id, changes)
                if updated is not None:
                    return updated, False
                logger.warning(
                    f"Record {existing.id} for {cleaned['date']} vanished before update, adding a new one"
                )
            return self._call("add", cleaned), True

    def create_backup(self) -> Path:
        """Snapshot the local file. Remote data is not included."""
        return self.local.create_backup()

    def status(self) -> Dict[str, Any]:
        with self._stats_lock:
            fallback_count = self.fallback_count
            last_remote_error = self.last_remote_error
        return {
            "primary": SOURCE_REMOTE if self.uses_remote else SOURCE_LOCAL,
            "fallback_count": fallback_count,
            "diverged": self.uses_remote and fallback_count > 0,
            "last_remote_error": last_remote_error,
            "local_records": self.local.count(),
        }

    def close(self) -> None:
        if self.remote is not None:
            self.remote.close()
