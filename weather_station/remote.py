"""
Remote REST backend for the Weather Station backend.

Talks to a PostgREST-style tabular endpoint (Supabase):
- apikey + Bearer headers for authentication
- Prefer: return=representation so writes echo the stored row
- Comparison filters (eq/gte/lte) and order=date.desc as query params
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from .records import (
    ValidationError,
    WeatherRecord,
    month_bounds,
    parse_date,
    summarize_dates,
    utc_now_iso,
    year_bounds,
)

logger = logging.getLogger(__name__)

# Configuration constants
DEFAULT_TIMEOUT = 15  # seconds
DEFAULT_TABLE = "weather_data"
USER_AGENT = "WeatherStationBackend/1.0"


class RemoteError(Exception):
    """Raised when the remote backend is unreachable or answers non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteWeatherClient:
    """
    Client for the remote weather table.

    One HTTP round trip per call, no retries: the store decides what to do
    when a call fails.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = DEFAULT_TABLE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self._session = session or self._create_session(api_key)

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _create_session(self, api_key: str) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "User-Agent": USER_AGENT,
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        })
        return session

    def _request(
        self,
        method: str,
        params: Optional[List[tuple]] = None,
        body: Any = None,
    ) -> List[Dict[str, Any]]:
        """Send one request and return the decoded row list."""
        try:
            response = self._session.request(
                method,
                self.table_url,
                params=params,
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout:
            raise RemoteError(f"Request timed out after {self.timeout}s")
        except requests.ConnectionError as e:
            raise RemoteError(f"Connection error - remote unavailable: {e}")
        except requests.HTTPError as e:
            status = e.response.status_code
            raise RemoteError(f"Remote error: {status} - {e.response.text}", status_code=status)
        except requests.RequestException as e:
            raise RemoteError(f"Request failed: {e}")

        if not response.content:
            return []
        try:
            rows = response.json()
        except ValueError:
            raise RemoteError("Remote returned a non-JSON body", status_code=response.status_code)
        if isinstance(rows, dict):
            rows = [rows]
        return rows

    def _records(self, rows: List[Dict[str, Any]]) -> List[WeatherRecord]:
        """Decode rows; any row the store could not serve is a backend error."""
        records = []
        for row in rows:
            try:
                record = WeatherRecord.from_dict(row)
                parse_date(record.date)
            except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
                raise RemoteError(f"Remote returned a malformed row: {e}")
            if row.get("id") is None or not all(
                isinstance(value, str) and value
                for value in (record.created_at, record.updated_at)
            ):
                raise RemoteError(f"Remote returned a row without id or timestamps: {row!r}")
            records.append(record)
        return records

    def _first(self, rows: List[Dict[str, Any]]) -> Optional[WeatherRecord]:
        records = self._records(rows[:1])
        return records[0] if records else None

    # =========================================================================
    # Queries
    # =========================================================================

    def get_all(self) -> List[WeatherRecord]:
        return self._records(self._request("GET", [("order", "date.desc")]))

    def get_by_id(self, record_id: str) -> Optional[WeatherRecord]:
        return self._first(self._request("GET", [("id", f"eq.{record_id}")]))

    def get_by_date(self, day: str) -> Optional[WeatherRecord]:
        return self._first(self._request("GET", [("date", f"eq.{day}")]))

    def get_between(self, start: date, end: date) -> List[WeatherRecord]:
        params = [
            ("date", f"gte.{start.isoformat()}"),
            ("date", f"lte.{end.isoformat()}"),
            ("order", "date.desc"),
        ]
        return self._records(self._request("GET", params))

    def get_by_month(self, year: int, month: int) -> List[WeatherRecord]:
        return self.get_between(*month_bounds(year, month))

    def get_by_year(self, year: int) -> List[WeatherRecord]:
        return self.get_between(*year_bounds(year))

    def get_available_dates(self) -> Dict[str, Any]:
        return summarize_dates(self.get_all())

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, fields: Dict[str, Any]) -> WeatherRecord:
        now = utc_now_iso()
        row = {**fields, "createdAt": now, "updatedAt": now}
        record = self._first(self._request("POST", body=[row]))
        if record is None:
            raise RemoteError("Remote did not return the inserted row")
        logger.info(f"Weather data added to remote table: {record.id} ({record.date})")
        return record

    def update(self, record_id: str, changes: Dict[str, Any]) -> Optional[WeatherRecord]:
        body = {k: v for k, v in changes.items() if k not in ("id", "createdAt")}
        body["updatedAt"] = utc_now_iso()
        return self._first(self._request("PATCH", [("id", f"eq.{record_id}")], body))

    def delete(self, record_id: str) -> bool:
        rows = self._request("DELETE", [("id", f"eq.{record_id}")])
        return len(rows) > 0

    def close(self) -> None:
        self._session.close()
