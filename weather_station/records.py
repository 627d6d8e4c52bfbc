"""
Record model for the Weather Station backend.

Defines the daily observation record and the rules every write must pass:
- Required fields and numeric coercion
- Range checks (humidity, rainfall, min/max temperature ordering)
- Calendar-aware date boundaries for month/year queries
"""

import calendar
import math
import re
from dataclasses import dataclass, asdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# Numeric fields in their wire (camelCase) spelling
NUMERIC_FIELDS = ("rainfall", "maxTemperature", "minTemperature", "humidity")
ENTRY_FIELDS = ("date",) + NUMERIC_FIELDS

_WIRE_TO_ATTR = {
    "id": "id",
    "date": "date",
    "rainfall": "rainfall",
    "maxTemperature": "max_temperature",
    "minTemperature": "min_temperature",
    "humidity": "humidity",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_ATTR_TO_WIRE = {v: k for k, v in _WIRE_TO_ATTR.items()}

# Calendar date, optionally followed by an ISO time part
_DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})(T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2})?)?")


class ValidationError(Exception):
    """Raised when submitted weather fields are missing or out of range."""
    pass


@dataclass
class WeatherRecord:
    """One day's observation at the station."""
    id: str
    date: str               # YYYY-MM-DD
    rainfall: float         # mm
    max_temperature: float  # °C
    min_temperature: float  # °C
    humidity: float         # %
    created_at: str
    updated_at: str

    @property
    def day(self) -> date:
        return parse_date(self.date)

    def to_dict(self) -> Dict[str, Any]:
        return {_ATTR_TO_WIRE[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherRecord":
        """Build a record from its wire form. Unknown keys are ignored."""
        values = {attr: data.get(key) for key, attr in _WIRE_TO_ATTR.items()}
        values["id"] = str(values["id"])
        for attr in ("rainfall", "max_temperature", "min_temperature", "humidity"):
            values[attr] = float(values[attr])
        return cls(**values)


# Seed records written when the local file is missing or unreadable
DEFAULT_RECORDS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "date": "2025-01-15",
        "rainfall": 12.5,
        "maxTemperature": 32.1,
        "minTemperature": 24.8,
        "humidity": 78,
        "createdAt": "2025-01-15T06:00:00Z",
        "updatedAt": "2025-01-15T06:00:00Z",
    },
    {
        "id": "2",
        "date": "2025-01-14",
        "rainfall": 8.2,
        "maxTemperature": 31.5,
        "minTemperature": 25.3,
        "humidity": 75,
        "createdAt": "2025-01-14T06:00:00Z",
        "updatedAt": "2025-01-14T06:00:00Z",
    },
]


def default_records() -> List[WeatherRecord]:
    return [WeatherRecord.from_dict(item) for item in DEFAULT_RECORDS]


# =============================================================================
# Dates & Timestamps
# =============================================================================

def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_date(value: Any) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = _DATE_RE.fullmatch(value.strip()) if isinstance(value, str) else None
    try:
        if match is None:
            raise ValueError(value)
        return date.fromisoformat(match.group(1))
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month, inclusive."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def year_bounds(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


# =============================================================================
# Validation
# =============================================================================

def _coerce_number(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a valid number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a valid number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{name} must be a valid number")
    return number


def _check_ranges(fields: Dict[str, Any]) -> None:
    humidity = fields.get("humidity")
    if humidity is not None and not 0 <= humidity <= 100:
        raise ValidationError("Humidity must be between 0 and 100")

    rainfall = fields.get("rainfall")
    if rainfall is not None and rainfall < 0:
        raise ValidationError("Rainfall cannot be negative")

    low, high = fields.get("minTemperature"), fields.get("maxTemperature")
    if low is not None and high is not None and low > high:
        raise ValidationError(
            "Minimum temperature cannot be higher than maximum temperature"
        )


def validate_new_entry(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a full submission for a new record.

    Returns a cleaned copy with the date normalized and numbers coerced
    to float. Raises ValidationError on the first problem found.
    """
    missing = [name for name in ENTRY_FIELDS
               if fields.get(name) is None or fields.get(name) == ""]
    if missing:
        raise ValidationError(f"All fields are required (missing: {', '.join(missing)})")

    cleaned: Dict[str, Any] = {"date": parse_date(fields["date"]).isoformat()}
    for name in NUMERIC_FIELDS:
        cleaned[name] = _coerce_number(name, fields[name])

    _check_ranges(cleaned)
    return cleaned


def validate_changes(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a partial update. Only the provided fields are checked."""
    if "id" in fields or "createdAt" in fields:
        raise ValidationError("id and createdAt cannot be changed")

    unknown = sorted(set(fields) - set(ENTRY_FIELDS) - {"updatedAt"})
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

    cleaned: Dict[str, Any] = {}
    if fields.get("date") is not None:
        cleaned["date"] = parse_date(fields["date"]).isoformat()
    for name in NUMERIC_FIELDS:
        if fields.get(name) is not None:
            cleaned[name] = _coerce_number(name, fields[name])

    if not cleaned:
        raise ValidationError("No fields to update")

    _check_ranges(cleaned)
    return cleaned


def check_merged(existing: WeatherRecord, changes: Dict[str, Any]) -> None:
    """Re-check min/max ordering once a partial update is applied to a record."""
    merged = {
        "minTemperature": changes.get("minTemperature", existing.min_temperature),
        "maxTemperature": changes.get("maxTemperature", existing.max_temperature),
    }
    _check_ranges(merged)


def summarize_dates(records: List[WeatherRecord]) -> Dict[str, Any]:
    """Group record dates by year and month."""
    months: Dict[int, set] = {}
    for record in records:
        day = record.day
        months.setdefault(day.year, set()).add(day.month)

    return {
        "years": sorted(months, reverse=True),
        "months": {year: sorted(values) for year, values in months.items()},
        "totalRecords": len(records),
    }


def in_range(record: WeatherRecord, start: date, end: date) -> bool:
    return start <= record.day <= end


def newest_first(records: List[WeatherRecord]) -> List[WeatherRecord]:
    return sorted(records, key=lambda r: r.day, reverse=True)


def find_first(records: List[WeatherRecord], **criteria: Any) -> Optional[WeatherRecord]:
    for record in records:
        if all(getattr(record, key) == value for key, value in criteria.items()):
            return record
    return None
