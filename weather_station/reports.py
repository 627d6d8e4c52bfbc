"""
Dashboard and export helpers for the Weather Station backend.

Turns stored records into the shapes the UI consumes:
- Day-over-day comparison for the "today" dashboard
- CSV and JSON exports for the history view
"""

import csv
import io
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .records import WeatherRecord, utc_now_iso

# Changes smaller than this are reported as neutral
NEUTRAL_THRESHOLD = 0.1

CSV_HEADER = [
    "Date",
    "Rainfall (mm)",
    "Max Temperature (°C)",
    "Min Temperature (°C)",
    "Humidity (%)",
    "Created At",
    "Updated At",
]

_METRICS = {
    "rainfall": "rainfall",
    "maxTemperature": "max_temperature",
    "minTemperature": "min_temperature",
    "humidity": "humidity",
}


def create_comparison(current: float, previous: Optional[float]) -> Dict[str, Any]:
    """Compare one metric against the previous day's value."""
    if previous is None:
        return {"current": current, "previous": None, "change": None, "changeType": "neutral"}

    change = current - previous
    if abs(change) < NEUTRAL_THRESHOLD:
        change_type = "neutral"
    elif change > 0:
        change_type = "increase"
    else:
        change_type = "decrease"

    return {"current": current, "previous": previous, "change": change, "changeType": change_type}


def sort_records(records: List[WeatherRecord], newest_first: bool = True) -> List[WeatherRecord]:
    return sorted(records, key=lambda r: r.day, reverse=newest_first)


def build_today_summary(store, today: date) -> Optional[Dict[str, Any]]:
    """
    Build the dashboard payload.

    Uses today's record when there is one; otherwise the most recent record.
    The comparison is always against the calendar day before the record
    shown. Returns None when there is nothing stored.
    """
    current = store.get_by_date(today.isoformat())
    if current is None:
        records = sort_records(store.get_all())
        if not records:
            return None
        current = records[0]

    previous_day = current.day - timedelta(days=1)
    previous = store.get_by_date(previous_day.isoformat())

    summary: Dict[str, Any] = {"date": current.date}
    for key, attr in _METRICS.items():
        summary[key] = create_comparison(
            getattr(current, attr),
            getattr(previous, attr) if previous is not None else None,
        )

    return {"today": summary, "lastUpdated": current.updated_at}


def export_filename(year: Optional[int] = None, month: Optional[int] = None) -> str:
    if year and month:
        return f"weather-data-{year}-{month:02d}"
    if year:
        return f"weather-data-{year}"
    return "weather-data-all"


def records_to_csv(records: List[WeatherRecord]) -> str:
    """CSV export in chronological order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in sort_records(records, newest_first=False):
        writer.writerow([
            record.date,
            _format_number(record.rainfall),
            _format_number(record.max_temperature),
            _format_number(record.min_temperature),
            _format_number(record.humidity),
            record.created_at,
            record.updated_at,
        ])
    return buffer.getvalue()


def export_payload(records: List[WeatherRecord]) -> Dict[str, Any]:
    """JSON export in chronological order."""
    ordered = sort_records(records, newest_first=False)
    return {
        "exportDate": utc_now_iso(),
        "totalRecords": len(ordered),
        "data": [r.to_dict() for r in ordered],
    }


def _format_number(value: float) -> str:
    # 78.0 -> "78", 12.5 -> "12.5"
    return str(int(value)) if float(value).is_integer() else str(value)
