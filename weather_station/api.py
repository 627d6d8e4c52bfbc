"""
REST API module for the Weather Station backend.

Provides endpoints for:
- Today vs yesterday dashboard data
- History filtering by year/month and CSV/JSON download
- Manual daily entry (upsert by date), correction and deletion
- Storage health (fallbacks from the remote table to the local file)
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import StoreConfig
from .local import StorageError
from .records import ValidationError, WeatherRecord
from .reports import (
    build_today_summary,
    export_filename,
    export_payload,
    records_to_csv,
    sort_records,
)
from .store import WeatherRecordStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
SOURCE_HEADER = "X-Weather-Source"


# =============================================================================
# Pydantic Models
# =============================================================================

class WeatherRecordModel(BaseModel):
    id: str
    date: str
    rainfall: float
    maxTemperature: float
    minTemperature: float
    humidity: float
    createdAt: str
    updatedAt: str


class WeatherEntry(BaseModel):
    date: Optional[str] = None
    rainfall: Optional[float] = None
    maxTemperature: Optional[float] = None
    minTemperature: Optional[float] = None
    humidity: Optional[float] = None


class Comparison(BaseModel):
    current: float
    previous: Optional[float]
    change: Optional[float]
    changeType: str


class DailyWeatherDisplay(BaseModel):
    date: str
    rainfall: Comparison
    maxTemperature: Comparison
    minTemperature: Comparison
    humidity: Comparison


class TodayResponse(BaseModel):
    today: DailyWeatherDisplay
    lastUpdated: str


class HistoryResponse(BaseModel):
    data: List[WeatherRecordModel]
    total: int
    page: int
    limit: int


class AvailableDatesResponse(BaseModel):
    years: List[int]
    months: Dict[int, List[int]]
    totalRecords: int


class SaveResponse(BaseModel):
    success: bool
    message: str
    id: str
    created: bool


class StorageStatus(BaseModel):
    primary: str
    fallback_count: int
    diverged: bool
    last_remote_error: Optional[str]
    local_records: int


class HealthResponse(BaseModel):
    status: str
    storage: StorageStatus
    risks: List[str]


# =============================================================================
# Helpers
# =============================================================================

def _store(request: Request) -> WeatherRecordStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Storage not available")
    return store


def _tag_source(response: Response, store: WeatherRecordStore) -> None:
    if store.last_source:
        response.headers[SOURCE_HEADER] = store.last_source


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _record_model(record: WeatherRecord) -> WeatherRecordModel:
    return WeatherRecordModel(**record.to_dict())


def _filtered(store: WeatherRecordStore, year: Optional[int], month: Optional[int]) -> List[WeatherRecord]:
    if year and month:
        return store.get_by_month(year, month)
    if year:
        return store.get_by_year(year)
    return store.get_all()


def detect_risks(store: Optional[WeatherRecordStore]) -> List[str]:
    """Detect storage risks worth showing to operators."""
    if store is None:
        return ["Storage not initialized"]

    risks = []
    if store.diverged:
        risks.append(
            f"Remote backend failed {store.fallback_count} time(s); "
            "local file and remote table may have diverged"
        )
    return risks


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(config: Optional[StoreConfig] = None) -> FastAPI:
    """Build the application. The store is created on startup from `config`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Weather Station backend...")
        app.state.store = WeatherRecordStore(config or StoreConfig.from_env())
        yield
        logger.info("Shutting down...")
        app.state.store.close()
        app.state.store = None
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Kariyad Weather Station API",
        description="Daily rainfall, temperature and humidity records for the school weather station",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # =========================================================================
    # API Endpoints - Info
    # =========================================================================

    @app.get("/", tags=["Info"])
    async def root():
        """API information."""
        return {
            "name": "Kariyad Weather Station API",
            "version": API_VERSION,
            "description": "Manual daily observations with history and export",
        }

    @app.get("/api/ping", tags=["Info"])
    async def ping():
        return {"message": "pong"}

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        store = _store(request)
        risks = detect_risks(store)
        return HealthResponse(
            status="healthy" if not risks else "degraded",
            storage=StorageStatus(**store.status()),
            risks=risks,
        )

    # =========================================================================
    # API Endpoints - Dashboard & History
    # =========================================================================

    @app.get("/api/weather/today", response_model=TodayResponse, tags=["Weather"])
    def get_today(request: Request, response: Response):
        """Latest observation compared with the day before it."""
        store = _store(request)
        summary = build_today_summary(store, utc_today())
        _tag_source(response, store)
        if summary is None:
            raise HTTPException(status_code=404, detail="No weather data available")
        return summary

    @app.get("/api/weather/history", response_model=HistoryResponse, tags=["Weather"])
    def get_history(
        request: Request,
        response: Response,
        year: Optional[int] = Query(default=None, ge=1, le=9999),
        month: Optional[int] = Query(default=None, ge=1, le=12),
    ):
        """Records for a month, a year, or everything; newest first."""
        store = _store(request)
        records = sort_records(_filtered(store, year, month))
        _tag_source(response, store)
        return HistoryResponse(
            data=[_record_model(r) for r in records],
            total=len(records),
            page=1,
            limit=len(records),
        )

    @app.get("/api/weather/available-dates", response_model=AvailableDatesResponse, tags=["Weather"])
    def get_available_dates(request: Request, response: Response):
        store = _store(request)
        available = store.get_available_dates()
        _tag_source(response, store)
        return AvailableDatesResponse(**available)

    @app.get("/api/weather/download", tags=["Weather"])
    def download(
        request: Request,
        year: Optional[int] = Query(default=None, ge=1, le=9999),
        month: Optional[int] = Query(default=None, ge=1, le=12),
        format: str = Query(default="json", pattern="^(json|csv)$"),
    ):
        """Export records as a CSV or JSON attachment, oldest first."""
        store = _store(request)
        records = _filtered(store, year, month)
        filename = export_filename(year, month)
        headers = {"Content-Disposition": f'attachment; filename="{filename}.{format}"'}
        if store.last_source:
            headers[SOURCE_HEADER] = store.last_source

        if format == "csv":
            return Response(content=records_to_csv(records), media_type="text/csv", headers=headers)
        return JSONResponse(content=export_payload(records), headers=headers)

    # =========================================================================
    # API Endpoints - Manual Entry
    # =========================================================================

    @app.post("/api/weather/add", response_model=SaveResponse, tags=["Entry"])
    def add_weather_data(entry: WeatherEntry, request: Request, response: Response):
        """Save the observation for a day, replacing that day's values if present."""
        store = _store(request)
        try:
            record, created = store.upsert_by_date(entry.model_dump(exclude_none=True))
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except StorageError as e:
            logger.error(f"Save failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        _tag_source(response, store)
        return SaveResponse(
            success=True,
            message="Weather data saved successfully",
            id=record.id,
            created=created,
        )

    @app.patch("/api/weather/{record_id}", response_model=WeatherRecordModel, tags=["Entry"])
    def update_weather_data(record_id: str, entry: WeatherEntry, request: Request, response: Response):
        store = _store(request)
        try:
            record = store.update(record_id, entry.model_dump(exclude_none=True))
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except StorageError as e:
            logger.error(f"Update failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        _tag_source(response, store)
        if record is None:
            raise HTTPException(status_code=404, detail="Weather data not found")
        return _record_model(record)

    @app.delete("/api/weather/delete/{record_id}", tags=["Entry"])
    def delete_weather_data(record_id: str, request: Request, response: Response):
        store = _store(request)
        try:
            deleted = store.delete(record_id)
        except StorageError as e:
            logger.error(f"Delete failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        _tag_source(response, store)
        if not deleted:
            raise HTTPException(status_code=404, detail="Weather data not found")
        return {"success": True, "message": "Weather data deleted successfully"}

    # =========================================================================
    # API Endpoints - Admin
    # =========================================================================

    @app.post("/api/weather/backup", tags=["Admin"])
    def create_backup(request: Request):
        """Write a timestamped copy of the local data file."""
        store = _store(request)
        try:
            path = store.create_backup()
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"success": True, "backup": path.name}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "weather_station.api:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("DEBUG", "false").lower() == "true"
    )
