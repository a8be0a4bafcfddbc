"""FastAPI app: upload, reload and read-only dashboard endpoints."""

import io
import logging
import sys
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict

from . import config, data_reader
from .aggregation import aggregate, drilldown
from .dedication import dedication_matrix
from .heatmap import heat_payload
from .models import ActivityRecord, DashboardData
from .normalizer import normalize_csv
from .payloads import dashboard_payload, dedication_payload, drilldown_payload, user_metrics_frame
from .remote_rows import (
    batched,
    default_period_label,
    records_from_remote_rows,
    to_remote_rows,
)
from .store import DashboardStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _load_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error("Unknown timezone %r, falling back to UTC", name)
        return timezone.utc


TZ = _load_timezone(config.TIMEZONE)
store = DashboardStore()


def _require_dashboard() -> DashboardData:
    data = store.current()
    if data is None:
        raise HTTPException(status_code=404, detail="No dashboard loaded")
    return data


def _validate_threshold(threshold: int) -> int:
    if threshold < 0:
        raise HTTPException(status_code=400, detail="threshold must be >= 0")
    return threshold


def _summary(data: DashboardData, source: str, warnings: list[str]) -> dict:
    return {
        "source": source,
        "total_activities": data.total_activities,
        "users": len(data.user_metrics),
        "days": len(data.unique_dates),
        "period": default_period_label(data),
        "warnings": warnings,
    }


async def _ingest(records: list[ActivityRecord], warnings: list[str], source: str) -> dict:
    """Aggregate off the event loop and swap the result in."""
    if not records:
        logger.warning("No usable rows from %s: %s", source, warnings)
        raise HTTPException(
            status_code=422,
            detail={"message": "No usable activity rows found", "warnings": warnings},
        )
    data = await run_in_threadpool(aggregate, records)
    store.replace(data, source)
    return _summary(data, source, warnings)


app = FastAPI(title="CRM Activity Dashboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Disable caching for all responses
@app.middleware("http")
async def disable_cache(request: Request, call_next):
    response = await call_next(request)
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


# ── Global exception handler ──
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"error": str(exc), "detail": "Internal server error"},
    )


# ── Ingest ──

@app.post("/api/upload")
async def upload_csv(request: Request):
    """Replace the dashboard with a CSV export sent as the request body."""
    raw = await request.body()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty request body")
    text = raw.decode("utf-8-sig", errors="replace")
    records, warnings = await run_in_threadpool(normalize_csv, text, TZ)
    return await _ingest(records, warnings, "upload")


class RemoteRow(BaseModel):
    # Untyped: a wrong-typed field drops that row in
    # records_from_remote_rows instead of failing the request
    model_config = ConfigDict(extra="allow")

    id: Any = None
    user_name: Any = None
    type: Any = None
    activity_date: Any = None
    hour: Any = None
    period: Any = None
    is_demo: Any = None


@app.post("/api/remote-rows")
async def load_remote_rows(rows: list[RemoteRow]):
    """Replace the dashboard with rows previously saved to a remote table."""
    records, warnings = await run_in_threadpool(
        records_from_remote_rows, [r.model_dump() for r in rows], TZ
    )
    return await _ingest(records, warnings, "remote")


@app.post("/api/reload")
async def reload_from_disk(source: str = "csv", period: str | None = None):
    """Re-read the configured CSV export (or saved rows JSON) from disk.

    For saved rows, *period* selects one saved period; the latest is used
    when omitted.
    """
    if source == "csv":
        batch, err = await run_in_threadpool(data_reader.read_activity_csv, config.ACTIVITY_CSV, TZ)
    elif source == "rows":
        batch, err = await run_in_threadpool(
            data_reader.read_saved_period, config.REMOTE_ROWS_JSON, TZ, period
        )
    else:
        raise HTTPException(status_code=400, detail="source must be 'csv' or 'rows'")
    if batch is None:
        raise HTTPException(status_code=404, detail=err or f"No {source} source available")
    warnings = list(batch.warnings)
    if err:
        warnings.insert(0, err)
    return await _ingest(list(batch.records), warnings, f"file:{source}")


# ── Read-only views ──

@app.get("/api/dashboard")
async def dashboard_endpoint(include_raw: bool = False, threshold: int | None = None):
    """Full aggregate. Pass threshold to get noise-filtered heat cells."""
    data = _require_dashboard()
    if threshold is not None:
        _validate_threshold(threshold)
    return dashboard_payload(data, include_raw=include_raw, threshold=threshold)


@app.get("/api/heatmap")
async def heatmap_endpoint(threshold: int = config.DEFAULT_NOISE_THRESHOLD):
    data = _require_dashboard()
    _validate_threshold(threshold)
    return {
        "threshold": threshold,
        "unique_dates": list(data.unique_dates),
        "cells": heat_payload(data.heatmap_data, threshold),
    }


@app.get("/api/users/{name}")
async def user_drilldown(name: str, threshold: int = config.DEFAULT_NOISE_THRESHOLD):
    data = _require_dashboard()
    _validate_threshold(threshold)
    dd = await run_in_threadpool(drilldown, data.raw_activities, name)
    if dd.metrics is None:
        raise HTTPException(status_code=404, detail=f"Unknown user: {name}")
    return drilldown_payload(dd, threshold)


@app.get("/api/dedication")
async def dedication_endpoint():
    data = _require_dashboard()
    return dedication_payload(dedication_matrix(data.user_metrics))


@app.get("/api/remote-rows")
async def export_remote_rows(period: str | None = None,
                             batch_size: int = config.REMOTE_BATCH_SIZE):
    """Rows in remote-table shape, labelled with *period* (default: YYYY-MM of
    first activity) and split into insert-sized batches."""
    data = _require_dashboard()
    if batch_size <= 0:
        raise HTTPException(status_code=400, detail="batch_size must be > 0")
    label = period or default_period_label(data)
    rows = to_remote_rows(data.raw_activities, period=label)
    return {
        "period": label,
        "total_rows": len(rows),
        "batches": list(batched(rows, batch_size)),
    }


@app.get("/api/periods")
async def saved_periods():
    """Periods present in the saved rows file, latest first."""
    periods, err = await run_in_threadpool(data_reader.saved_periods, config.REMOTE_ROWS_JSON)
    payload = {"periods": periods, "latest": periods[0] if periods else None}
    if err:
        payload["warning"] = err
    return payload


@app.get("/api/user-metrics-export")
async def user_metrics_export():
    """Download the user metrics table as CSV."""
    data = _require_dashboard()
    buf = io.StringIO()
    user_metrics_frame(data).to_csv(buf, index=False)
    filename = f"user_metrics_{default_period_label(data)}.csv"
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/health")
async def health():
    _, source, loaded_at = store.snapshot()
    return {
        "status": "ok",
        "timezone": str(TZ),
        "csv": data_reader.source_info(config.ACTIVITY_CSV),
        "rows_json": data_reader.source_info(config.REMOTE_ROWS_JSON),
        "loaded_from": source,
        "loaded_at": loaded_at.isoformat() if loaded_at else None,
    }


def main():
    logger.info("Starting CRM Activity Dashboard on http://localhost:%s", config.PORT)
    logger.info("CSV path: %s (timezone %s)", config.ACTIVITY_CSV, TZ)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="info")


if __name__ == "__main__":
    # Allow running as `python -m crm_dashboard.backend.server` or directly
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))
    main()
