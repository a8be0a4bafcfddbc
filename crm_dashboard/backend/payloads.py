"""JSON-ready dicts for the API and report CLI."""

from dataclasses import asdict
from datetime import datetime

import pandas as pd

from .dedication import (
    DedicationMatrix,
    day_part_tendency,
    performance_flag,
    presence_band,
    presence_percentage,
    role_tag,
)
from .heatmap import heat_payload
from .models import ActivityRecord, DashboardData, Drilldown, UserMetrics

USER_METRICS_COLUMNS = [
    "name", "role", "total", "email", "whatsapp", "linkedin", "call",
    "active_days", "total_days_in_range", "presence_pct", "presence_band",
    "avg_hours_per_day",
    "avg_activities_per_day", "peak_hour", "morning_percentage", "afternoon_percentage",
]


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def record_payload(rec: ActivityRecord) -> dict:
    return {
        "id": rec.record_id,
        "user": rec.user,
        "type": rec.channel_type,
        "timestamp": rec.timestamp.isoformat(),
        "hour": rec.hour_of_day,
        "day": rec.calendar_day,
    }


def user_metrics_payload(m: UserMetrics) -> dict:
    out = asdict(m)
    out["role"] = role_tag(m.name)
    out["presence_pct"] = presence_percentage(m)
    out["presence_band"] = presence_band(m)
    out["performance"] = performance_flag(m)
    out["tendency"] = day_part_tendency(m)
    return out


def dashboard_payload(data: DashboardData, include_raw: bool = False,
                      threshold: int | None = None) -> dict:
    payload = {
        "total_activities": data.total_activities,
        "date_range": {
            "start": _iso(data.date_range.start),
            "end": _iso(data.date_range.end),
        },
        "user_metrics": [user_metrics_payload(m) for m in data.user_metrics],
        "activities_by_type": [asdict(t) for t in data.activities_by_type],
        "heatmap_data": (heat_payload(data.heatmap_data, threshold) if threshold is not None
                         else [asdict(c) for c in data.heatmap_data]),
        "daily_volume": [asdict(p) for p in data.daily_volume],
        "unique_dates": list(data.unique_dates),
    }
    if include_raw:
        payload["raw_activities"] = [record_payload(r) for r in data.raw_activities]
    return payload


def drilldown_payload(dd: Drilldown, threshold: int) -> dict:
    return {
        "user": dd.user,
        "metrics": user_metrics_payload(dd.metrics) if dd.metrics else None,
        "unique_dates": list(dd.unique_dates),
        "heatmap": heat_payload(dd.heatmap, threshold),
        "timeline": [asdict(p) for p in dd.timeline],
        "threshold": threshold,
    }


def dedication_payload(matrix: DedicationMatrix) -> dict:
    return {
        "points": [asdict(p) for p in matrix.points],
        "avg_presence": round(matrix.avg_presence, 1),
        "avg_volume": round(matrix.avg_volume, 1),
    }


def user_metrics_frame(data: DashboardData) -> pd.DataFrame:
    """User metrics table in dashboard order, for CSV export."""
    rows = [user_metrics_payload(m) for m in data.user_metrics]
    return pd.DataFrame(rows, columns=USER_METRICS_COLUMNS)
