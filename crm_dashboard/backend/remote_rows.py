"""Row codec for remote activity tables.

Remote schema (one row per activity):
  {
    "user_name": "<display name>",
    "type": "<raw channel label>",
    "activity_date": "<iso8601 with offset>",
    "hour": <0-23>,                 # informational, re-derived on load
    "period": "YYYY-MM",            # optional
    "is_demo": false                # optional
  }

Only `activity_date` is trusted on reload: hour and calendar day are derived
from it under the same timezone policy the CSV normaliser uses.
"""

import logging
from datetime import tzinfo
from typing import Iterable, Iterator

from . import config
from .models import ActivityRecord, DashboardData
from .normalizer import make_record, parse_timestamp

logger = logging.getLogger(__name__)


def to_remote_rows(records: Iterable[ActivityRecord], period: str | None = None,
                   is_demo: bool = False) -> list[dict]:
    rows = []
    for rec in records:
        row = {
            "user_name": rec.user,
            "type": rec.channel_type,
            "activity_date": rec.timestamp.isoformat(),
            "hour": rec.hour_of_day,
        }
        if period is not None:
            row["period"] = period
            row["is_demo"] = is_demo
        rows.append(row)
    return rows


def _text(value) -> str:
    # Non-string names and labels count as missing
    return value.strip() if isinstance(value, str) else ""


def records_from_remote_rows(rows: Iterable[dict], tz: tzinfo) -> tuple[list[ActivityRecord], list[str]]:
    """Rebuild records from remote rows. Returns (records, warnings)."""
    records: list[ActivityRecord] = []
    skipped = 0
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            skipped += 1
            continue
        user = _text(row.get("user_name"))
        channel_type = _text(row.get("type"))
        ts = parse_timestamp(row.get("activity_date"), tz)
        if not user or not channel_type or ts is None:
            skipped += 1
            continue
        record_id = row.get("id") if row.get("id") is not None else i
        records.append(make_record(str(record_id), user, channel_type, ts, tz))

    warnings = []
    if skipped:
        logger.warning("Skipped %d invalid remote row(s)", skipped)
        warnings.append(f"Skipped {skipped} invalid remote row(s)")
    return records, warnings


def default_period_label(data: DashboardData) -> str:
    start = data.date_range.start
    if start is None:
        return "unknown"
    return f"{start.year}-{start.month:02d}"


def available_periods(rows: Iterable[dict]) -> list[str]:
    """Distinct saved periods, latest first; demo rows excluded."""
    periods = {
        row.get("period") for row in rows
        if isinstance(row, dict) and row.get("period")
    }
    periods.discard(config.DEMO_PERIOD)
    return sorted(periods, reverse=True)


def filter_period(rows: Iterable[dict], period: str) -> list[dict]:
    return [row for row in rows if isinstance(row, dict) and row.get("period") == period]


def batched(rows: list[dict], size: int = config.REMOTE_BATCH_SIZE) -> Iterator[list[dict]]:
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    for i in range(0, len(rows), size):
        yield rows[i:i + size]
