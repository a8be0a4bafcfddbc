"""CSV export -> ActivityRecord normalisation.

Handles:
- Locating the user / type / timestamp columns by header substring
- Parsing timestamps in the common CRM export formats
- Converting every timestamp into the dashboard timezone
- Skipping (not failing on) rows with missing fields or bad dates
"""

import io
import logging
from datetime import datetime, tzinfo
from typing import Mapping, Sequence

import pandas as pd

from . import config
from .models import ActivityRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("user", "type", "timestamp")

_FALLBACK_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
)


def parse_timestamp(value, tz: tzinfo) -> datetime | None:
    """Parse *value* into an aware datetime in *tz*.

    Naive values are read as wall-clock time in *tz*; values carrying an
    offset (or a trailing Z) are converted into *tz*.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        if not value or not isinstance(value, str) or not value.strip():
            return None
        val = value.strip()
        dt = None
        try:
            dt = datetime.fromisoformat(val.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _FALLBACK_FORMATS:
                try:
                    dt = datetime.strptime(val, fmt)
                    break
                except ValueError:
                    continue
        if dt is None:
            return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def make_record(record_id: str, user: str, channel_type: str,
                timestamp: datetime, tz: tzinfo) -> ActivityRecord:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=tz)
    return ActivityRecord(
        record_id=str(record_id),
        user=user,
        channel_type=channel_type,
        timestamp=timestamp.astimezone(tz),
    )


def _clean_header(header) -> str:
    return str(header).strip().strip('"').strip().lower()


def detect_columns(headers: Sequence[str],
                   markers: Mapping[str, Sequence[str]] | None = None
                   ) -> tuple[dict[str, str], list[str]]:
    """Map each required field to the first header containing one of its markers.

    Markers are tried in order, so an exact CRM label beats a generic alias.
    Returns (mapping, missing_fields).
    """
    markers = markers or config.COLUMN_MARKERS
    cleaned = [(h, _clean_header(h)) for h in headers]
    mapping: dict[str, str] = {}
    for field_name in REQUIRED_FIELDS:
        for marker in markers.get(field_name, ()):
            marker = marker.lower()
            hit = next((orig for orig, low in cleaned
                        if marker in low and orig not in mapping.values()), None)
            if hit is not None:
                mapping[field_name] = hit
                break
    missing = [f for f in REQUIRED_FIELDS if f not in mapping]
    return mapping, missing


def _cell(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip().strip('"').strip()


def normalize_frame(df: pd.DataFrame, tz: tzinfo,
                    markers: Mapping[str, Sequence[str]] | None = None,
                    malformed: int = 0) -> tuple[list[ActivityRecord], list[str]]:
    """Normalise an already-loaded export. Returns (records, warnings).

    *malformed* counts lines the CSV reader already dropped; they are folded
    into the skipped-row warning.
    """
    warnings: list[str] = []
    records: list[ActivityRecord] = []
    skipped: list[tuple[int, str]] = []

    if df is None or df.empty:
        warnings.append("No data rows found")
    else:
        mapping, missing = detect_columns(list(df.columns), markers)
        if missing:
            msg = f"Missing required columns: {', '.join(missing)}"
            logger.warning("%s (headers: %s)", msg, list(df.columns))
            return [], [msg]

        columns = zip(df[mapping["user"]], df[mapping["type"]], df[mapping["timestamp"]])
        for row_no, (user_raw, type_raw, ts_raw) in enumerate(columns, start=1):
            user = _cell(user_raw)
            channel_type = _cell(type_raw)
            ts_text = _cell(ts_raw)
            if not user or not channel_type or not ts_text:
                skipped.append((row_no, "missing required field"))
                continue
            ts = parse_timestamp(ts_text, tz)
            if ts is None:
                skipped.append((row_no, f"unparseable timestamp '{ts_text}'"))
                continue
            records.append(make_record(str(row_no), user, channel_type, ts, tz))

    total_skipped = len(skipped) + malformed
    if total_skipped:
        logger.warning("Skipped %d row(s) during normalisation (%d malformed line(s))",
                       total_skipped, malformed)
        for row_no, reason in skipped[:20]:
            logger.debug("  row %d: %s", row_no, reason)
        warnings.append(f"Skipped {total_skipped} invalid row(s)")

    return records, warnings


def normalize_csv(text: str, tz: tzinfo,
                  markers: Mapping[str, Sequence[str]] | None = None
                  ) -> tuple[list[ActivityRecord], list[str]]:
    """Parse a CSV export. Returns (records, warnings); never raises on bad rows."""
    if not text or not text.strip():
        return [], ["Empty CSV input"]

    bad_lines: list[list[str]] = []

    def _drop_bad_line(fields: list[str]) -> None:
        # Too many fields, usually an unquoted comma inside a name
        logger.debug("  malformed line: %s", fields)
        bad_lines.append(fields)
        return None

    try:
        # Header read as a data row: the field count then always comes from
        # the header, so a wide first row is dropped instead of becoming an
        # implicit index.
        raw = pd.read_csv(
            io.StringIO(text.lstrip("\ufeff")),
            header=None,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_drop_bad_line,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        logger.warning("Could not parse CSV: %s", e)
        return [], [f"Could not parse CSV: {e}"]
    if raw.empty:
        return [], ["No data rows found"]

    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = [str(h) for h in raw.iloc[0]]
    return normalize_frame(df, tz, markers, malformed=len(bad_lines))
