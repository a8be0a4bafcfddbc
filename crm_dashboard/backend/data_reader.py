"""Activity sources on disk: the CRM CSV export and the saved remote rows file.

Sources are parsed straight into ActivityRecords. A parsed source is reused
until the file's mtime changes; loaders return (value, error) and never raise
for a missing or broken file.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Callable

from . import config
from .models import ActivityRecord
from .normalizer import normalize_csv
from .remote_rows import available_periods, filter_period, records_from_remote_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedBatch:
    records: tuple[ActivityRecord, ...]
    warnings: tuple[str, ...] = ()
    period: str | None = None  # saved period the rows came from, if any


# (kind, path, tz) -> (mtime, parsed value)
_parsed: dict[tuple[str, str, str], tuple[float, Any]] = {}


def _parse_if_changed(kind: str, path: Path, tz_key: str,
                      parse: Callable[[Path], Any]) -> tuple[Any | None, str | None]:
    try:
        mtime = path.stat().st_mtime
    except OSError:
        logger.warning("%s source not found: %s", kind, path)
        return None, f"File not found: {path}"

    key = (kind, str(path), tz_key)
    previous = _parsed.get(key)
    if previous and previous[0] == mtime:
        return previous[1], None

    try:
        value = parse(path)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.exception("Could not parse %s source %s", kind, path)
        if previous:
            return previous[1], f"Using previously loaded {kind} data: {e}"
        return None, f"Could not read {path}: {e}"

    _parsed[key] = (mtime, value)
    logger.info("Parsed %s source %s", kind, path)
    return value, None


def read_activity_csv(path: Path, tz: tzinfo) -> tuple[LoadedBatch | None, str | None]:
    """Normalised records from a CRM CSV export. Returns (batch, error)."""
    def parse(p: Path) -> LoadedBatch:
        records, warnings = normalize_csv(p.read_text(encoding=config.CSV_ENCODING), tz)
        return LoadedBatch(tuple(records), tuple(warnings))
    return _parse_if_changed("csv", Path(path), str(tz), parse)


def read_saved_rows(path: Path) -> tuple[list[dict] | None, str | None]:
    """Raw remote rows from the saved JSON file. Returns (rows, error)."""
    def parse(p: Path) -> list[dict]:
        with open(p, "r", encoding="utf-8") as f:
            rows = json.load(f)
        if not isinstance(rows, list):
            raise ValueError("rows file must hold a JSON list")
        return rows
    return _parse_if_changed("rows", Path(path), "", parse)


def read_saved_period(path: Path, tz: tzinfo,
                      period: str | None = None) -> tuple[LoadedBatch | None, str | None]:
    """Records for one saved period, the latest one when *period* is omitted."""
    rows, err = read_saved_rows(path)
    if rows is None:
        return None, err
    if period is None:
        periods = available_periods(rows)
        period = periods[0] if periods else None
    if period:
        rows = filter_period(rows, period)
    records, warnings = records_from_remote_rows(rows, tz)
    return LoadedBatch(tuple(records), tuple(warnings), period), err


def saved_periods(path: Path) -> tuple[list[str], str | None]:
    rows, err = read_saved_rows(path)
    return (available_periods(rows) if rows is not None else []), err


def clear_cache() -> None:
    _parsed.clear()


def source_info(path: Path) -> dict:
    """Existence, size and modification time of a source file, for health checks."""
    path = Path(path)
    try:
        st = path.stat()
    except OSError:
        return {"path": str(path), "exists": False, "modified": None, "size_bytes": 0}
    return {
        "path": str(path),
        "exists": True,
        "modified": datetime.fromtimestamp(st.st_mtime).isoformat(),
        "size_bytes": st.st_size,
    }
