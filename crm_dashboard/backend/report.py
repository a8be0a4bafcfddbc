"""
Activity Report Generator
Aggregates a CRM activity CSV export without starting the server.

Usage:
    crm-activity-report export.csv --tz America/Sao_Paulo --out reports/

Output:
    user_metrics.csv
    dashboard.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import config
from .aggregation import aggregate
from .data_reader import read_activity_csv
from .models import DashboardData
from .payloads import dashboard_payload, user_metrics_frame

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crm-activity-report",
        description="Aggregate a CRM activity CSV export into user metrics and dashboard JSON.",
    )
    parser.add_argument("csv_path", type=Path, help="Path to the CSV export")
    parser.add_argument("--tz", default=config.TIMEZONE,
                        help=f"IANA timezone for hour/day derivation (default: {config.TIMEZONE})")
    parser.add_argument("--out", type=Path, default=Path("."),
                        help="Directory for user_metrics.csv and dashboard.json (default: .)")
    parser.add_argument("--threshold", type=int, default=config.DEFAULT_NOISE_THRESHOLD,
                        help="Heat grid noise threshold (default: %(default)s)")
    parser.add_argument("--top", type=int, default=10, help="Users to print (default: 10)")
    return parser


def write_reports(data: DashboardData, out_dir: Path, threshold: int) -> tuple[Path, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    csv_path = out_dir / "user_metrics.csv"
    json_path = out_dir / "dashboard.json"
    user_metrics_frame(data).to_csv(csv_path, index=False)
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(dashboard_payload(data, threshold=threshold), f, indent=2, ensure_ascii=False)
    return csv_path, json_path


def print_summary(data: DashboardData, top: int) -> None:
    start, end = data.date_range.start, data.date_range.end
    print(f"{data.total_activities} activities, {len(data.user_metrics)} users, "
          f"{len(data.unique_dates)} days ({start:%Y-%m-%d} to {end:%Y-%m-%d})")

    print(f"\nTop {min(top, len(data.user_metrics))} users:")
    for i, m in enumerate(data.user_metrics[:top], 1):
        print(f"  {i}. {m.name}: {m.total} ({m.avg_activities_per_day}/day, "
              f"{m.active_days}/{m.total_days_in_range} days, peak {m.peak_hour}:00)")

    print("\nBy type:")
    for t in data.activities_by_type:
        print(f"  {t.label}: {t.count}")


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    args = create_parser().parse_args(argv)

    try:
        tz = ZoneInfo(args.tz)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"ERROR: Unknown timezone '{args.tz}'")
        return 2

    batch, err = read_activity_csv(args.csv_path, tz)
    if batch is None:
        print(f"ERROR: {err}")
        return 1

    for w in batch.warnings:
        print(f"  Warning: {w}")
    if not batch.records:
        print("ERROR: No usable activity rows")
        return 1

    data = aggregate(batch.records)
    print_summary(data, args.top)

    try:
        csv_path, json_path = write_reports(data, args.out, args.threshold)
    except OSError as e:
        print(f"ERROR writing reports: {e}")
        return 1
    print(f"\n[OK] Written: {csv_path}")
    print(f"[OK] Written: {json_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
