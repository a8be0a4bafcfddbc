"""Activity aggregation in plain Python (no pandas).

One forward pass over normalized records builds every per-user and global
counter; a post-process turns the per-user accumulators into UserMetrics and
expands the sparse (day, hour) counter into a dense heat grid.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from .models import (
    ActivityRecord,
    Channel,
    DailyPoint,
    DashboardData,
    DateRange,
    Drilldown,
    HeatCell,
    TypeCount,
    UserMetrics,
)

logger = logging.getLogger(__name__)

HOURS = range(24)
MORNING_CUTOFF_HOUR = 12
DEFAULT_PEAK_HOUR = 9

# Checked in order; first match wins.
_CHANNEL_MARKERS: tuple[tuple[Channel, tuple[str, ...]], ...] = (
    (Channel.EMAIL, ("e-mail", "email")),
    (Channel.WHATSAPP, ("whatsapp",)),
    (Channel.LINKEDIN, ("linkedin",)),
    (Channel.CALL, ("chamada", "call")),
)


# ─────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────

def round_half_up(value: float, digits: int = 0) -> float:
    quant = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))


def _percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))


def classify_channel(channel_type: str) -> Channel:
    lowered = (channel_type or "").lower()
    for channel, markers in _CHANNEL_MARKERS:
        if any(m in lowered for m in markers):
            return channel
    return Channel.OTHER


def format_day_label(day: str, fmt: str = "%d/%m") -> str:
    """Short display label for a YYYY-MM-DD key."""
    return datetime.strptime(day, "%Y-%m-%d").strftime(fmt)


def pick_peak_hour(hour_counts: dict[int, int]) -> int:
    """Most frequent hour; ties go to the lowest hour."""
    if not hour_counts:
        return DEFAULT_PEAK_HOUR
    return min(hour_counts, key=lambda h: (-hour_counts[h], h))


# ─────────────────────────────────────────────
# Accumulation (single pass)
# ─────────────────────────────────────────────

@dataclass
class _UserAccumulator:
    name: str
    total: int = 0
    email: int = 0
    whatsapp: int = 0
    linkedin: int = 0
    call: int = 0
    # calendar_day -> hours observed that day, in record order
    daily_hours: dict[str, list[int]] = field(default_factory=dict)

    def add(self, record: ActivityRecord) -> None:
        self.total += 1
        channel = classify_channel(record.channel_type)
        if channel is not Channel.OTHER:
            setattr(self, channel.value, getattr(self, channel.value) + 1)
        self.daily_hours.setdefault(record.calendar_day, []).append(record.hour_of_day)


@dataclass
class _Accumulation:
    users: dict[str, _UserAccumulator] = field(default_factory=dict)
    days: set[str] = field(default_factory=set)
    heat: dict[tuple[str, int], int] = field(default_factory=lambda: defaultdict(int))
    daily: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    types: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def sorted_days(self) -> list[str]:
        # YYYY-MM-DD sorts chronologically
        return sorted(self.days)


def _accumulate(records: Iterable[ActivityRecord]) -> _Accumulation:
    acc = _Accumulation()
    for rec in records:
        day = rec.calendar_day
        acc.days.add(day)

        user = acc.users.get(rec.user)
        if user is None:
            user = acc.users[rec.user] = _UserAccumulator(name=rec.user)
        user.add(rec)

        acc.types[rec.channel_type] += 1
        acc.heat[(day, rec.hour_of_day)] += 1
        acc.daily[day] += 1
    return acc


# ─────────────────────────────────────────────
# Per-user metrics
# ─────────────────────────────────────────────

def _finalise_user(user: _UserAccumulator, total_days: int) -> UserMetrics:
    active_days = len(user.daily_hours)
    span_sum = 0
    hour_counts: dict[int, int] = defaultdict(int)
    morning = afternoon = observations = 0

    for hours in user.daily_hours.values():
        if not hours:
            continue
        span_sum += max(hours) - min(hours)
        for h in hours:
            hour_counts[h] += 1
            if h < MORNING_CUTOFF_HOUR:
                morning += 1
            else:
                afternoon += 1
            observations += 1

    if active_days > 0:
        avg_hours = round_half_up(span_sum / active_days, 1)
        avg_per_day = round_half_up(user.total / active_days, 1)
    else:
        avg_hours = 0.0
        avg_per_day = 0.0

    return UserMetrics(
        name=user.name,
        total=user.total,
        email=user.email,
        whatsapp=user.whatsapp,
        linkedin=user.linkedin,
        call=user.call,
        active_days=active_days,
        total_days_in_range=total_days,
        avg_hours_per_day=avg_hours,
        peak_hour=pick_peak_hour(hour_counts),
        morning_percentage=_percentage(morning, observations),
        afternoon_percentage=_percentage(afternoon, observations),
        avg_activities_per_day=avg_per_day,
    )


# ─────────────────────────────────────────────
# Projections
# ─────────────────────────────────────────────

def build_heat_grid(days: Sequence[str], counts: dict[tuple[str, int], int]) -> tuple[HeatCell, ...]:
    """Dense day x hour grid, day outer, hour 0..23 inner, gaps filled with 0."""
    return tuple(
        HeatCell(day=day, hour=h, value=counts.get((day, h), 0))
        for day in days
        for h in HOURS
    )


def build_daily_series(days: Sequence[str], counts: dict[str, int]) -> tuple[DailyPoint, ...]:
    return tuple(
        DailyPoint(day=day, label=format_day_label(day), count=counts.get(day, 0))
        for day in days
    )


def _type_distribution(types: dict[str, int]) -> tuple[TypeCount, ...]:
    # sorted() is stable, so equal counts keep first-encounter order
    ordered = sorted(types.items(), key=lambda kv: -kv[1])
    return tuple(TypeCount(label=k, count=v) for k, v in ordered)


def _date_range(records: Sequence[ActivityRecord]) -> DateRange:
    if not records:
        return DateRange()
    stamps = [r.timestamp for r in records]
    return DateRange(start=min(stamps), end=max(stamps))


# ─────────────────────────────────────────────
# Main computation
# ─────────────────────────────────────────────

def aggregate(records: Iterable[ActivityRecord]) -> DashboardData:
    """Compute the full dashboard aggregate for one batch of records.

    Pure and deterministic: the same input sequence always yields the same
    result. An empty batch yields zero totals, a null date range and empty
    collections.
    """
    records = tuple(records)
    acc = _accumulate(records)
    days = acc.sorted_days()

    user_metrics = [_finalise_user(u, len(days)) for u in acc.users.values()]
    user_metrics.sort(key=lambda m: -m.total)

    logger.debug("Aggregated %d records: %d users, %d days",
                 len(records), len(user_metrics), len(days))

    return DashboardData(
        total_activities=len(records),
        date_range=_date_range(records),
        user_metrics=tuple(user_metrics),
        activities_by_type=_type_distribution(acc.types),
        heatmap_data=build_heat_grid(days, acc.heat),
        daily_volume=build_daily_series(days, acc.daily),
        unique_dates=tuple(days),
        raw_activities=records,
    )


def drilldown(records: Iterable[ActivityRecord], user: str) -> Drilldown:
    """Re-aggregate a single user's records.

    The heat grid covers only the user's own active days; presence is still
    measured against every day in the full batch.
    """
    records = tuple(records)
    total_days = len({r.calendar_day for r in records})
    acc = _accumulate(r for r in records if r.user == user)
    days = acc.sorted_days()

    user_acc = acc.users.get(user)
    metrics = _finalise_user(user_acc, total_days) if user_acc else None

    return Drilldown(
        user=user,
        metrics=metrics,
        unique_dates=tuple(days),
        heatmap=build_heat_grid(days, acc.heat),
        timeline=build_daily_series(days, acc.daily),
    )
