"""Dedication view: presence vs. daily volume per user."""

from dataclasses import dataclass
from typing import Iterable

from .aggregation import round_half_up
from .models import UserMetrics

_DEFAULT_AVG_PRESENCE = 50.0
_DEFAULT_AVG_VOLUME = 20.0
HIGH_PERFORMANCE_PER_DAY = 50
STEADY_PRESENCE_PCT = 80
LOW_PRESENCE_PCT = 70


@dataclass(frozen=True)
class DedicationPoint:
    name: str
    role: str
    presence: float  # % of days in range with activity
    volume: int  # activities per active day, at least 1
    span: float  # avg daily hour span
    quadrant: str


@dataclass(frozen=True)
class DedicationMatrix:
    points: tuple[DedicationPoint, ...]
    avg_presence: float
    avg_volume: float


def role_tag(name: str) -> str:
    return "Closer" if "closer" in (name or "").lower() else "SDR"


def presence_percentage(m: UserMetrics) -> int:
    if m.total_days_in_range <= 0:
        return 0
    return int(round_half_up(m.active_days / m.total_days_in_range * 100))


def performance_flag(m: UserMetrics) -> str:
    if m.avg_activities_per_day > HIGH_PERFORMANCE_PER_DAY:
        return "high"
    if presence_percentage(m) > STEADY_PRESENCE_PCT:
        return "steady"
    return "low"


def presence_band(m: UserMetrics) -> str:
    """Presence badge: full at 100%, low under 70%, otherwise normal."""
    presence = presence_percentage(m)
    if presence == 100:
        return "full"
    if presence < LOW_PRESENCE_PCT:
        return "low"
    return "normal"


def day_part_tendency(m: UserMetrics) -> str:
    return "morning" if m.morning_percentage > m.afternoon_percentage else "afternoon"


def _quadrant(presence: float, volume: int, avg_presence: float, avg_volume: float) -> str:
    if volume > avg_volume and presence > avg_presence:
        return "high"
    if volume < avg_volume and presence < avg_presence:
        return "low"
    return "mid"


def dedication_matrix(user_metrics: Iterable[UserMetrics]) -> DedicationMatrix:
    """Scatter points for users with at least one active day.

    Quadrants are split at the mean presence and mean volume of the plotted
    users.
    """
    raw = []
    for m in user_metrics:
        if m.total_days_in_range <= 0 or m.active_days <= 0:
            continue
        presence = round_half_up(m.active_days / m.total_days_in_range * 100, 1)
        volume = max(1, int(round_half_up(m.total / m.active_days)))
        raw.append((m, presence, volume))

    if raw:
        avg_presence = sum(p for _, p, _ in raw) / len(raw)
        avg_volume = sum(v for _, _, v in raw) / len(raw)
    else:
        avg_presence, avg_volume = _DEFAULT_AVG_PRESENCE, _DEFAULT_AVG_VOLUME

    points = tuple(
        DedicationPoint(
            name=m.name,
            role=role_tag(m.name),
            presence=presence,
            volume=volume,
            span=m.avg_hours_per_day or 0.0,
            quadrant=_quadrant(presence, volume, avg_presence, avg_volume),
        )
        for m, presence, volume in raw
    )
    return DedicationMatrix(points=points, avg_presence=avg_presence, avg_volume=avg_volume)
