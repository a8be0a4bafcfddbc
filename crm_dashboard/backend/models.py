"""Data structures shared by the normalizer, aggregation engine and API.

- ActivityRecord: one normalized CRM activity
- UserMetrics: per-user statistics
- DashboardData: the full aggregate read by the presentation layer
- Drilldown: per-user re-aggregation

All output structures are frozen; sequences are tuples.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Channel(str, Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    LINKEDIN = "linkedin"
    CALL = "call"
    OTHER = "other"


@dataclass(frozen=True)
class ActivityRecord:
    """Normalized activity. `timestamp` is aware and already in the dashboard timezone."""
    record_id: str
    user: str
    channel_type: str
    timestamp: datetime

    @property
    def hour_of_day(self) -> int:
        return self.timestamp.hour

    @property
    def calendar_day(self) -> str:
        return self.timestamp.strftime("%Y-%m-%d")


@dataclass(frozen=True)
class UserMetrics:
    name: str
    total: int
    email: int
    whatsapp: int
    linkedin: int
    call: int
    active_days: int
    total_days_in_range: int
    avg_hours_per_day: float  # mean daily (max hour - min hour)
    peak_hour: int
    morning_percentage: int
    afternoon_percentage: int
    avg_activities_per_day: float


@dataclass(frozen=True)
class DateRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class TypeCount:
    label: str
    count: int


@dataclass(frozen=True)
class HeatCell:
    day: str
    hour: int
    value: int


@dataclass(frozen=True)
class DailyPoint:
    day: str
    label: str
    count: int


@dataclass(frozen=True)
class DashboardData:
    total_activities: int
    date_range: DateRange
    user_metrics: tuple[UserMetrics, ...]
    activities_by_type: tuple[TypeCount, ...]
    heatmap_data: tuple[HeatCell, ...]
    daily_volume: tuple[DailyPoint, ...]
    unique_dates: tuple[str, ...]
    raw_activities: tuple[ActivityRecord, ...]

    def find_user(self, name: str) -> Optional[UserMetrics]:
        for m in self.user_metrics:
            if m.name == name:
                return m
        return None


@dataclass(frozen=True)
class Drilldown:
    user: str
    metrics: Optional[UserMetrics]
    unique_dates: tuple[str, ...]
    heatmap: tuple[HeatCell, ...]
    timeline: tuple[DailyPoint, ...]
