"""Holds the dashboard currently being served.

Every new batch (upload, file reload, remote rows) replaces the previous
aggregate wholesale; readers never observe a partial update.
"""

import logging
import threading
from datetime import datetime

from .models import DashboardData

logger = logging.getLogger(__name__)


class DashboardStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._data: DashboardData | None = None
        self._source: str | None = None
        self._loaded_at: datetime | None = None

    def replace(self, data: DashboardData, source: str) -> None:
        with self._lock:
            self._data = data
            self._source = source
            self._loaded_at = datetime.now()
        logger.info("Dashboard replaced from %s: %d activities, %d users",
                    source, data.total_activities, len(data.user_metrics))

    def current(self) -> DashboardData | None:
        with self._lock:
            return self._data

    def snapshot(self) -> tuple[DashboardData | None, str | None, datetime | None]:
        with self._lock:
            return self._data, self._source, self._loaded_at

    def clear(self) -> None:
        with self._lock:
            self._data = None
            self._source = None
            self._loaded_at = None
