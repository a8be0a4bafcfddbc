"""Paths and constants for the CRM activity dashboard."""

import os
from pathlib import Path

# ── Base directory (parent of crm_dashboard/) ──
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# ── Data files ──
ACTIVITY_CSV = Path(os.environ.get("CRM_DASHBOARD_CSV", BASE_DIR / "activities.csv"))
REMOTE_ROWS_JSON = Path(os.environ.get("CRM_DASHBOARD_ROWS", BASE_DIR / "activity_rows.json"))
CSV_ENCODING = "utf-8-sig"

# ── Server ──
HOST = os.environ.get("CRM_DASHBOARD_HOST", "0.0.0.0")
PORT = int(os.environ.get("CRM_DASHBOARD_PORT", "3000"))

# ── Timezone policy: hour and day are always derived in this zone ──
TIMEZONE = os.environ.get("CRM_DASHBOARD_TZ", "America/Sao_Paulo")

# ── Heat grid ──
DEFAULT_NOISE_THRESHOLD = 2

# ── Remote table rows ──
REMOTE_BATCH_SIZE = 100
DEMO_PERIOD = "demo"

# ── CSV schema: header substrings, tried in order, case-insensitive ──
COLUMN_MARKERS = {
    "user": ("usuário responsável", "responsável", "assigned user", "user"),
    "type": ("tipo", "type", "channel"),
    "timestamp": ("marcado como feito em", "marked as done", "done at", "completed at"),
}
