"""
Runtime configuration. Everything is read from the environment (or a
local .env file) once at import time.
"""
import os
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Storage ───────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./simbook.db")
SQLITE_BUSY_TIMEOUT = float(os.getenv("SQLITE_BUSY_TIMEOUT", "5"))   # seconds

BUCKET_DIR = Path(os.getenv("BUCKET_DIR", "data/bucket"))

# ── Studio ────────────────────────────────────────────────────────────────────

STUDIO_TIMEZONE = ZoneInfo(os.getenv("STUDIO_TIMEZONE", "Australia/Sydney"))

SIMULATOR_COUNT = int(os.getenv("SIMULATOR_COUNT", "4"))
DEFAULT_OPEN_HOUR = int(os.getenv("DEFAULT_OPEN_HOUR", "8"))
DEFAULT_CLOSE_HOUR = int(os.getenv("DEFAULT_CLOSE_HOUR", "18"))

# ── Booking window ────────────────────────────────────────────────────────────

MIN_ADVANCE_HOURS = int(os.getenv("MIN_ADVANCE_HOURS", "2"))
MAX_ADVANCE_DAYS = int(os.getenv("MAX_ADVANCE_DAYS", "30"))
DEFAULT_HORIZON_DAYS = int(os.getenv("DEFAULT_HORIZON_DAYS", "14"))
SHOW_UNAVAILABLE_SESSIONS = _bool("SHOW_UNAVAILABLE_SESSIONS", True)

# ── Allocation retries ────────────────────────────────────────────────────────

ALLOCATION_MAX_ATTEMPTS = int(os.getenv("ALLOCATION_MAX_ATTEMPTS", "3"))
ALLOCATION_RETRY_DELAY = float(os.getenv("ALLOCATION_RETRY_DELAY", "0.05"))  # seconds
ALLOCATION_RETRY_BACKOFF = float(os.getenv("ALLOCATION_RETRY_BACKOFF", "2.0"))
