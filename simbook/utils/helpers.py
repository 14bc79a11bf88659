from datetime import datetime

from simbook.config import STUDIO_TIMEZONE


def now_local() -> datetime:
    """Current studio wall-clock time (naive, like every stored booking time)."""
    return datetime.now(STUDIO_TIMEZONE).replace(tzinfo=None, microsecond=0)
