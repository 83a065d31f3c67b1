# clinic_agenda/utils/clock.py
import time
from datetime import datetime
from zoneinfo import ZoneInfo


def now_ms() -> int:
    return int(time.time() * 1000)


def today_iso(timezone: str = "UTC") -> str:
    """Today's date in the clinic's timezone, in the stored YYYY-MM-DD shape."""
    return datetime.now(ZoneInfo(timezone)).date().isoformat()
