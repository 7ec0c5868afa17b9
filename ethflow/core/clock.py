import time
from datetime import datetime, timezone
from typing import Optional

HOUR_MS = 3_600_000

def utc_ms() -> int:
    return int(time.time() * 1000)

def ms_to_iso(ms: Optional[int]) -> str:
    if ms is None:
        return "None"
    try:
        return datetime.fromtimestamp(ms/1000, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return str(ms)

def floor_to_hour(ts_ms: int) -> int:
    return (ts_ms // HOUR_MS) * HOUR_MS
