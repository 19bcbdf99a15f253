from __future__ import annotations
from datetime import time

def parse_hhmm(s: str) -> time:
    """Parse a 24h "HH:MM" string; raises ValueError when malformed."""
    parts = s.strip().split(":") if isinstance(s, str) else []
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"time must be in HH:MM format, got {s!r}")
    h, m = int(parts[0]), int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"time out of range: {s!r}")
    return time(hour=h, minute=m)

def format_clock(t: time) -> str:
    """12h clock label, e.g. 8:05 AM."""
    hour12 = t.hour % 12 or 12
    suffix = "AM" if t.hour < 12 else "PM"
    return f"{hour12}:{t.minute:02d} {suffix}"
