# src/tasklife/cli/timeparse.py

from __future__ import annotations

import datetime as dt
import re

_REL_RE = re.compile(r"^\+(\d+)([mhdw])$")
_REL_UNITS = {"m": 60, "h": 3600, "d": 86400, "w": 7 * 86400}

_FORMATS = (
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def parse_when(s: str, *, now_ts: float) -> float:
    """
    Parse a console time argument into an epoch timestamp (local time).

    Accepted:
      - "+30m", "+2h", "+1d", "+1w"   relative to now
      - "today", "tomorrow"            end of that day (23:59)
      - "YYYY-MM-DD"                   end of that day (23:59)
      - "YYYY-MM-DDTHH:MM" / "YYYY-MM-DD HH:MM"
    """
    raw = (s or "").strip().lower()
    if not raw:
        raise ValueError("empty time")

    m = _REL_RE.match(raw)
    if m:
        return now_ts + int(m.group(1)) * _REL_UNITS[m.group(2)]

    today = dt.datetime.fromtimestamp(now_ts).date()
    if raw == "today":
        return _end_of_day(today)
    if raw == "tomorrow":
        return _end_of_day(today + dt.timedelta(days=1))

    for fmt in _FORMATS:
        try:
            parsed = dt.datetime.strptime(raw.upper() if "T" in fmt else raw, fmt)
        except ValueError:
            continue
        if fmt == "%Y-%m-%d":
            return _end_of_day(parsed.date())
        return parsed.timestamp()

    raise ValueError(f"Invalid time: {s!r} (use +2h, tomorrow, 2024-01-08 or 2024-01-08T09:30)")


def _end_of_day(d: dt.date) -> float:
    return dt.datetime.combine(d, dt.time(23, 59)).timestamp()


def format_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return dt.datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")
