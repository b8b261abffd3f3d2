"""
Duty window calculation for drivers.

A driver's duty schedule is either a single start/end pair or a list of
named shifts. For a given calendar date the schedule expands into absolute
windows. A shift whose end is at or before its start runs overnight and
ends on the following day.

An empty window list means the driver is unrestricted.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import List, NamedTuple, Optional

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

WEEKDAY_CODES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


class DutyShift(NamedTuple):
    name: str
    start_time: str
    end_time: str
    days: Optional[tuple] = None


class DutyWindow(NamedTuple):
    name: str
    start: datetime
    end: datetime

    def to_dict(self):
        return {"name": self.name, "start": self.start.isoformat(), "end": self.end.isoformat()}


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` string into a :class:`datetime.time`."""
    match = _TIME_RE.match((value or "").strip())
    if not match:
        raise ValueError("Invalid time '{}', expected HH:MM".format(value))
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError("Invalid time '{}', expected HH:MM".format(value))
    return time(hour, minute)


def build_schedule(start_time=None, end_time=None, shifts=None) -> List[DutyShift]:
    """Normalise stored duty settings into a list of :class:`DutyShift`.

    Named shifts take precedence over the single start/end pair. Shift dicts
    use the stored camelCase keys (``startTime``, ``endTime``, ``days``).
    """
    result = []
    for index, raw in enumerate(shifts or []):
        start = raw.get("startTime") or raw.get("start_time")
        end = raw.get("endTime") or raw.get("end_time")
        if not start or not end:
            continue
        days = raw.get("days")
        if days:
            days = tuple(str(d).upper()[:3] for d in days)
            unknown = [d for d in days if d not in WEEKDAY_CODES]
            if unknown:
                raise ValueError("Unknown weekday codes: {}".format(", ".join(unknown)))
        result.append(DutyShift(
            name=raw.get("name") or "Shift {}".format(index + 1),
            start_time=start,
            end_time=end,
            days=days or None,
        ))
    if result:
        return result
    if start_time and end_time:
        return [DutyShift(name="Duty", start_time=start_time, end_time=end_time)]
    return []


def compute_duty_windows(schedule: List[DutyShift], reference_date: date) -> List[DutyWindow]:
    """Expand ``schedule`` into absolute windows for ``reference_date``."""
    if not schedule:
        return []

    weekday = WEEKDAY_CODES[reference_date.weekday()]
    windows = []
    for shift in schedule:
        if shift.days and weekday not in shift.days:
            continue
        start_t = parse_time(shift.start_time)
        end_t = parse_time(shift.end_time)
        start = datetime.combine(reference_date, start_t)
        end = datetime.combine(reference_date, end_t)
        if end <= start:
            end += timedelta(days=1)
        windows.append(DutyWindow(shift.name, start, end))

    windows.sort(key=lambda w: w.start)
    return windows


def is_within_duty_window(now: datetime, windows: List[DutyWindow]) -> bool:
    if not windows:
        return True
    return any(w.start <= now <= w.end for w in windows)


def last_window_end(windows: List[DutyWindow]) -> Optional[datetime]:
    if not windows:
        return None
    return max(w.end for w in windows)


def next_window_start(now: datetime, windows: List[DutyWindow]) -> Optional[datetime]:
    upcoming = [w.start for w in windows if w.start > now]
    return min(upcoming) if upcoming else None


def windows_covering(schedule: List[DutyShift], day: date) -> List[DutyWindow]:
    """Windows of ``day`` plus overnight windows carried over from the previous day."""
    carried = [
        w for w in compute_duty_windows(schedule, day - timedelta(days=1))
        if w.end > datetime.combine(day, time.min)
    ]
    return sorted(carried + compute_duty_windows(schedule, day), key=lambda w: w.start)
