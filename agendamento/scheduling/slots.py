"""Clock-time arithmetic for delivery slots and blocked windows.

Times are zero-padded "HH:MM" strings throughout (database included), so
they also compare correctly as strings. Every interval is half-open:
[start, end).
"""

from __future__ import annotations

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from agendamento.config import settings

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
_HHMM = re.compile(HHMM_PATTERN)

# End bound of a slot or window that runs to midnight
MIDNIGHT = "24:00"


def to_minutes(hhmm: str) -> int:
    """"08:30" -> 510. "24:00" is accepted as an end bound (1440)."""
    if hhmm == MIDNIGHT:
        return 24 * 60
    if not _HHMM.match(hhmm):
        msg = f"Invalid time {hhmm!r}, expected HH:MM"
        raise ValueError(msg)
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    """510 -> "08:30". Values past midnight are clamped to 24:00."""
    total = max(0, min(total, 24 * 60))
    return f"{total // 60:02d}:{total % 60:02d}"


def slot_interval(slot: str) -> tuple[str, str]:
    """The [start, end) window a delivery slot occupies."""
    return slot, from_minutes(to_minutes(slot) + settings.scheduling.slot_minutes)


def intervals_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Half-open overlap: touching intervals ([8,10) and [10,11)) do not overlap."""
    return to_minutes(start_a) < to_minutes(end_b) and to_minutes(end_a) > to_minutes(start_b)


def is_known_slot(slot: str) -> bool:
    return slot in settings.scheduling.time_slots


def is_known_center(center: str) -> bool:
    return center in settings.scheduling.distribution_centers


def now_local() -> datetime:
    return datetime.now(ZoneInfo(settings.scheduling.timezone))


def today_local() -> date:
    """Today's date at the distribution centers, not in UTC."""
    return now_local().date()
