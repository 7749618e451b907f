from __future__ import annotations

import re
from typing import Iterable, Mapping

from ..errors import ValidationError
from ..models import WEEKDAYS, ClassTime

_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def parse_clock(value: str | None, field: str = "time") -> ClassTime:
    """Parse "HH:MM" (an <input type=time> value; seconds are ignored)."""
    m = _CLOCK.match((value or "").strip())
    if not m:
        raise ValidationError(f"Please enter a valid {field.replace('_', ' ')} (HH:MM).", field=field)
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Please enter a valid {field.replace('_', ' ')} (HH:MM).", field=field)
    return ClassTime(hour, minute)


def adjust_end_time(raw_end: ClassTime, break_minutes: int = 15) -> ClassTime:
    """Append the break to a class end time.

    Wraps past midnight without touching the weekday: 23:50 becomes 00:05.
    """
    total = raw_end.hour * 60 + raw_end.minute + break_minutes
    return ClassTime((total // 60) % 24, total % 60)


def group_by_weekday(entries: Iterable[Mapping]) -> dict[str, list]:
    """Bucket entries by their ``day``; all seven days present, Monday first.

    Entries keep their incoming order inside a bucket.
    """
    grouped: dict[str, list] = {day: [] for day in WEEKDAYS}
    for entry in entries:
        bucket = grouped.get(entry.get("day"))
        if bucket is not None:
            bucket.append(entry)
    return grouped


def schedule_class(repo, fields: Mapping[str, object], principal, break_minutes: int = 15) -> dict:
    """Create a timetable row whose stored end time already includes the break.

    The end time typed by the user is not kept.
    """
    data = dict(fields)
    raw_end = str(data.get("end_time") or "").strip()
    if raw_end:
        data["end_time"] = str(adjust_end_time(parse_clock(raw_end, "end_time"), break_minutes))
    return repo.create(data, principal)
