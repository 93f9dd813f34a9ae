"""Due-instant resolution.

A task's deadline is a calendar date plus an optional ``HH:MM`` time of day,
interpreted in the task's time zone. Without a time of day the deadline is the
last millisecond of that date.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from duetask.modules.tasks.errors import TaskValidationError
from duetask.modules.tasks.utils.config import Settings

END_OF_DAY = time(23, 59, 59, 999000)

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def ResolveTimezone(value: str | None) -> ZoneInfo:
    for candidate in (value, Settings.DefaultTimeZone, "UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return ZoneInfo("UTC")


def NormalizeTimeZone(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise TaskValidationError("Time zone is invalid.") from exc
    return cleaned


def ParseDueTime(value: str | None) -> time | None:
    if not value:
        return None
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)))


def NormalizeDueTime(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    parsed = ParseDueTime(cleaned)
    if parsed is None:
        raise TaskValidationError("Due time must be in HH:MM format.")
    return parsed.strftime("%H:%M")


def EnsureAware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def ResolveDueInstant(
    due_date: date | datetime | None,
    due_time: str | None,
    tz_name: str | None = None,
) -> datetime | None:
    if not due_date:
        return None
    if isinstance(due_date, datetime):
        due_date = due_date.date()
    local_time = ParseDueTime(due_time) or END_OF_DAY
    return datetime.combine(due_date, local_time, tzinfo=ResolveTimezone(tz_name))


def ResolveTaskDueInstant(task, tz_name: str | None = None) -> datetime | None:
    return ResolveDueInstant(task.DueDate, task.DueTime, getattr(task, "TimeZone", None) or tz_name)


def IsPastDue(
    due_date: date | datetime | None,
    due_time: str | None,
    now: datetime,
    tz_name: str | None = None,
) -> bool:
    due_at = ResolveDueInstant(due_date, due_time, tz_name)
    if due_at is None:
        return False
    return due_at < EnsureAware(now)
