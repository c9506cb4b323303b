"""Next-run computation for cron, interval and once schedules.

Everything here is pure: the caller supplies ``now``. Results are timezone
aware datetimes; :func:`to_iso` turns them into the storage format.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from croniter import croniter

from taskloom.infrastructure.config import TIMEZONE
from taskloom.scheduling.errors import ScheduleError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Storage format: UTC, millisecond precision, explicit offset."""
    return _aware(dt, timezone.utc).astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_iso(value: str) -> datetime:
    """Parse a stored timestamp. Naive values are read as UTC."""
    return _aware(datetime.fromisoformat(value), timezone.utc)


def _aware(dt: datetime, default_tz: timezone | ZoneInfo) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=default_tz)


def next_run(schedule_type: str, schedule_value: str, now: datetime, tz: str | None = None) -> datetime | None:
    """Return the next fire time after ``now``, or None if it never fires again.

    Raises ScheduleError for a malformed value or an unknown schedule type.
    A ``once`` timestamp that is not in the future returns None; callers
    decide whether that is a rejection (creation) or completion (after a run).
    """
    zone = ZoneInfo(tz or TIMEZONE)
    now = _aware(now, timezone.utc)

    if schedule_type == "cron":
        return _next_cron(schedule_value, now, zone)
    if schedule_type == "interval":
        ms = _parse_interval(schedule_value)
        try:
            return now + timedelta(milliseconds=ms)
        except OverflowError:
            raise ScheduleError("invalid-value", f"Interval out of range: {schedule_value}")
    if schedule_type == "once":
        try:
            run_at = _aware(datetime.fromisoformat(schedule_value.strip()), zone)
            # Must also be representable in UTC for storage
            run_at.astimezone(timezone.utc)
        except (ValueError, AttributeError):
            raise ScheduleError("invalid-timestamp", f"Invalid timestamp: {schedule_value}")
        except OverflowError:
            raise ScheduleError("invalid-value", f"Timestamp out of range: {schedule_value}")
        return run_at if run_at > now else None
    raise ScheduleError("unknown-type", f"Unknown schedule type: {schedule_type}")


def _next_cron(expression: str, now: datetime, zone: ZoneInfo) -> datetime:
    fields = expression.split()
    if len(fields) not in (5, 6) or not croniter.is_valid(expression):
        raise ScheduleError("invalid-expression", f"Invalid cron expression: {expression}")
    try:
        it = croniter(expression, now.astimezone(zone))
        candidate: datetime = it.get_next(datetime)
        # croniter may land on ``now`` itself for second-resolution expressions
        while candidate <= now:
            candidate = it.get_next(datetime)
    except (ValueError, KeyError):
        raise ScheduleError("invalid-expression", f"Invalid cron expression: {expression}")
    return candidate.astimezone(timezone.utc)


def _parse_interval(value: str) -> int:
    try:
        ms = int(value)
    except (ValueError, TypeError):
        raise ScheduleError("invalid-value", f"Invalid interval: {value}")
    if ms <= 0:
        raise ScheduleError("invalid-value", f"Invalid interval: {value}")
    return ms
