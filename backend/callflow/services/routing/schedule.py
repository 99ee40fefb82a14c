"""Schedule window evaluation.

A schedule is a recurring weekly window in a fixed IANA timezone. Evaluation
order for an instant:

    1. Convert the instant to wall-clock time in the schedule's timezone
    2. Holiday (local ISO date) → outside, regardless of day and hours
    3. Day of week (0=Sunday) not in a non-empty working_days → outside
    4. Minute of day inside [start_time, end_time], both bounds inclusive.
       end_time < start_time wraps past midnight (e.g. 22:00-06:00).
"""

import re
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from callflow.services.routing.exceptions import InvalidScheduleError
from callflow.services.routing.models import WALL_TIME_PATTERN, Schedule

_WALL_TIME_RE = re.compile(WALL_TIME_PATTERN)


def parse_wall_time(value: str) -> int:
    """Parse an ``HH:MM`` 24-hour string into minutes since midnight."""
    if not isinstance(value, str) or not _WALL_TIME_RE.match(value):
        raise InvalidScheduleError(f"Malformed time {value!r}, expected HH:MM")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def coerce_schedule(raw: Schedule | dict[str, Any] | None) -> Schedule | None:
    """Turn a stored schedule document into a Schedule."""
    if raw is None or isinstance(raw, Schedule):
        return raw
    try:
        return Schedule.model_validate(raw)
    except ValidationError as exc:
        raise InvalidScheduleError(f"Invalid schedule: {exc.errors()[0]['msg']}") from exc


def local_time(schedule: Schedule, at: datetime) -> datetime:
    """Wall-clock time of ``at`` in the schedule's timezone (naive instants are UTC)."""
    try:
        tz = ZoneInfo(schedule.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidScheduleError(f"Unknown timezone {schedule.timezone!r}") from exc

    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(tz)


def sunday_based_weekday(moment: datetime) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (moment.weekday() + 1) % 7


def is_within_schedule(schedule: Schedule | dict[str, Any] | None, at: datetime) -> bool:
    """Return True if ``at`` falls inside the schedule window.

    No schedule means no time restriction.
    """
    schedule = coerce_schedule(schedule)
    if schedule is None:
        return True

    start = parse_wall_time(schedule.start_time)
    end = parse_wall_time(schedule.end_time)

    local = local_time(schedule, at)

    if local.date().isoformat() in schedule.holidays:
        return False

    if schedule.working_days and sunday_based_weekday(local) not in schedule.working_days:
        return False

    current = local.hour * 60 + local.minute
    if start <= end:
        return start <= current <= end
    # Overnight window (e.g. 22:00 to 06:00)
    return current >= start or current <= end
