"""Date and time control."""

import logging
from datetime import datetime, time
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .base import TriState
from .context import EvaluationContext
from .common import as_list
from .registry import ControlDefinition

logger = logging.getLogger(__name__)

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ScheduleError(ValueError):
    """Raised for a schedule that cannot be read."""


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, TypeError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return ZoneInfo("UTC")


def parse_timestamp(value: Any, zone: ZoneInfo) -> datetime | None:
    """Parse an ISO-8601 timestamp. Empty values mean "unbounded"."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise ScheduleError(f"Invalid timestamp '{value}'") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def parse_time_of_day(value: Any) -> time:
    try:
        hour, minute = map(int, str(value).split(":")[:2])
        return time(hour, minute)
    except ValueError as e:
        raise ScheduleError(f"Invalid time of day '{value}'") from e


def parse_days(values: Any) -> set[int]:
    """Parse weekdays given as names ("monday") or numbers (0 = Monday)."""
    days = set()
    for value in as_list(values):
        if isinstance(value, int) and 0 <= value <= 6:
            days.add(value)
        elif str(value).lower() in DAY_NAMES:
            days.add(DAY_NAMES.index(str(value).lower()))
        else:
            raise ScheduleError(f"Invalid day '{value}'")
    return days


def in_recurrence_window(recurrence: Mapping[str, Any], now: datetime) -> bool:
    """Check a weekly day-of-week + time-of-day window.

    A window whose end is before its start wraps past midnight and
    belongs to the day it starts on.
    """
    days = parse_days(recurrence.get("days")) or set(range(7))
    start = parse_time_of_day(recurrence.get("startTime") or "00:00")
    end = parse_time_of_day(recurrence.get("endTime") or "23:59")
    current = now.time().replace(second=0, microsecond=0)
    weekday = now.weekday()

    if start <= end:
        return weekday in days and start <= current <= end
    if current >= start:
        return weekday in days
    if current <= end:
        return (weekday - 1) % 7 in days
    return False


def schedule_is_configured(schedule: Mapping[str, Any]) -> bool:
    recurrence = schedule.get("recurrence") or {}
    return bool(
        schedule.get("start")
        or schedule.get("end")
        or (isinstance(recurrence, Mapping) and recurrence.get("enable"))
    )


def schedule_matches(schedule: Mapping[str, Any], now: datetime, zone: ZoneInfo) -> bool:
    """Check one schedule. Malformed ranges never match.

    Raises:
        ScheduleError: If a timestamp, day or time cannot be parsed
    """
    start = parse_timestamp(schedule.get("start"), zone)
    end = parse_timestamp(schedule.get("end"), zone)
    if start and end and start > end:
        logger.warning(f"Schedule starts after it ends: {start} > {end}")
        return False
    if start and now < start:
        return False
    if end and now > end:
        return False

    recurrence = schedule.get("recurrence")
    if isinstance(recurrence, Mapping) and recurrence.get("enable"):
        return in_recurrence_window(recurrence, now.astimezone(zone))
    return True


def evaluate_date_time(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Show the block inside a date range, optionally on a weekly schedule.

    Config:
        start / end: ISO-8601 timestamps, either may be omitted
        recurrence: {"enable": bool, "days": [...], "startTime": "HH:MM",
                     "endTime": "HH:MM"}
        schedules: list of the above; any enabled schedule may match
    """
    if not isinstance(attributes, Mapping):
        return TriState.NOT_APPLICABLE, "Date/time not configured"

    if "schedules" in attributes:
        schedules = [
            schedule for schedule in as_list(attributes.get("schedules"))
            if isinstance(schedule, Mapping) and schedule.get("enable", True)
        ]
    else:
        schedules = [attributes]
    schedules = [schedule for schedule in schedules if schedule_is_configured(schedule)]
    if not schedules:
        return TriState.NOT_APPLICABLE, "No schedule configured"

    if context.now is None:
        return TriState.NOT_APPLICABLE, "Current time unknown"

    zone = _zone(context.timezone)
    now = context.now if context.now.tzinfo else context.now.replace(tzinfo=zone)

    for schedule in schedules:
        try:
            if schedule_matches(schedule, now, zone):
                return TriState.TRUE, "Inside schedule"
        except ScheduleError as e:
            logger.warning(f"Malformed schedule, hiding block: {e}")
            return TriState.FALSE, f"Malformed schedule: {e}"
    return TriState.FALSE, "Outside schedule"


DATE_TIME = ControlDefinition(
    identifier="dateTime",
    evaluate=evaluate_date_time,
    label="Date & Time",
    icon="calendar",
    setting_slug="date_time",
)
