from datetime import datetime, time, timedelta
from typing import Optional

from sidekick.calendar.types import TimeWindow


END_OF_DAY = time(23, 59, 59, 999000)


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(
        hour=END_OF_DAY.hour,
        minute=END_OF_DAY.minute,
        second=END_OF_DAY.second,
        microsecond=END_OF_DAY.microsecond,
    )


def end_of_week(reference_now: datetime) -> datetime:
    """Upcoming Sunday 23:59:59.999. On a Sunday this is the same day."""
    days_to_sunday = 6 - reference_now.weekday()
    return _end_of_day(reference_now + timedelta(days=days_to_sunday))


def window_for(period: Optional[str], reference_now: datetime) -> TimeWindow:
    """
    Compute the time window a calendar query should cover.

    Args:
        period: 'today', 'tomorrow' or 'week'. Anything else is treated as 'week'.
        reference_now: The moment the query is evaluated at

    Returns:
        TimeWindow with inclusive start/end bounds
    """
    if period == "today":
        return TimeWindow(start=_midnight(reference_now), end=_end_of_day(reference_now))

    if period == "tomorrow":
        tomorrow = reference_now + timedelta(days=1)
        return TimeWindow(start=_midnight(tomorrow), end=_end_of_day(tomorrow))

    return TimeWindow(start=_midnight(reference_now), end=end_of_week(reference_now))


def period_label(period: Optional[str]) -> str:
    if period == "today":
        return "today"
    if period == "tomorrow":
        return "tomorrow"
    return "this week"
