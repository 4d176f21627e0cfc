from datetime import datetime, timedelta


WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

DEFAULT_HOUR = 9


def _at_default_hour(moment: datetime) -> datetime:
    return moment.replace(hour=DEFAULT_HOUR, minute=0, second=0, microsecond=0)


def resolve_relative_date(hint_text: str, reference_now: datetime) -> datetime:
    """
    Resolve a relative date hint such as 'for tomorrow' or 'on friday'.

    The literal 'tomorrow' and 'today' checks run before the weekday scan, and
    the first weekday found in Monday..Sunday order wins. A bare weekday always
    resolves to a future day, never to today. Unrecognised hints fall back to
    tomorrow. The result is pinned to 09:00.
    """
    hint = (hint_text or "").lower()

    if "tomorrow" in hint:
        return _at_default_hour(reference_now + timedelta(days=1))

    if "today" in hint:
        return _at_default_hour(reference_now)

    current_idx = reference_now.weekday()
    for target_idx, name in enumerate(WEEKDAYS):
        if name in hint:
            days_to_add = (target_idx + 7 - current_idx) % 7
            if days_to_add == 0:
                days_to_add = 7
            return _at_default_hour(reference_now + timedelta(days=days_to_add))

    return _at_default_hour(reference_now + timedelta(days=1))
