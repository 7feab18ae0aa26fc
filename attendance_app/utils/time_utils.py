from datetime import datetime


def to_local(dt: datetime) -> datetime:
    """Naive local-time view of `dt`. Naive inputs are already local."""
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def parse_hhmm(value: str) -> int:
    """'HH:MM' -> minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_since_midnight(dt: datetime) -> int:
    local = to_local(dt)
    return local.hour * 60 + local.minute


def same_local_day(a: datetime, b: datetime) -> bool:
    return to_local(a).date() == to_local(b).date()
