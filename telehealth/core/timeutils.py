from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a timestamp to the naive UTC form persisted by the store."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def day_of_week(value: date) -> int:
    """Weekday index with Sunday = 0 through Saturday = 6."""
    return (value.weekday() + 1) % 7
