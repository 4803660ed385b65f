from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time, timezone-aware UTC (what the datetime columns store and return)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken to be UTC already."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
