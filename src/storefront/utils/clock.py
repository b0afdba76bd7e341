from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes coming back from storage."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)
