"""UTC helpers.

SQLite drops tzinfo on DateTime(timezone=True) columns, so values read back
may be naive. Everything stored by this service is UTC, which makes treating
naive values as UTC safe.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
