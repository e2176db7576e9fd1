from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from orderdesk.config import settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TZ)


def as_utc(dt: datetime | None) -> datetime | None:
    """Treat naive values as UTC (that is how they were written)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local(dt: datetime) -> datetime:
    return as_utc(dt).astimezone(business_tz())
