import pytz
from datetime import datetime
from typing import Optional

from app.core.config import settings

# DB columns hold naive wall-clock time in this zone
TZ = pytz.timezone(settings.TZ)

def now_local() -> datetime:
    return datetime.now(TZ)

def to_naive(dt: datetime) -> datetime:
    if dt.tzinfo:
        return dt.astimezone(TZ).replace(tzinfo=None)
    return dt

def now_naive() -> datetime:
    return to_naive(now_local())

def localize(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive DB value -> aware datetime in TZ, for API output."""
    if dt is None or dt.tzinfo:
        return dt
    return TZ.localize(dt)
