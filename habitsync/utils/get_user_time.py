from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from loguru import logger


def resolve_zone(tz_name: Optional[str]):
    """
    Returns a tzinfo for the given IANA name.
    Falls back to UTC when the name is empty or unknown.
    """
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning("Unknown timezone '{}', falling back to UTC: {}", tz_name, e)
        return timezone.utc


def get_user_now(tz_name: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Current moment in the user's timezone."""
    now_utc = now or datetime.now(timezone.utc)
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(resolve_zone(tz_name))


def get_user_today(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Calendar date the user is currently living in."""
    return get_user_now(tz_name, now).date()


def local_date(moment: datetime, tz_name: Optional[str]) -> date:
    """Bucket a stored timestamp into the user's calendar day."""
    if moment.tzinfo is None:
        # Stored as UTC; SQLite drops the offset
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(resolve_zone(tz_name)).date()
