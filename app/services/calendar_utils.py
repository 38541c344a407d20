from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.config import settings


@lru_cache(maxsize=8)
def business_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.business_timezone)


def local_date(value, *, zone: ZoneInfo | None = None) -> date | None:
    """Calendar date of ``value`` in the business time zone.

    Aware datetimes are converted; naive datetimes are taken as already local.
    ISO strings are parsed first. Empty values yield ``None``.
    """
    if value is None or value == '':
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if len(raw) == 10:
            return date.fromisoformat(raw)
        value = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(zone or business_zone()).date()
    if isinstance(value, date):
        return value
    raise TypeError(f'Unsupported date value: {value!r}')


def is_today(value, today: date, *, zone: ZoneInfo | None = None) -> bool:
    """Same calendar day as ``today``; not a rolling 24-hour window."""
    return local_date(value, zone=zone) == today


def business_today(*, now: datetime | None = None, zone: ZoneInfo | None = None) -> date:
    tz = zone or business_zone()
    return (now.astimezone(tz) if now else datetime.now(tz=tz)).date()


def default_period(today: date) -> tuple[date, date]:
    return date(today.year, 1, 1), today
