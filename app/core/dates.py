from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """Normalise to aware UTC. SQLite hands back naive values; those are stored as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def parse_hhmm(value: str) -> time:
    try:
        hh, mm = value.strip().split(":")
        return time(int(hh), int(mm))
    except (AttributeError, ValueError):
        raise ValueError(f"invalid time '{value}', expected HH:MM")


def local_instant(day: date, hhmm: str) -> datetime:
    """Local wall-clock date + HH:MM as an aware UTC instant."""
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=local_tz()).astimezone(timezone.utc)


def local_date(dt: datetime) -> date:
    """Calendar date of an instant in marina time."""
    return as_utc(dt).astimezone(local_tz()).date()


def stay_window(check_in: date, check_out: date, check_in_time: str | None = None) -> tuple[datetime, datetime]:
    """Stay instants for a date range; a chosen arrival time applies to both ends."""
    start = local_instant(check_in, check_in_time or settings.DEFAULT_CHECKIN_TIME)
    end = local_instant(check_out, check_in_time or settings.DEFAULT_CHECKOUT_TIME)
    return start, end
