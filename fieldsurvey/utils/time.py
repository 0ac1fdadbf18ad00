from __future__ import annotations

from datetime import date, datetime, time, timezone, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TZ = "America/Sao_Paulo"


def get_tz(tz_name: str | None):
    """Return a tzinfo for tz_name.

    On Windows, IANA tz database may be unavailable unless `tzdata` is installed.
    We fall back safely to UTC to avoid breaking the app.
    """
    name = tz_name or DEFAULT_TZ
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ModuleNotFoundError):
        # Sao Paulo is UTC-03 year-round (no DST since 2019)
        if name == 'America/Sao_Paulo':
            return timezone(timedelta(hours=-3))
        return timezone.utc


def utcnow() -> datetime:
    """Naive UTC now, the convention for every stored timestamp."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local_naive(dt_utc_naive: datetime, tz_name: str | None = None) -> datetime:
    """Interpret a naive datetime as UTC and convert to local naive datetime in tz_name."""
    tz = get_tz(tz_name)
    if dt_utc_naive.tzinfo is None:
        dt_utc_naive = dt_utc_naive.replace(tzinfo=timezone.utc)
    return dt_utc_naive.astimezone(tz).replace(tzinfo=None)


def local_date(dt_utc_naive: datetime, tz_name: str | None = None) -> date:
    return utc_naive_to_local_naive(dt_utc_naive, tz_name).date()


def fmt_dt_local(dt_utc_naive: datetime | None, tz_name: str | None = None, fmt: str = "%d/%m/%Y %H:%M") -> str:
    if not dt_utc_naive:
        return ""
    local = utc_naive_to_local_naive(dt_utc_naive, tz_name)
    return local.strftime(fmt)


def fmt_generated_at(dt_utc_naive: datetime, tz_name: str | None = None) -> str:
    """pt-BR 'dd/mm/aaaa às HH:MM' stamp used in exported documents."""
    local = utc_naive_to_local_naive(dt_utc_naive, tz_name)
    return f"{local.strftime('%d/%m/%Y')} às {local.strftime('%H:%M')}"


def parse_date(value) -> date | None:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_time(value) -> time | None:
    if not value:
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def fmt_date(value: date | None) -> str | None:
    return value.isoformat() if value else None


def fmt_time(value: time | None) -> str | None:
    return value.strftime('%H:%M') if value else None


def iso_utc(dt_utc_naive: datetime | None) -> str | None:
    if not dt_utc_naive:
        return None
    return dt_utc_naive.isoformat(timespec='seconds') + 'Z'
