from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


def to_decimal(value: Any) -> Decimal | None:
    """Parse a currency amount to 2dp Decimal; None when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_positive_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not f.is_integer() or f <= 0:
        return None
    return int(f)


def local_now() -> datetime:
    """Server-local wall clock as an aware datetime."""
    return datetime.now().astimezone()


def start_of_local_day(now: datetime | None = None) -> datetime:
    now = now or local_now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_local_month(now: datetime | None = None) -> datetime:
    return start_of_local_day(now).replace(day=1)


def as_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc)


def parse_date_bound(raw: str | None, *, end: bool = False) -> datetime | None:
    """
    Parse a from/to filter. Bare dates are local calendar days; an ``end`` bound
    given as a bare date covers that whole day (returned value is exclusive).
    Returns an aware UTC datetime, or None for blank input. Raises ValueError.
    """
    raw = (raw or "").strip()
    if not raw:
        return None
    if len(raw) == 10:
        d = date.fromisoformat(raw)
        local = datetime.combine(d, time.min).astimezone()
        if end:
            local = local + timedelta(days=1)
        return as_utc(local)
    dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.astimezone()
    if end:
        dt = dt + timedelta(microseconds=1)
    return as_utc(dt)
