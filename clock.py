import math
import os
from datetime import date, datetime, timedelta
from typing import Iterable, Union
from zoneinfo import ZoneInfo

LOCAL_TZ = ZoneInfo(os.getenv("PONTO_TIMEZONE", "America/Sao_Paulo"))
SECONDS_PER_DAY = 86400

Instant = Union[date, datetime]


def local_now() -> datetime:
    return datetime.now(LOCAL_TZ)


def to_local(ts: datetime) -> datetime:
    """Horário sem fuso é considerado horário local."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=LOCAL_TZ)
    return ts.astimezone(LOCAL_TZ)


def _as_datetime(value: Instant) -> datetime:
    if isinstance(value, datetime):
        return to_local(value)
    return datetime(value.year, value.month, value.day, tzinfo=LOCAL_TZ)


def day_difference(a: Instant, b: Instant) -> int:
    """Dias inteiros de `a` até `b`, arredondados para o dia mais próximo.

    O sinal acompanha `b - a`; meio dia arredonda para cima.
    """
    seconds = (_as_datetime(b) - _as_datetime(a)).total_seconds()
    return int(math.floor(seconds / SECONDS_PER_DAY + 0.5))


def now_as_fractional_hour(now: datetime) -> float:
    return now.hour + now.minute / 60


def day_of_week(instant: Instant) -> int:
    """0 = domingo ... 6 = sábado."""
    return instant.isoweekday() % 7


def month_day(instant: Instant) -> str:
    return f"{instant.month:02d}-{instant.day:02d}"


def calendar_exception(instant: Instant, exception_dates: Iterable[str]) -> bool:
    return month_day(instant) in set(exception_dates)


def minutes_of_day(ts: datetime) -> int:
    return ts.hour * 60 + ts.minute


def add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29/02 em ano não bissexto
        return d.replace(year=d.year + years, day=28)


def local_date(ts: datetime) -> date:
    return to_local(ts).date()


def days_from(d: date, days: int) -> date:
    return d + timedelta(days=days)
