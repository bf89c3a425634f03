"""Brazilian business-day calendar.

National holidays are computed, not fetched: the fixed-date ones plus the
movable feasts anchored on Easter Sunday (Carnival Monday/Tuesday, Good
Friday, Corpus Christi).  Rolling to the next or previous business day is
delegated to numpy's busday_offset with the surrounding years' holidays
passed in as a holiday list.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache

import numpy as np

WEEKEND = "weekend"
HOLIDAY = "holiday"

_FIXED_HOLIDAYS: tuple[tuple[int, int, str], ...] = (
    (1, 1, "Confraternização Universal"),
    (4, 21, "Tiradentes"),
    (5, 1, "Dia do Trabalho"),
    (9, 7, "Independência do Brasil"),
    (10, 12, "Nossa Senhora Aparecida"),
    (11, 2, "Finados"),
    (11, 15, "Proclamação da República"),
    (11, 20, "Dia Nacional de Zumbi e da Consciência Negra"),
    (12, 25, "Natal"),
)

_WEEKDAY_NAMES = (
    "segunda-feira",
    "terça-feira",
    "quarta-feira",
    "quinta-feira",
    "sexta-feira",
    "sábado",
    "domingo",
)


def easter_sunday(year: int) -> date:
    """Gregorian Easter (Meeus/Jones/Butcher algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    lam = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * lam) // 451
    month, day = divmod(h + lam - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=64)
def _holidays(year: int) -> tuple[tuple[date, str], ...]:
    easter = easter_sunday(year)
    found = {date(year, month, day): name for month, day, name in _FIXED_HOLIDAYS}
    found[easter - timedelta(days=48)] = "Carnaval (segunda-feira)"
    found[easter - timedelta(days=47)] = "Carnaval (terça-feira)"
    found[easter - timedelta(days=2)] = "Sexta-feira Santa"
    found[easter + timedelta(days=60)] = "Corpus Christi"
    return tuple(sorted(found.items()))


def brazil_holidays(year: int) -> dict[date, str]:
    """National holidays of *year* mapped to their names, in date order."""
    return dict(_holidays(year))


@dataclass(frozen=True)
class DayCheck:
    day: date
    is_business_day: bool
    reason: str | None = None
    holiday_name: str | None = None

    @property
    def message(self) -> str:
        formatted = self.day.strftime("%d/%m/%Y")
        if self.is_business_day:
            return f"{formatted} é um dia útil"
        if self.reason == HOLIDAY:
            return f"{formatted} é feriado: {self.holiday_name}"
        return f"{formatted} é {_WEEKDAY_NAMES[self.day.weekday()]} (fim de semana)"


class BusinessDayCalendar:
    """Mon-Fri calendar minus Brazilian national holidays."""

    def check(self, day: date) -> DayCheck:
        if day.weekday() >= 5:
            return DayCheck(day, False, WEEKEND)
        name = brazil_holidays(day.year).get(day)
        if name is not None:
            return DayCheck(day, False, HOLIDAY, name)
        return DayCheck(day, True)

    def is_business_day(self, day: date) -> bool:
        return self.check(day).is_business_day

    def _holiday_array(self, *years: int) -> np.ndarray:
        days = [d for year in sorted(set(years)) for d, _ in _holidays(year)]
        return np.array(days, dtype="datetime64[D]")

    def _roll(self, day: date, roll: str) -> date:
        # Pad by one year each side so rolls across a year boundary still see holidays.
        holidays = self._holiday_array(day.year - 1, day.year, day.year + 1)
        result = np.busday_offset(np.datetime64(day, "D"), 0, roll=roll, holidays=holidays)
        return result.item()

    def next_business_day(self, day: date) -> date:
        """First business day strictly after *day*."""
        return self._roll(day + timedelta(days=1), "forward")

    def previous_business_day(self, day: date) -> date:
        """Last business day strictly before *day*."""
        return self._roll(day - timedelta(days=1), "backward")

