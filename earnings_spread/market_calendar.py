"""Market calendar for scheduling the strategy phases.

Classifies each date as a normal session, an early-closure session, a
full-day NYSE holiday or a weekend. Holidays are computed from their rules,
so no yearly list has to be maintained.
"""

import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from functools import lru_cache
from typing import Dict, Optional

import pytz

logger = logging.getLogger(__name__)

# US Eastern timezone for market hours
EASTERN = pytz.timezone("America/New_York")

# Standard market hours (Eastern Time)
MARKET_OPEN_TIME = time(9, 30)  # 9:30 AM ET
MARKET_CLOSE_TIME = time(16, 0)  # 4:00 PM ET
EARLY_CLOSE_TIME = time(13, 0)  # 1:00 PM ET

# Days when market is closed (0=Monday, 6=Sunday)
MARKET_CLOSED_DAYS = [5, 6]  # Saturday, Sunday


class DayType(Enum):
    """Kind of market day."""

    NORMAL = "normal"
    EARLY_CLOSURE = "early_closure"
    HOLIDAY = "holiday"
    WEEKEND = "weekend"


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """n-th given weekday (0=Monday) of a month."""
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _last_weekday(year: int, month: int, weekday: int) -> date:
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _observed(day: date) -> date:
    """Saturday holidays move to Friday, Sunday holidays to Monday."""
    if day.weekday() == 5:
        return day - timedelta(days=1)
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day


def easter_sunday(year: int) -> date:
    """Gregorian Easter (anonymous Gregorian algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=32)
def nyse_holidays(year: int) -> Dict[date, str]:
    """Full-day NYSE holidays for a year, keyed by observed date."""
    holidays = {}

    new_year = date(year, 1, 1)
    # a Saturday New Year's Day is not observed on the prior Friday
    if new_year.weekday() != 5:
        holidays[_observed(new_year)] = "New Year's Day"

    holidays[_nth_weekday(year, 1, 0, 3)] = "Martin Luther King Jr. Day"
    holidays[_nth_weekday(year, 2, 0, 3)] = "Presidents' Day"
    holidays[easter_sunday(year) - timedelta(days=2)] = "Good Friday"
    holidays[_last_weekday(year, 5, 0)] = "Memorial Day"
    if year >= 2022:
        holidays[_observed(date(year, 6, 19))] = "Juneteenth"
    holidays[_observed(date(year, 7, 4))] = "Independence Day"
    holidays[_nth_weekday(year, 9, 0, 1)] = "Labor Day"
    holidays[_nth_weekday(year, 11, 3, 4)] = "Thanksgiving Day"
    holidays[_observed(date(year, 12, 25))] = "Christmas Day"
    return holidays


class MarketCalendarService:
    """
    Market day classification and trading-day arithmetic.

    Example:
        calendar = MarketCalendarService()
        if calendar.day_type(date.today()) is DayType.EARLY_CLOSURE:
            ...
    """

    def holiday_name(self, day: date) -> Optional[str]:
        return nyse_holidays(day.year).get(day)

    def is_early_closure(self, day: date) -> bool:
        """July 3, the day after Thanksgiving, and Christmas Eve (on trading days)."""
        if day.weekday() in MARKET_CLOSED_DAYS or self.holiday_name(day):
            return False
        thanksgiving = _nth_weekday(day.year, 11, 3, 4)
        return day in (
            date(day.year, 7, 3),
            thanksgiving + timedelta(days=1),
            date(day.year, 12, 24),
        )

    def day_type(self, day: date) -> DayType:
        """
        Classify a date. Checked in order: weekend, holiday, early closure.
        """
        if day.weekday() in MARKET_CLOSED_DAYS:
            return DayType.WEEKEND
        if self.holiday_name(day):
            return DayType.HOLIDAY
        if self.is_early_closure(day):
            return DayType.EARLY_CLOSURE
        return DayType.NORMAL

    def is_trading_day(self, day: date) -> bool:
        return self.day_type(day) in (DayType.NORMAL, DayType.EARLY_CLOSURE)

    def next_trading_day(self, day: date) -> date:
        """First trading day strictly after `day`."""
        candidate = day + timedelta(days=1)
        while not self.is_trading_day(candidate):
            candidate += timedelta(days=1)
        return candidate

    def close_time(self, day: date) -> Optional[time]:
        """Session close (Eastern), or None when the market is closed all day."""
        day_type = self.day_type(day)
        if day_type is DayType.EARLY_CLOSURE:
            return EARLY_CLOSE_TIME
        if day_type is DayType.NORMAL:
            return MARKET_CLOSE_TIME
        return None

    def is_market_open(self, now: Optional[datetime] = None) -> bool:
        """Check if the US stock market is open at a moment.

        Args:
            now: Optional datetime to check (defaults to current time; naive
                values are treated as UTC)
        """
        if now is None:
            now = datetime.now(EASTERN)
        elif now.tzinfo is None:
            now = pytz.utc.localize(now).astimezone(EASTERN)
        else:
            now = now.astimezone(EASTERN)

        close = self.close_time(now.date())
        if close is None:
            return False
        return MARKET_OPEN_TIME <= now.time() < close


def today_eastern() -> date:
    """Current date in America/New_York."""
    return datetime.now(EASTERN).date()
