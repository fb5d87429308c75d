"""
NAVIGUIDE Climatology — Temporal Locator
========================================
Maps a calendar date onto the two monthly slices that bracket it.

Monthly climatology values are anchored at the middle of their month.
A date is blended with the nearer adjacent month only, so the value moves
smoothly across month boundaries instead of stepping on the 1st.

Slice indices are 0-based: 0 = January … 11 = December, 12 = annual mean.

Calendar arithmetic is a plain day-count table: no calendar library and no
wall-clock access, only the date passed in.
"""

from typing import NamedTuple, Optional, Tuple


MONTHS      = 12
ANNUAL      = 12          # index of the 13th (annual mean) slice
SLICE_COUNT = 13
YEAR_DAYS   = 365

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# Cumulative day offsets of a 365-day year (Jan 1 → 0)
_MONTH_START = tuple(sum(_DAYS_IN_MONTH[:m]) for m in range(MONTHS))


# ── Calendar helpers ─────────────────────────────────────────────────────────

def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(month: int, year: Optional[int] = None) -> int:
    """Days in *month* (1–12). Without a year, February has 28 days."""
    if month == 2 and year is not None and is_leap_year(year):
        return 29
    return _DAYS_IN_MONTH[month - 1]


def day_of_year(month: int, day: int) -> int:
    """
    Year-independent day of year (0–364) on a fixed 365-day calendar.
    February 29 folds onto February 28.
    """
    day = min(day, _DAYS_IN_MONTH[month - 1])
    return _MONTH_START[month - 1] + day - 1


def day_distance(doy_a: int, doy_b: int) -> int:
    """Circular distance in days between two day-of-year values."""
    d = abs(doy_a - doy_b) % YEAR_DAYS
    return min(d, YEAR_DAYS - d)


# ── Date interpolation ───────────────────────────────────────────────────────

class DateInterpolation(NamedTuple):
    month:      int     # slice of the date's own month
    next_month: int     # nearer adjacent month
    position:   float   # fractional position inside the month, [0, 1)

    @property
    def weight(self) -> float:
        """Blend weight toward *next_month* (0 at mid-month, ~0.5 at the edges)."""
        if self.month == self.next_month:
            return 0.0
        return abs(self.position - 0.5)

    def blend(self, current: float, adjacent: float) -> float:
        w = self.weight
        return current * (1.0 - w) + adjacent * w


ANNUAL_INTERPOLATION = DateInterpolation(ANNUAL, ANNUAL, 0.0)


def _day_fraction(date) -> float:
    """Elapsed fraction of the day; dates without a clock sit at noon."""
    hour = getattr(date, "hour", None)
    if hour is None:
        return 0.5
    minute = getattr(date, "minute", 0)
    return (hour + minute / 60.0) / 24.0


def locate(date=None) -> DateInterpolation:
    """
    Place *date* between its month and the nearer adjacent month.

    *date* is anything with ``year``/``month``/``day`` attributes
    (``datetime.date``, ``datetime.datetime``, ``CycloneDateTime``).
    ``None`` selects the annual slice with no blending.
    """
    if date is None:
        return ANNUAL_INTERPOLATION

    month = date.month - 1
    days  = days_in_month(date.month, getattr(date, "year", None))
    position = (date.day - 1 + _day_fraction(date)) / days
    position = min(max(position, 0.0), 1.0 - 1e-12)

    if position < 0.5:
        next_month = (month - 1) % MONTHS
    else:
        next_month = (month + 1) % MONTHS
    return DateInterpolation(month, next_month, position)


def slices_for(date=None) -> Tuple[int, int, float]:
    """(month, next_month, weight) as consumed by the grids."""
    t = locate(date)
    return t.month, t.next_month, t.weight
