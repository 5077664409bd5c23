"""
Comparison Windows

Calendar arithmetic for the current / previous window pairs used by the
metrics engine. All windows are inclusive date ranges anchored to a
reference date.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Tuple


@dataclass(frozen=True)
class DateWindow:
    """Inclusive range of calendar dates"""
    start: date
    end: date

    def __contains__(self, value: date) -> bool:
        return self.start <= value <= self.end


WindowPair = Tuple[DateWindow, DateWindow]


def shift_month(year: int, month: int, months: int) -> Tuple[int, int]:
    """Move a (year, month) pair by a number of calendar months"""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def month_window(year: int, month: int) -> DateWindow:
    next_year, next_month = shift_month(year, month, 1)
    return DateWindow(date(year, month, 1), date(next_year, next_month, 1) - timedelta(days=1))


def quarter_window(year: int, month: int) -> DateWindow:
    """Calendar quarter (Jan-Mar, Apr-Jun, Jul-Sep, Oct-Dec) containing the month"""
    first_month = (month - 1) // 3 * 3 + 1
    last_year, last_month = shift_month(year, first_month, 2)
    return DateWindow(date(year, first_month, 1), month_window(last_year, last_month).end)


def week_windows(as_of: date) -> WindowPair:
    """
    Rolling seven-day windows.

    current = (as_of - 7 days, as_of], previous = (as_of - 14 days, as_of - 7 days]
    """
    current = DateWindow(as_of - timedelta(days=6), as_of)
    previous = DateWindow(as_of - timedelta(days=13), as_of - timedelta(days=7))
    return current, previous


def month_windows(as_of: date) -> WindowPair:
    """Calendar month of as_of and the month before it, rolling over at January"""
    prev_year, prev_month = shift_month(as_of.year, as_of.month, -1)
    return month_window(as_of.year, as_of.month), month_window(prev_year, prev_month)


def quarter_windows(as_of: date) -> WindowPair:
    """
    Calendar quarter of as_of and the quarter containing as_of minus three
    months. The previous quarter takes its year from the shifted month.
    """
    prev_year, prev_month = shift_month(as_of.year, as_of.month, -3)
    return quarter_window(as_of.year, as_of.month), quarter_window(prev_year, prev_month)


def year_windows(as_of: date) -> WindowPair:
    """Calendar year of as_of and the year before"""
    current = DateWindow(date(as_of.year, 1, 1), date(as_of.year, 12, 31))
    previous = DateWindow(date(as_of.year - 1, 1, 1), date(as_of.year - 1, 12, 31))
    return current, previous
