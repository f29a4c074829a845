# Calrecur
# Copyright (C) 2024 The Calrecur Authors
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; version 3
# of the License or (at your option) any later version of
# the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston,
# MA  02110-1301, USA.

"""Calendar field arithmetic.

All functions operate on proleptic Gregorian dates without any timezone
information. Weekdays are the integers used by :meth:`datetime.date.weekday`
(Monday is 0, Sunday is 6).
"""

import calendar
from datetime import date, timedelta
from typing import Optional

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)


def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def day_of_year(d: date) -> int:
    return d.timetuple().tm_yday


def add_months(year: int, month: int, count: int) -> tuple[int, int]:
    """Move a (year, month) pair by count months."""
    year, month = divmod(year * 12 + (month - 1) + count, 12)
    return year, month + 1


def resolve_index(value: int, length: int) -> Optional[int]:
    """Resolve a signed, one-based index against a period length.

    Negative values count backward from the end of the period, so -1 is
    the last element. Returns None when the magnitude exceeds the length.
    """
    if value > 0:
        return value if value <= length else None
    if value < 0:
        resolved = length + value + 1
        return resolved if resolved >= 1 else None
    return None


def start_of_week(d: date, week_start: int) -> date:
    """Return the first day of the week containing d."""
    return d - timedelta(days=(d.weekday() - week_start) % 7)


def week_one_start(year: int, week_start: int) -> date:
    """Return the first day of week number 1 of year.

    Week 1 is the first week that contains at least four days of the year.
    """
    jan1 = date(year, 1, 1)
    first = start_of_week(jan1, week_start)
    if (jan1 - first).days <= 3:
        return first
    return first + ONE_WEEK


def weeks_in_year(year: int, week_start: int) -> int:
    """Count the weeks (52 or 53) of year."""
    return (week_one_start(year + 1, week_start) - week_one_start(year, week_start)).days // 7


def week_number(d: date, week_start: int) -> tuple[int, int]:
    """Return (week-year, week number) for d.

    Days at the boundaries of a year may belong to the last week of the
    previous year or to week 1 of the next one.
    """
    year = d.year
    if d >= week_one_start(year + 1, week_start):
        year += 1
    elif d < week_one_start(year, week_start):
        year -= 1
    return year, (d - week_one_start(year, week_start)).days // 7 + 1


def days_of_week_number(year: int, week: int, week_start: int) -> list[date]:
    first = week_one_start(year, week_start) + (week - 1) * ONE_WEEK
    return [first + i * ONE_DAY for i in range(7)]


def weekdays_in_month(year: int, month: int, weekday: int) -> list[date]:
    """All dates in the month falling on weekday, in ascending order."""
    first = date(year, month, 1)
    day = 1 + (weekday - first.weekday()) % 7
    return [date(year, month, d) for d in range(day, days_in_month(year, month) + 1, 7)]


def weekdays_in_year(year: int, weekday: int) -> list[date]:
    """All dates in the year falling on weekday, in ascending order."""
    first = date(year, 1, 1)
    current = first + timedelta(days=(weekday - first.weekday()) % 7)
    ret = []
    while current.year == year:
        ret.append(current)
        current += ONE_WEEK
    return ret


def weekday_ordinals_in_month(d: date) -> tuple[int, int]:
    """Return the (positive, negative) ordinal of d's weekday in its month.

    For example the last Friday of a month with four Fridays is (4, -1).
    """
    length = days_in_month(d.year, d.month)
    return (d.day - 1) // 7 + 1, -((length - d.day) // 7 + 1)


def weekday_ordinals_in_year(d: date) -> tuple[int, int]:
    """Return the (positive, negative) ordinal of d's weekday in its year."""
    yday = day_of_year(d)
    return (yday - 1) // 7 + 1, -((days_in_year(d.year) - yday) // 7 + 1)


def month_days(year: int, month: int) -> list[date]:
    return [date(year, month, d) for d in range(1, days_in_month(year, month) + 1)]
