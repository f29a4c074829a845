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

"""Candidate generation for recurrence rules.

Each call of :func:`advance_and_expand` applies the FREQ and INTERVAL rule
parts once, relative to the start date, and then applies the BYxxx rule
parts in the order mandated by RFC 5545 (section 3.3.10)::

    BYMONTH, BYWEEKNO, BYYEARDAY, BYMONTHDAY, BYDAY, BYHOUR, BYMINUTE,
    BYSECOND, BYSETPOS

A rule part either expands a candidate into several or limits the set of
candidates, depending on the frequency:

    +----------+--------+--------+-------+-------+------+-------+------+
    |          |SECONDLY|MINUTELY|HOURLY |DAILY  |WEEKLY|MONTHLY|YEARLY|
    +----------+--------+--------+-------+-------+------+-------+------+
    |BYMONTH   |Limit   |Limit   |Limit  |Limit  |Limit |Limit  |Expand|
    |BYWEEKNO  |N/A     |N/A     |N/A    |N/A    |N/A   |N/A    |Expand|
    |BYYEARDAY |Limit   |Limit   |Limit  |N/A    |N/A   |N/A    |Expand|
    |BYMONTHDAY|Limit   |Limit   |Limit  |Limit  |N/A   |Expand |Expand|
    |BYDAY     |Limit   |Limit   |Limit  |Limit  |Expand|Note 1 |Note 2|
    |BYHOUR    |Limit   |Limit   |Limit  |Expand |Expand|Expand |Expand|
    |BYMINUTE  |Limit   |Limit   |Expand |Expand |Expand|Expand |Expand|
    |BYSECOND  |Limit   |Expand  |Expand |Expand |Expand|Expand |Expand|
    |BYSETPOS  |Limit   |Limit   |Limit  |Limit  |Limit |Limit  |Limit |
    +----------+--------+--------+-------+-------+------+-------+------+

    Note 1: Limit if BYMONTHDAY is present; otherwise, special expand
            for MONTHLY.
    Note 2: Limit if BYYEARDAY or BYMONTHDAY is present; otherwise,
            special expand for WEEKLY if BYWEEKNO present; otherwise,
            special expand for MONTHLY if BYMONTH present; otherwise,
            special expand for YEARLY.

Candidates travel through the pipeline together with the calendar unit
they still leave open (their scope): a YEARLY seed covers a whole year,
BYMONTH narrows it to months, BYMONTHDAY to days and BYHOUR to hours. A
rule part expands candidates whose scope is coarser than the part itself
and limits the others, which yields exactly the table above, including
both notes.

Fields the rule leaves unspecified are taken from the start date: a
MONTHLY rule without any day rule part recurs on the start date's day of
the month, a DAILY rule at the start date's time of day, and so on. Dates
that do not exist (February 30th) are skipped rather than clamped.

All arithmetic happens on naive wall-clock time in the rule's zone.
"""

import bisect
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from . import dates
from .rrule import (
    BYDAY,
    BYHOUR,
    BYMINUTE,
    BYMONTH,
    BYMONTHDAY,
    BYSECOND,
    BYWEEKNO,
    BYYEARDAY,
    ByDay,
    Frequency,
    InvalidRuleError,
    RecurrenceRule,
    WeekDay,
    frequency_rank,
)

# Calendar units a candidate may leave open, from finest to coarsest.
SECOND = 0
MINUTE = 1
HOUR = 2
DAY = 3
WEEK = 4
MONTH = 5
YEAR = 6

_SEED_SCOPES = {
    Frequency.SECONDLY: SECOND,
    Frequency.MINUTELY: MINUTE,
    Frequency.HOURLY: HOUR,
    Frequency.DAILY: DAY,
    Frequency.WEEKLY: WEEK,
    Frequency.MONTHLY: MONTH,
    Frequency.YEARLY: YEAR,
}

_STEPS = {
    Frequency.SECONDLY: timedelta(seconds=1),
    Frequency.MINUTELY: timedelta(minutes=1),
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(weeks=1),
}

# Frequencies that step in elapsed time rather than in wall-clock time, so
# that they neither repeat nor skip an hour when the clocks change.
_ELAPSED_FREQUENCIES = {Frequency.SECONDLY, Frequency.MINUTELY, Frequency.HOURLY}

# Frequencies for which each rule part expands rather than limits.
EXPANDING_FREQUENCIES = {
    BYMONTH: {Frequency.YEARLY},
    BYWEEKNO: {Frequency.YEARLY},
    BYYEARDAY: {Frequency.YEARLY},
    BYMONTHDAY: {Frequency.MONTHLY, Frequency.YEARLY},
    BYDAY: {Frequency.WEEKLY, Frequency.MONTHLY, Frequency.YEARLY},
    BYHOUR: {Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY, Frequency.YEARLY},
    BYMINUTE: {
        Frequency.HOURLY, Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY,
        Frequency.YEARLY,
    },
    BYSECOND: {
        Frequency.MINUTELY, Frequency.HOURLY, Frequency.DAILY, Frequency.WEEKLY,
        Frequency.MONTHLY, Frequency.YEARLY,
    },
}


def expands(rule_part: str, rule: RecurrenceRule) -> bool:
    """Whether rule_part expands (rather than limits) the candidates of rule."""
    freq = rule.frequency
    if rule_part == BYDAY:
        if freq == Frequency.MONTHLY:
            return not rule.by_month_day
        if freq == Frequency.YEARLY:
            return not (rule.by_month_day or rule.by_year_day)
    return freq in EXPANDING_FREQUENCIES.get(rule_part, ())


class RuleParts:
    """The BYxxx rule parts of a rule, completed with start date defaults."""

    def __init__(self, rule: RecurrenceRule, start: datetime) -> None:
        freq = rule.frequency
        self.frequency = freq
        self.week_start = rule.week_start.weekday
        self.month = list(rule.by_month)
        self.week_no = list(rule.by_week_no)
        self.year_day = list(rule.by_year_day)
        self.month_day = list(rule.by_month_day)
        self.day = list(rule.by_day)
        self.hour = list(rule.by_hour)
        self.minute = list(rule.by_minute)
        self.second = list(rule.by_second)
        self.set_pos = list(rule.by_set_pos)
        if not (self.week_no or self.year_day or self.month_day or self.day):
            if freq == Frequency.YEARLY:
                if not self.month:
                    self.month = [start.month]
                self.month_day = [start.day]
            elif freq == Frequency.MONTHLY:
                self.month_day = [start.day]
            elif freq == Frequency.WEEKLY:
                self.day = [ByDay(WeekDay.from_weekday(start.weekday()))]
        rank = frequency_rank(freq)
        if not self.hour and rank > frequency_rank(Frequency.HOURLY):
            self.hour = [start.hour]
        if not self.minute and rank > frequency_rank(Frequency.MINUTELY):
            self.minute = [start.minute]
        if not self.second and rank > frequency_rank(Frequency.SECONDLY):
            self.second = [start.second]
        # Month scope for ordinal weekdays, year scope otherwise.
        self.monthly_ordinals = freq == Frequency.MONTHLY or (
            freq == Frequency.YEARLY and bool(self.month)
        )

    def matches_day(self, d: date) -> bool:
        """Check d against the day rule parts that limit candidates."""
        if self.month and d.month not in self.month:
            return False
        if self.year_day and not _matches_year_day(d, self.year_day):
            return False
        if self.month_day and not _matches_month_day(d, self.month_day):
            return False
        if self.day and not self._matches_weekday(d):
            return False
        return True

    def _matches_weekday(self, d: date) -> bool:
        for byday in self.day:
            if byday.weekday.weekday != d.weekday():
                continue
            if byday.ordinal == 0:
                return True
            if self.monthly_ordinals:
                ordinals = dates.weekday_ordinals_in_month(d)
            else:
                ordinals = dates.weekday_ordinals_in_year(d)
            if byday.ordinal in ordinals:
                return True
        return False


def _matches_year_day(d: date, values) -> bool:
    yday = dates.day_of_year(d)
    length = dates.days_in_year(d.year)
    return any(dates.resolve_index(v, length) == yday for v in values)


def _matches_month_day(d: date, values) -> bool:
    length = dates.days_in_month(d.year, d.month)
    return any(dates.resolve_index(v, length) == d.day for v in values)


def _days(first: date, last: date) -> list[date]:
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


def _scope_days(value: datetime, scope: int, week_start: int) -> list[date]:
    """All days covered by a candidate with a day-or-coarser scope."""
    d = value.date()
    if scope == YEAR:
        return _days(date(d.year, 1, 1), date(d.year, 12, 31))
    if scope == MONTH:
        return dates.month_days(d.year, d.month)
    if scope == WEEK:
        first = dates.start_of_week(d, week_start)
        return _days(first, first + timedelta(days=6))
    return [d]


def _at(d: date, value: datetime) -> datetime:
    return datetime.combine(d, value.time())


def _apply_by_month(parts: RuleParts, candidates):
    ret = []
    for value, scope in candidates:
        if scope == YEAR:
            for month in parts.month:
                ret.append((value.replace(month=month, day=1), MONTH))
        elif scope == WEEK:
            # A week may straddle two months: narrow it to days.
            for d in _scope_days(value, scope, parts.week_start):
                if d.month in parts.month:
                    ret.append((_at(d, value), DAY))
        elif value.month in parts.month:
            ret.append((value, scope))
    return ret


def _apply_by_week_no(parts: RuleParts, candidates):
    ret = []
    for value, scope in candidates:
        year = value.year
        found = set()
        for week_year in (year - 1, year, year + 1):
            weeks = dates.weeks_in_year(week_year, parts.week_start)
            for week_no in parts.week_no:
                week = dates.resolve_index(week_no, weeks)
                if week is None:
                    continue
                for d in dates.days_of_week_number(week_year, week, parts.week_start):
                    if d.year != year:
                        continue
                    if scope == MONTH and d.month != value.month:
                        continue
                    found.add(d)
        ret.extend((_at(d, value), DAY) for d in sorted(found))
    return ret


def _apply_by_year_day(parts: RuleParts, candidates):
    ret = []
    for value, scope in candidates:
        if scope in (YEAR, MONTH):
            year = value.year
            length = dates.days_in_year(year)
            found = set()
            for year_day in parts.year_day:
                index = dates.resolve_index(year_day, length)
                if index is None:
                    continue
                d = date(year, 1, 1) + timedelta(days=index - 1)
                if scope == MONTH and d.month != value.month:
                    continue
                found.add(d)
            ret.extend((_at(d, value), DAY) for d in sorted(found))
        elif _matches_year_day(value.date(), parts.year_day):
            ret.append((value, scope))
    return ret


def _apply_by_month_day(parts: RuleParts, candidates):
    ret = []
    for value, scope in candidates:
        if scope == YEAR:
            months = range(1, 13)
        elif scope == MONTH:
            months = [value.month]
        else:
            if _matches_month_day(value.date(), parts.month_day):
                ret.append((value, scope))
            continue
        for month in months:
            length = dates.days_in_month(value.year, month)
            days = {dates.resolve_index(v, length) for v in parts.month_day}
            for day in sorted(d for d in days if d is not None):
                ret.append((_at(date(value.year, month, day), value), DAY))
    return ret


def _select_ordinal(days: list[date], ordinal: int) -> list[date]:
    if ordinal == 0:
        return days
    index = dates.resolve_index(ordinal, len(days))
    if index is None:
        return []
    return [days[index - 1]]


def _apply_by_day(parts: RuleParts, candidates):
    ret = []
    for value, scope in candidates:
        if scope == WEEK:
            first = dates.start_of_week(value.date(), parts.week_start)
            found = {
                first + timedelta(days=(byday.weekday.weekday - parts.week_start) % 7)
                for byday in parts.day
            }
        elif scope == MONTH:
            found = set()
            for byday in parts.day:
                found.update(_select_ordinal(
                    dates.weekdays_in_month(value.year, value.month, byday.weekday.weekday),
                    byday.ordinal))
        elif scope == YEAR:
            found = set()
            for byday in parts.day:
                found.update(_select_ordinal(
                    dates.weekdays_in_year(value.year, byday.weekday.weekday),
                    byday.ordinal))
        else:
            if parts._matches_weekday(value.date()):
                ret.append((value, scope))
            continue
        ret.extend((_at(d, value), DAY) for d in sorted(found))
    return ret


def _apply_time_part(candidates, values, field: str, scope_of_part: int):
    """Expand or limit on hour, minute or second."""
    ret = []
    for value, scope in candidates:
        if scope > scope_of_part:
            for v in values:
                ret.append((value.replace(**{field: v}), scope_of_part))
        elif getattr(value, field) in values:
            ret.append((value, scope))
    return ret


def _apply_by_set_pos(set_pos, values: list[datetime]) -> list[datetime]:
    selected = set()
    for pos in set_pos:
        index = dates.resolve_index(pos, len(values))
        if index is not None:
            selected.add(values[index - 1])
    return sorted(selected)


def expand_period(parts: RuleParts, seed: datetime) -> list[datetime]:
    """Apply the BYxxx rule parts to the period starting with seed.

    Returns the sorted, deduplicated candidates of the period, with BYSETPOS
    already applied.
    """
    candidates = [(seed, _SEED_SCOPES[parts.frequency])]
    if parts.month:
        candidates = _apply_by_month(parts, candidates)
    if parts.week_no:
        candidates = _apply_by_week_no(parts, candidates)
    if parts.year_day:
        candidates = _apply_by_year_day(parts, candidates)
    if parts.month_day:
        candidates = _apply_by_month_day(parts, candidates)
    if parts.day:
        candidates = _apply_by_day(parts, candidates)
    if parts.hour:
        candidates = _apply_time_part(candidates, parts.hour, "hour", HOUR)
    if parts.minute:
        candidates = _apply_time_part(candidates, parts.minute, "minute", MINUTE)
    if parts.second:
        candidates = _apply_time_part(candidates, parts.second, "second", SECOND)
    values = sorted({value for (value, scope) in candidates})
    if parts.set_pos:
        values = _apply_by_set_pos(parts.set_pos, values)
    return values


def period_seed(rule: RecurrenceRule, start: datetime, step: int) -> datetime:
    """Compute the seed of the period step FREQ/INTERVAL units after start.

    The seed is always derived from the start date rather than from the
    previous seed, so that month and year arithmetic does not drift.

    The result is a naive wall-clock time. For SECONDLY, MINUTELY and HOURLY
    an aware start is advanced in elapsed time; the seed then carries the
    ``fold`` of the instant it represents.
    """
    freq = rule.frequency
    units = step * rule.interval
    if freq in _ELAPSED_FREQUENCIES and start.tzinfo is not None:
        return rule.wall_clock(start.astimezone(timezone.utc) + units * _STEPS[freq])
    if freq in _STEPS:
        return start + units * _STEPS[freq]
    if freq == Frequency.MONTHLY:
        year, month = dates.add_months(start.year, start.month, units)
        return start.replace(year=year, month=month, day=1)
    return start.replace(year=start.year + units, month=1, day=1)


def period_start(rule: RecurrenceRule, reference: datetime) -> datetime:
    """Return the earliest instant any candidate of reference's period can have."""
    value = rule.wall_clock(reference)
    freq = rule.frequency
    if freq == Frequency.SECONDLY:
        pass
    elif freq == Frequency.MINUTELY:
        value = value.replace(second=0)
    elif freq == Frequency.HOURLY:
        value = value.replace(minute=0, second=0)
    else:
        value = value.replace(hour=0, minute=0, second=0)
        if freq == Frequency.WEEKLY:
            value = datetime.combine(
                dates.start_of_week(value.date(), rule.week_start.weekday), time()
            )
        elif freq == Frequency.MONTHLY:
            value = value.replace(day=1)
        elif freq == Frequency.YEARLY:
            value = value.replace(month=1, day=1)
    return rule.localize(value)


_MAX_PROJECTED_DAYS = 8 * 366


def _next_matching_day(parts: RuleParts, d: date) -> Optional[date]:
    """Find the first day on or after d that satisfies the limiting day parts."""
    last = d + timedelta(days=_MAX_PROJECTED_DAYS)
    while d <= last:
        if parts.month and d.month not in parts.month:
            year, month = dates.add_months(d.year, d.month, 1)
            d = date(year, month, 1)
            continue
        if parts.matches_day(d):
            return d
        d += dates.ONE_DAY
    return None


def _first_time(parts: RuleParts, lower: time, freq: Frequency) -> Optional[time]:
    """Find the first time of day at or after lower matching the time parts.

    Only fields at least as coarse as freq are taken into account, so the
    result is truncated to the frequency's unit.
    """
    hours = parts.hour or range(24)
    for hour in hours:
        if hour < lower.hour:
            continue
        if freq == Frequency.HOURLY:
            return time(hour)
        minutes = parts.minute or range(60)
        for minute in minutes:
            if (hour, minute) < (lower.hour, lower.minute):
                continue
            if freq == Frequency.MINUTELY:
                return time(hour, minute)
            seconds = parts.second or range(60)
            for second in seconds:
                if (hour, minute, second) < (lower.hour, lower.minute, lower.second):
                    continue
                return time(hour, minute, second)
    return None


def project_first_match(parts: RuleParts, reference: datetime) -> Optional[datetime]:
    """Project the limiting rule parts forward from reference.

    Returns a lower bound of the first instant, truncated to the frequency's
    unit, that could hold a candidate; None when no day matches within the
    projection horizon.
    """
    freq = parts.frequency
    d = reference.date()
    while True:
        d = _next_matching_day(parts, d)
        if d is None:
            return None
        if freq == Frequency.DAILY:
            return datetime.combine(d, time())
        lower = reference.time() if d == reference.date() else time()
        t = _first_time(parts, lower, freq)
        if t is not None:
            return datetime.combine(d, t)
        d += dates.ONE_DAY


def _truncate(value: datetime, freq: Frequency) -> datetime:
    if freq == Frequency.DAILY:
        return value.replace(hour=0, minute=0, second=0)
    if freq == Frequency.HOURLY:
        return value.replace(minute=0, second=0)
    if freq == Frequency.MINUTELY:
        return value.replace(second=0)
    return value


def next_step(rule: RecurrenceRule, parts: RuleParts, step: int,
              reference: datetime) -> int:
    """Compute the step count of the next period to evaluate.

    For DAILY and finer frequencies, skip the periods that cannot satisfy
    the limiting rule parts; for example FREQ=SECONDLY;BYYEARDAY=364 would
    otherwise need one period per second. Always returns more than step.
    """
    freq = rule.frequency
    if freq not in _STEPS or freq == Frequency.WEEKLY:
        return step + 1
    truncated = _truncate(reference, freq)
    target = project_first_match(parts, reference)
    if target is None:
        # Nothing matches within the horizon; resume right after it.
        target = truncated + timedelta(days=_MAX_PROJECTED_DAYS)
    if freq in _ELAPSED_FREQUENCIES:
        delta = (rule.instant_key(rule.localize(target))
                 - rule.instant_key(rule.localize(truncated)))
    else:
        delta = target - truncated
    return max(step + delta // (_STEPS[freq] * rule.interval), step + 1)


def advance_and_expand(rule: RecurrenceRule, state) -> tuple[Optional[datetime], list[datetime]]:
    """Evaluate the next period of rule.

    Uses and updates the ``iteration_count``, ``reference_instant`` and
    ``search_exhausted`` attributes of state. Returns the reference instant
    of the evaluated period and its candidates, which may be empty.
    """
    start = rule.wall_clock(rule.start_date)
    parts = RuleParts(rule, start)
    step = state.iteration_count
    if rule.frequency in _ELAPSED_FREQUENCIES:
        anchor = rule.start_date
    else:
        anchor = start
    lower = rule.instant_key(rule.start_date)
    try:
        seed = period_seed(rule, anchor, step)
        candidates = [rule.localize(c) for c in expand_period(parts, seed)]
        candidates = sorted(
            (c for c in candidates if rule.instant_key(c) >= lower),
            key=rule.instant_key,
        )
        following = next_step(rule, parts, step, seed)
    except (OverflowError, ValueError):
        # Only raised once the period leaves the range datetime supports.
        logging.debug("recurrence %s ran past the supported date range", rule)
        state.search_exhausted = True
        return None, []
    state.reference_instant = rule.localize(seed)
    state.iteration_count = following
    return state.reference_instant, candidates


def check_start_date(rule: RecurrenceRule, start_date: datetime) -> None:
    """Check that start_date would be the first occurrence of rule.

    Raises:
      InvalidRuleError: if UNTIL precedes start_date or start_date does
        not satisfy the rule parts
    """
    start_date = rule.normalize(start_date)
    if rule.until is not None and rule.until < start_date:
        raise InvalidRuleError("Start date cannot be after until", "DTSTART")
    candidate = rule.with_start_date(start_date)
    start = candidate.wall_clock(candidate.start_date)
    first = expand_period(RuleParts(candidate, start), period_seed(candidate, start, 0))
    index = bisect.bisect_left(first, start)
    if index == len(first) or first[index] != start:
        raise InvalidRuleError(
            "start date is not compliant with the recurrence rule", "DTSTART"
        )
