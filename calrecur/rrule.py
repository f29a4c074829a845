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

"""Recurrence rules.

See https://tools.ietf.org/html/rfc5545#section-3.3.10

A recurrence rule is composed of one required part that defines the
frequency and up to thirteen optional ones, separated by semicolons::

    FREQ=MONTHLY;BYDAY=MO,TU,WE,TH,FR;BYSETPOS=-1;COUNT=10
"""

import enum
import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Iterable, Optional, Union
from zoneinfo import ZoneInfo

FREQ = "FREQ"
UNTIL = "UNTIL"
COUNT = "COUNT"
INTERVAL = "INTERVAL"
BYSECOND = "BYSECOND"
BYMINUTE = "BYMINUTE"
BYHOUR = "BYHOUR"
BYDAY = "BYDAY"
BYMONTHDAY = "BYMONTHDAY"
BYYEARDAY = "BYYEARDAY"
BYWEEKNO = "BYWEEKNO"
BYMONTH = "BYMONTH"
BYSETPOS = "BYSETPOS"
WKST = "WKST"

UTC_FORMAT = "%Y%m%dT%H%M%SZ"
LOCAL_FORMAT = "%Y%m%dT%H%M%S"
DATE_FORMAT = "%Y%m%d"

TimeZoneLike = Union[str, tzinfo, None]


class RecurrenceError(ValueError):
    """Base class for recurrence rule errors."""


class ParseError(RecurrenceError):
    """A recurrence rule could not be parsed."""

    def __init__(self, message, rule_text=None) -> None:
        super().__init__(message)
        self.rule_text = rule_text


class InvalidRuleError(ParseError):
    """A recurrence rule combines rule parts in a way RFC 5545 forbids."""

    def __init__(self, message, constraint, rule_text=None) -> None:
        super().__init__(message, rule_text)
        self.constraint = constraint


class Frequency(enum.Enum):
    """Frequency of a recurrence rule."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_token(cls, token: str) -> "Frequency":
        """Look up a frequency by its exact (uppercase) RFC 5545 token."""
        try:
            return cls(token)
        except ValueError:
            raise KeyError(token)


# From finest to coarsest.
FREQUENCY_ORDER = [
    Frequency.SECONDLY,
    Frequency.MINUTELY,
    Frequency.HOURLY,
    Frequency.DAILY,
    Frequency.WEEKLY,
    Frequency.MONTHLY,
    Frequency.YEARLY,
]


def frequency_rank(freq: Frequency) -> int:
    return FREQUENCY_ORDER.index(freq)


class WeekDay(enum.Enum):
    """Day of the week, identified by its two-letter RFC 5545 code."""

    MONDAY = "MO"
    TUESDAY = "TU"
    WEDNESDAY = "WE"
    THURSDAY = "TH"
    FRIDAY = "FR"
    SATURDAY = "SA"
    SUNDAY = "SU"

    def __str__(self) -> str:
        return self.value

    @property
    def weekday(self) -> int:
        """Weekday number as used by datetime.date.weekday()."""
        return _WEEKDAY_NUMBERS[self]

    @classmethod
    def from_code(cls, code: str) -> "WeekDay":
        try:
            return cls(code)
        except ValueError:
            raise KeyError(code)

    @classmethod
    def from_weekday(cls, weekday: int) -> "WeekDay":
        return _WEEKDAYS[weekday]


_WEEKDAYS = list(WeekDay)
_WEEKDAY_NUMBERS = {day: i for i, day in enumerate(_WEEKDAYS)}


class ByDay:
    """A day of the week with an optional ordinal, as used in BYDAY.

    Within a MONTHLY rule, 1MO (or +1MO) is the first Monday of the month
    and -1MO the last one. An ordinal of 0 means every such day.
    """

    __slots__ = ("weekday", "ordinal")

    def __init__(self, weekday: WeekDay, ordinal: int = 0) -> None:
        if not isinstance(weekday, WeekDay):
            raise TypeError(f"expected WeekDay, got {weekday!r}")
        if abs(ordinal) > 53:
            raise ValueError(
                f"Invalid BYDAY ordinal {ordinal} (value not in range [-53, 53])"
            )
        self.weekday = weekday
        self.ordinal = ordinal

    def __eq__(self, other):
        if not isinstance(other, ByDay):
            return NotImplemented
        return self.weekday == other.weekday and self.ordinal == other.ordinal

    def __hash__(self):
        return hash((self.weekday, self.ordinal))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.weekday!r}, {self.ordinal!r})"

    def __str__(self) -> str:
        if self.ordinal:
            return f"{self.ordinal}{self.weekday}"
        return str(self.weekday)

    @classmethod
    def parse(cls, token: str) -> "ByDay":
        """Parse a ``[[+|-]ordinal]weekday`` token."""
        weekday = WeekDay.from_code(token[-2:])
        prefix = token[:-2]
        if not prefix:
            return cls(weekday)
        if prefix[0] in "+-":
            digits = prefix[1:]
        else:
            digits = prefix
        if not (digits.isascii() and digits.isdigit()) or int(digits) == 0:
            raise ValueError(f"Invalid BYDAY ordinal {prefix!r}")
        return cls(weekday, int(prefix))


class BoundedIntegerList(list):
    """A list of integers whose magnitudes lie within a fixed range.

    Values are checked as they are inserted; an out-of-range value raises
    ValueError and leaves the list untouched.
    """

    def __init__(self, minimum: int, maximum: int, negative: bool = False,
                 values: Iterable[int] = ()) -> None:
        super().__init__()
        self.minimum = minimum
        self.maximum = maximum
        self.negative = negative
        self.extend(values)

    def _check(self, value) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected integer, got {value!r}")
        if self.negative:
            if not self.minimum <= abs(value) <= self.maximum:
                raise ValueError(
                    "Invalid integer value %d (value not in range [%d, %d] U [%d, %d])"
                    % (value, -self.maximum, -self.minimum, self.minimum, self.maximum)
                )
        elif not self.minimum <= value <= self.maximum:
            raise ValueError(
                "Invalid integer value %d (value not in range [%d, %d])"
                % (value, self.minimum, self.maximum)
            )
        return value

    def append(self, value) -> None:
        super().append(self._check(value))

    def insert(self, index, value) -> None:
        super().insert(index, self._check(value))

    def extend(self, values) -> None:
        values = [self._check(v) for v in values]
        super().extend(values)

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            value = [self._check(v) for v in value]
        else:
            value = self._check(value)
        super().__setitem__(index, value)

    def __iadd__(self, values):
        self.extend(values)
        return self

    def copy(self) -> "BoundedIntegerList":
        return type(self)(self.minimum, self.maximum, self.negative, self)


# (minimum, maximum, negative values allowed) for each numeric rule part.
BOUNDS = {
    BYSECOND: (0, 59, False),
    BYMINUTE: (0, 59, False),
    BYHOUR: (0, 23, False),
    BYMONTHDAY: (1, 31, True),
    BYYEARDAY: (1, 366, True),
    BYWEEKNO: (1, 53, True),
    BYMONTH: (1, 12, False),
    BYSETPOS: (1, 366, True),
}


def bounded_list(key: str, values: Iterable[int] = ()) -> BoundedIntegerList:
    """Create a sorted BoundedIntegerList for the rule part named key."""
    (minimum, maximum, negative) = BOUNDS[key]
    ret = BoundedIntegerList(minimum, maximum, negative, values)
    ret.sort()
    return ret


def resolve_time_zone(time_zone: TimeZoneLike) -> Optional[tzinfo]:
    if isinstance(time_zone, str):
        return ZoneInfo(time_zone)
    return time_zone


def resolve_anchor(start_date: Optional[datetime], time_zone: TimeZoneLike):
    """Determine the start instant and zone of a rule.

    Returns a (start_date, zone) tuple. The zone is None for floating
    rules, which have a naive start date.
    """
    zone = resolve_time_zone(time_zone)
    if start_date is None:
        start_date = datetime.now(zone)
    elif type(start_date) is date:
        start_date = datetime.combine(start_date, datetime.min.time())
    if start_date.tzinfo is None:
        if zone is not None:
            start_date = start_date.replace(tzinfo=zone)
    elif zone is None:
        zone = start_date.tzinfo
    else:
        start_date = start_date.astimezone(zone)
    return start_date.replace(microsecond=0), zone


def normalize_instant(instant: datetime, zone: Optional[tzinfo]) -> datetime:
    """Bring instant into the frame of reference of a rule with zone."""
    if instant is None:
        raise TypeError("instant can not be None")
    if type(instant) is date:
        instant = datetime.combine(instant, datetime.min.time())
    if zone is None:
        if instant.tzinfo is not None:
            instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
        return instant
    if instant.tzinfo is None:
        return instant.replace(tzinfo=zone)
    return instant.astimezone(zone)


class RecurrenceRule:
    """An RFC 5545 recurrence rule anchored at a start date.

    Rules are immutable. Use :meth:`replace` or one of the ``with_*``
    helpers to derive a modified rule; every derived rule is validated
    before it is returned. Occurrences are computed by the search object
    returned from :meth:`search`.
    """

    def __init__(
        self,
        frequency: Frequency,
        *,
        interval: int = 1,
        until: Optional[datetime] = None,
        count: Optional[int] = None,
        by_second: Iterable[int] = (),
        by_minute: Iterable[int] = (),
        by_hour: Iterable[int] = (),
        by_day: Iterable[ByDay] = (),
        by_month_day: Iterable[int] = (),
        by_year_day: Iterable[int] = (),
        by_week_no: Iterable[int] = (),
        by_month: Iterable[int] = (),
        by_set_pos: Iterable[int] = (),
        week_start: WeekDay = WeekDay.MONDAY,
        start_date: Optional[datetime] = None,
        time_zone: TimeZoneLike = None,
    ) -> None:
        if frequency is None:
            raise TypeError("frequency can not be None")
        if week_start is None:
            raise TypeError("week_start can not be None")
        if interval is None or interval < 1:
            raise ValueError("The INTERVAL rule part MUST contain a positive integer")
        if count is not None and count < 1:
            raise ValueError("The COUNT rule part MUST contain a positive integer")
        self._frequency = Frequency(frequency)
        self._interval = interval
        self._count = count
        self._by_second = bounded_list(BYSECOND, by_second)
        self._by_minute = bounded_list(BYMINUTE, by_minute)
        self._by_hour = bounded_list(BYHOUR, by_hour)
        self._by_day = list(by_day)
        for byday in self._by_day:
            if not isinstance(byday, ByDay):
                raise TypeError(f"expected ByDay, got {byday!r}")
        self._by_month_day = bounded_list(BYMONTHDAY, by_month_day)
        self._by_year_day = bounded_list(BYYEARDAY, by_year_day)
        self._by_week_no = bounded_list(BYWEEKNO, by_week_no)
        self._by_month = bounded_list(BYMONTH, by_month)
        self._by_set_pos = bounded_list(BYSETPOS, by_set_pos)
        self._week_start = WeekDay(week_start)
        self._start_date, self._time_zone = resolve_anchor(start_date, time_zone)
        if until is not None:
            until = normalize_instant(until, self._time_zone)
        self._until = until
        validate_rule(self)

    @property
    def frequency(self) -> Frequency:
        return self._frequency

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def until(self) -> Optional[datetime]:
        return self._until

    @property
    def count(self) -> Optional[int]:
        return self._count

    @property
    def by_second(self) -> tuple[int, ...]:
        return tuple(self._by_second)

    @property
    def by_minute(self) -> tuple[int, ...]:
        return tuple(self._by_minute)

    @property
    def by_hour(self) -> tuple[int, ...]:
        return tuple(self._by_hour)

    @property
    def by_day(self) -> tuple[ByDay, ...]:
        return tuple(self._by_day)

    @property
    def by_month_day(self) -> tuple[int, ...]:
        return tuple(self._by_month_day)

    @property
    def by_year_day(self) -> tuple[int, ...]:
        return tuple(self._by_year_day)

    @property
    def by_week_no(self) -> tuple[int, ...]:
        return tuple(self._by_week_no)

    @property
    def by_month(self) -> tuple[int, ...]:
        return tuple(self._by_month)

    @property
    def by_set_pos(self) -> tuple[int, ...]:
        return tuple(self._by_set_pos)

    @property
    def week_start(self) -> WeekDay:
        return self._week_start

    @property
    def start_date(self) -> datetime:
        return self._start_date

    @property
    def time_zone(self) -> Optional[tzinfo]:
        return self._time_zone

    @property
    def is_bounded(self) -> bool:
        """Whether COUNT or UNTIL limits the number of occurrences."""
        return self._count is not None or self._until is not None

    def _fields(self) -> dict:
        return {
            "interval": self._interval,
            "until": self._until,
            "count": self._count,
            "by_second": self._by_second,
            "by_minute": self._by_minute,
            "by_hour": self._by_hour,
            "by_day": self._by_day,
            "by_month_day": self._by_month_day,
            "by_year_day": self._by_year_day,
            "by_week_no": self._by_week_no,
            "by_month": self._by_month,
            "by_set_pos": self._by_set_pos,
            "week_start": self._week_start,
            "start_date": self._start_date,
            "time_zone": self._time_zone,
        }

    def replace(self, **changes) -> "RecurrenceRule":
        """Return a new rule with some rule parts changed.

        Setting ``until`` clears ``count`` and vice versa, unless both are
        given explicitly. Raises InvalidRuleError if the resulting
        combination is illegal; this rule is never modified.
        """
        fields = self._fields()
        if changes.get("until") is not None and "count" not in changes:
            fields["count"] = None
        if changes.get("count") is not None and "until" not in changes:
            fields["until"] = None
        frequency = changes.pop("frequency", self._frequency)
        fields.update(changes)
        return type(self)(frequency, **fields)

    def with_frequency(self, frequency: Frequency) -> "RecurrenceRule":
        if frequency is None:
            raise TypeError("frequency can not be None")
        return self.replace(frequency=frequency)

    def with_interval(self, interval: int) -> "RecurrenceRule":
        return self.replace(interval=interval)

    def with_until(self, until: datetime) -> "RecurrenceRule":
        if until is None:
            raise TypeError("until can not be None")
        return self.replace(until=until)

    def with_count(self, count: int) -> "RecurrenceRule":
        if count is None:
            raise TypeError("count can not be None")
        return self.replace(count=count)

    def with_week_start(self, week_start: WeekDay) -> "RecurrenceRule":
        return self.replace(week_start=week_start)

    def with_start_date(self, start_date: datetime) -> "RecurrenceRule":
        if start_date is None:
            raise TypeError("start_date can not be None")
        return self.replace(start_date=start_date)

    def with_time_zone(self, time_zone: TimeZoneLike,
                       update_until: bool = False) -> "RecurrenceRule":
        """Move the rule to another zone.

        The start date keeps denoting the same instant. With update_until,
        UNTIL keeps its wall-clock value in the new zone instead.
        """
        zone = resolve_time_zone(time_zone)
        if zone is None:
            raise TypeError("time_zone can not be None")
        if self._time_zone is None:
            start_date = self._start_date.replace(tzinfo=zone)
        else:
            start_date = self._start_date.astimezone(zone)
        until = self._until
        if until is not None and update_until:
            if self._time_zone is not None:
                until = until.astimezone(self._time_zone)
            until = until.replace(tzinfo=zone)
        return self.replace(start_date=start_date, time_zone=zone, until=until)

    def search(self, max_failed_attempts: Optional[int] = None):
        """Start a new occurrence search over this rule."""
        from .search import DEFAULT_MAX_FAILED_ATTEMPTS, OccurrenceSearch

        if max_failed_attempts is None:
            max_failed_attempts = DEFAULT_MAX_FAILED_ATTEMPTS
        return OccurrenceSearch(self, max_failed_attempts=max_failed_attempts)

    def normalize(self, instant: datetime) -> datetime:
        return normalize_instant(instant, self._time_zone)

    def wall_clock(self, instant: datetime) -> datetime:
        """Naive wall-clock time of instant in this rule's zone."""
        return self.normalize(instant).replace(tzinfo=None)

    def localize(self, wall_clock: datetime) -> datetime:
        """Attach this rule's zone to a naive wall-clock time."""
        if self._time_zone is None:
            return wall_clock
        return wall_clock.replace(tzinfo=self._time_zone)

    def instant_key(self, instant: datetime) -> datetime:
        """Sort key for instants of this rule.

        Aware datetimes sharing a zone compare by wall-clock time, which
        confuses the two passes through a repeated hour; zoned rules
        therefore compare in UTC.
        """
        instant = self.normalize(instant)
        if self._time_zone is None:
            return instant
        return instant.astimezone(timezone.utc)

    def has_byxxx(self) -> bool:
        return bool(
            self._by_second or self._by_minute or self._by_hour or self._by_day
            or self._by_month_day or self._by_year_day or self._by_week_no
            or self._by_month
        )

    def to_ical(self) -> str:
        """Serialize the rule parts in their canonical order."""
        parts = [(FREQ, str(self._frequency))]
        if self._until is not None:
            if self._until.tzinfo is None:
                parts.append((UNTIL, self._until.strftime(LOCAL_FORMAT)))
            else:
                parts.append(
                    (UNTIL, self._until.astimezone(timezone.utc).strftime(UTC_FORMAT))
                )
        if self._count is not None:
            parts.append((COUNT, str(self._count)))
        if self._interval > 1:
            parts.append((INTERVAL, str(self._interval)))
        for key, values in [
            (BYSECOND, self._by_second),
            (BYMINUTE, self._by_minute),
            (BYHOUR, self._by_hour),
            (BYDAY, self._by_day),
            (BYMONTHDAY, self._by_month_day),
            (BYYEARDAY, self._by_year_day),
            (BYWEEKNO, self._by_week_no),
            (BYMONTH, self._by_month),
            (BYSETPOS, self._by_set_pos),
        ]:
            if values:
                parts.append((key, ",".join(map(str, values))))
        if self._week_start != WeekDay.MONDAY:
            parts.append((WKST, str(self._week_start)))
        return ";".join(f"{key}={value}" for (key, value) in parts)

    __str__ = to_ical

    def __repr__(self) -> str:
        return "{}({!r}, start_date={!r})".format(
            type(self).__name__, self.to_ical(), self._start_date
        )

    def __eq__(self, other):
        if not isinstance(other, RecurrenceRule):
            return NotImplemented
        return (self._frequency, self._fields()) == (other._frequency, other._fields())

    def __hash__(self):
        return hash((self.to_ical(), self._start_date))


def _is_numeric_byday(rule: RecurrenceRule) -> bool:
    return any(byday.ordinal != 0 for byday in rule.by_day)


def validate_rule(rule: RecurrenceRule) -> None:
    """Check the rule part combinations RFC 5545 forbids.

    Raises:
      InvalidRuleError: naming the violated constraint
    """
    freq = rule.frequency
    if freq is None:
        raise InvalidRuleError(
            "A recurrence rule MUST contain a FREQ rule part.", "FREQ"
        )
    if rule.until is not None and rule.count is not None:
        raise InvalidRuleError(
            "The UNTIL and COUNT rule parts MUST NOT occur in the same "
            "recurrence rule.",
            "UNTIL-COUNT",
        )
    if _is_numeric_byday(rule) and freq not in (Frequency.MONTHLY, Frequency.YEARLY):
        raise InvalidRuleError(
            "The BYDAY rule part MUST NOT be specified with a numeric value "
            "when the FREQ rule part is not set to MONTHLY or YEARLY.",
            "BYDAY-ORDINAL",
        )
    if _is_numeric_byday(rule) and freq == Frequency.YEARLY and rule.by_week_no:
        raise InvalidRuleError(
            "The BYDAY rule part MUST NOT be specified with a numeric value "
            "with the FREQ rule part set to YEARLY when the BYWEEKNO rule "
            "part is specified.",
            "BYDAY-ORDINAL-BYWEEKNO",
        )
    if rule.by_month_day and freq == Frequency.WEEKLY:
        raise InvalidRuleError(
            "The BYMONTHDAY rule part MUST NOT be specified when the FREQ "
            "rule part is set to WEEKLY.",
            "BYMONTHDAY-WEEKLY",
        )
    if rule.by_year_day and freq in (
        Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY
    ):
        raise InvalidRuleError(
            "The BYYEARDAY rule part MUST NOT be specified when the FREQ "
            "rule part is set to DAILY, WEEKLY, or MONTHLY.",
            "BYYEARDAY-FREQ",
        )
    if rule.by_week_no and freq != Frequency.YEARLY:
        raise InvalidRuleError(
            "The BYWEEKNO rule part MUST NOT be used when the FREQ rule part "
            "is set to anything other than YEARLY.",
            "BYWEEKNO-FREQ",
        )
    if rule.by_set_pos and not rule.has_byxxx():
        raise InvalidRuleError(
            "The BYSETPOS rule part MUST only be used in conjunction with "
            "another BYxxx rule part.",
            "BYSETPOS-ALONE",
        )


def _parse_integer(key: str, value: str, signed: bool = True) -> int:
    value = value.strip()
    digits = value[1:] if signed and value[:1] in ("+", "-") else value
    # str.isdigit also accepts non-ASCII digits that int() rejects.
    if not (digits.isascii() and digits.isdigit()):
        raise ParseError(f"Invalid integer value for {key} : {value}")
    return int(value)


def _parse_number_list(key: str, value: str) -> BoundedIntegerList:
    try:
        return bounded_list(key, [_parse_integer(key, v) for v in value.split(",")])
    except ValueError as e:
        if isinstance(e, ParseError):
            raise
        raise ParseError(f"Invalid value for {key} : {value} ({e})")


def _parse_byday_list(key: str, value: str) -> list[ByDay]:
    ret = []
    for token in value.split(","):
        try:
            ret.append(ByDay.parse(token))
        except (KeyError, ValueError):
            raise ParseError(f"Invalid value for {key} : {token}")
    return ret


def _parse_weekday(key: str, value: str) -> WeekDay:
    try:
        return WeekDay.from_code(value)
    except KeyError:
        raise ParseError(f"Invalid week day for {key} : {value}")


def _parse_until(key: str, value: str, zone: Optional[tzinfo]) -> datetime:
    if "T" in value:
        if value.endswith("Z"):
            try:
                ret = datetime.strptime(value, UTC_FORMAT).replace(tzinfo=timezone.utc)
            except ValueError:
                logging.debug("%s value %r does not match UTC time pattern", key, value)
            else:
                return ret
        else:
            try:
                ret = datetime.strptime(value, LOCAL_FORMAT)
            except ValueError:
                logging.debug(
                    "%s value %r does not match local time pattern", key, value
                )
            else:
                return ret if zone is None else ret.replace(tzinfo=zone)
        # Local time with a timezone reference is not allowed for UNTIL.
        raise ParseError(f"Invalid date format for {key} : {value}")
    try:
        ret = datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        raise ParseError(f"Invalid date format for {key} : {value}")
    return ret if zone is None else ret.replace(tzinfo=zone)


def parse_rrule(
    text: str,
    start_date: Optional[datetime] = None,
    time_zone: TimeZoneLike = None,
) -> RecurrenceRule:
    """Parse an RFC 5545 RRULE value.

    Args:
      text: Rule text, e.g. "FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=10"
      start_date: Anchor instant; defaults to now
      time_zone: Zone (name or tzinfo) for calendar arithmetic
    Returns: a validated RecurrenceRule
    Raises:
      ParseError: on malformed syntax
      InvalidRuleError: on an illegal rule part combination
    """
    if text is None:
        raise TypeError("recurrence rule can not be None")
    start_date, zone = resolve_anchor(start_date, time_zone)
    body = text.strip()
    if body.upper().startswith("RRULE:"):
        body = body[len("RRULE:"):]
    kwargs: dict = {}
    frequency = None
    try:
        for part in body.split(";"):
            part = "".join(part.split())
            if "=" not in part:
                continue
            key, value = part.split("=", 1)
            if key == FREQ:
                try:
                    frequency = Frequency.from_token(value)
                except KeyError:
                    raise ParseError(f"Invalid value for {key} : {value}")
            elif key == UNTIL:
                kwargs["until"] = _parse_until(key, value, zone)
            elif key == COUNT:
                kwargs["count"] = _parse_integer(key, value, signed=False)
                if kwargs["count"] <= 0:
                    raise ParseError("The COUNT rule part MUST contain a positive integer")
            elif key == INTERVAL:
                kwargs["interval"] = _parse_integer(key, value, signed=False)
                if kwargs["interval"] <= 0:
                    raise ParseError(
                        "The INTERVAL rule part MUST contain a positive integer"
                    )
            elif key == BYSECOND:
                kwargs["by_second"] = _parse_number_list(key, value)
            elif key == BYMINUTE:
                kwargs["by_minute"] = _parse_number_list(key, value)
            elif key == BYHOUR:
                kwargs["by_hour"] = _parse_number_list(key, value)
            elif key == BYDAY:
                kwargs["by_day"] = _parse_byday_list(key, value)
            elif key == BYMONTHDAY:
                kwargs["by_month_day"] = _parse_number_list(key, value)
            elif key == BYYEARDAY:
                kwargs["by_year_day"] = _parse_number_list(key, value)
            elif key == BYWEEKNO:
                kwargs["by_week_no"] = _parse_number_list(key, value)
            elif key == BYMONTH:
                kwargs["by_month"] = _parse_number_list(key, value)
            elif key == BYSETPOS:
                kwargs["by_set_pos"] = _parse_number_list(key, value)
            elif key == WKST:
                kwargs["week_start"] = _parse_weekday(key, value)
            else:
                logging.debug("ignoring unknown recurrence rule part %s", key)
        if frequency is None:
            raise InvalidRuleError(
                "A recurrence rule MUST contain a FREQ rule part.", "FREQ"
            )
        return RecurrenceRule(
            frequency, start_date=start_date, time_zone=zone, **kwargs
        )
    except ParseError as e:
        e.rule_text = text
        raise
