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

"""Timer triggers driven by recurrence rules.

A scheduler asks the trigger for its first fire time, arms a timer for it
and calls :meth:`RecurrenceTrigger.triggered` whenever the timer fires.
"""

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .generator import check_start_date
from .rrule import RecurrenceRule, TimeZoneLike, parse_rrule
from .search import OccurrenceSearch

ONE_SECOND = timedelta(seconds=1)

ExclusionHook = Callable[[datetime], bool]


class MisfirePolicy(enum.Enum):
    """What to do when a trigger missed its fire time."""

    # Fire as soon as possible, catching up on every missed fire time.
    IGNORE = "ignore"
    # Same as FIRE_ONCE_NOW.
    SMART = "smart"
    FIRE_ONCE_NOW = "fire-once-now"
    # Skip the missed fire times and wait for the next one.
    DO_NOTHING = "do-nothing"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecurrenceTrigger:
    """A trigger firing at the occurrences of a recurrence rule.

    Args:
      rule: Rule to fire on
      misfire_policy: Policy applied by update_after_misfire
      excluded: Optional callable that returns True for instants the
        trigger must not fire at (e.g. EXDATE values)
      clock: Callable returning the current time
      max_failed_attempts: Search budget, see OccurrenceSearch
    """

    def __init__(self, rule: RecurrenceRule,
                 misfire_policy: MisfirePolicy = MisfirePolicy.SMART,
                 excluded: Optional[ExclusionHook] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 max_failed_attempts: Optional[int] = None) -> None:
        if rule is None:
            raise TypeError("rule can not be None")
        self.misfire_policy = MisfirePolicy(misfire_policy)
        self.excluded = excluded
        self._clock = clock or utcnow
        self._max_failed_attempts = max_failed_attempts
        self.next_fire_time: Optional[datetime] = None
        self.previous_fire_time: Optional[datetime] = None
        self.rule = rule

    @classmethod
    def from_expression(cls, expression: str,
                        start_time: Optional[datetime] = None,
                        time_zone: TimeZoneLike = None,
                        **kwargs) -> "RecurrenceTrigger":
        return cls(parse_rrule(expression, start_time, time_zone), **kwargs)

    def __repr__(self) -> str:
        return "{}({!r}, misfire_policy={})".format(
            type(self).__name__, self._rule, self.misfire_policy
        )

    @property
    def rule(self) -> RecurrenceRule:
        return self._rule

    @rule.setter
    def rule(self, rule: RecurrenceRule) -> None:
        if rule is None:
            raise TypeError("rule can not be None")
        self._rule = rule
        self._search = rule.search(self._max_failed_attempts)

    @property
    def search(self) -> OccurrenceSearch:
        return self._search

    @property
    def expression(self) -> str:
        return self._rule.to_ical()

    @property
    def start_time(self) -> datetime:
        return self._rule.start_date

    @start_time.setter
    def start_time(self, start_time: datetime) -> None:
        if start_time is None:
            raise TypeError("start time can not be None")
        end_time = self.end_time
        if end_time is not None and end_time < self._rule.normalize(start_time):
            raise ValueError("End time cannot be before start time")
        self.rule = self._rule.with_start_date(start_time)

    @property
    def end_time(self) -> Optional[datetime]:
        return self._rule.until

    @end_time.setter
    def end_time(self, end_time: Optional[datetime]) -> None:
        if end_time is None:
            self.rule = self._rule.replace(until=None)
            return
        if self._rule.normalize(end_time) < self.start_time:
            raise ValueError("End time cannot be before start time")
        self.rule = self._rule.with_until(end_time)

    @property
    def repeat_count(self) -> Optional[int]:
        """Number of occurrences, or None to repeat indefinitely."""
        return self._rule.count

    @repeat_count.setter
    def repeat_count(self, repeat_count: Optional[int]) -> None:
        if repeat_count is None:
            self.rule = self._rule.replace(count=None)
        else:
            self.rule = self._rule.with_count(repeat_count)

    def validate(self) -> None:
        """Check that the start time is itself an occurrence of the rule.

        Raises:
          InvalidRuleError: if it is not
        """
        check_start_date(self._rule, self.start_time)

    def now(self) -> datetime:
        return self._rule.normalize(self._clock())

    def fire_time_after(self, after: Optional[datetime] = None) -> Optional[datetime]:
        """Return the first occurrence after an instant.

        Args:
          after: Instant to search from; defaults to now
        Returns: an occurrence, or None if the trigger will not fire
          after the given instant
        """
        if after is None:
            after = self.now()
        else:
            after = self._rule.normalize(after)
        key = self._rule.instant_key
        if key(self.start_time) > key(after):
            after = self.start_time - ONE_SECOND
        end_time = self.end_time
        if end_time is not None and key(after) >= key(end_time):
            return None
        ret = self._search.next_after(after)
        if end_time is not None and ret is not None and key(ret) > key(end_time):
            return None
        return ret

    def _skip_excluded(self, fire_time: Optional[datetime]) -> Optional[datetime]:
        if self.excluded is None:
            return fire_time
        skipped = 0
        while fire_time is not None and self.excluded(fire_time):
            skipped += 1
            if skipped >= self._search.max_failed_attempts:
                logging.debug(
                    "Giving up after %d consecutive excluded fire times", skipped
                )
                return None
            logging.debug("Skipping excluded fire time %s", fire_time)
            fire_time = self.fire_time_after(fire_time)
        return fire_time

    def compute_first_fire_time(self) -> Optional[datetime]:
        """Compute the first fire time and make it the next one."""
        self.next_fire_time = self._skip_excluded(
            self.fire_time_after(self.start_time - ONE_SECOND)
        )
        return self.next_fire_time

    def triggered(self) -> None:
        """Record that the trigger fired at its next fire time."""
        self.previous_fire_time = self.next_fire_time
        self.next_fire_time = self._skip_excluded(
            self.fire_time_after(self.next_fire_time)
        )

    def final_fire_time(self) -> Optional[datetime]:
        ret = self._search.final_occurrence()
        key = self._rule.instant_key
        if ret is not None and key(ret) < key(self.start_time):
            return None
        return ret

    def may_fire_again(self) -> bool:
        return self.next_fire_time is not None

    def will_fire_on(self, instant: datetime, day_only: bool = False) -> bool:
        """Check whether the trigger fires at instant, or on its day."""
        return self._search.contains(instant, day_only)

    def update_after_misfire(self) -> None:
        """Update the next fire time after it was missed."""
        policy = self.misfire_policy
        if policy == MisfirePolicy.IGNORE:
            return
        if policy == MisfirePolicy.SMART:
            policy = MisfirePolicy.FIRE_ONCE_NOW
        if policy == MisfirePolicy.DO_NOTHING:
            self.next_fire_time = self._skip_excluded(self.fire_time_after(self.now()))
        elif policy == MisfirePolicy.FIRE_ONCE_NOW:
            self.next_fire_time = self.now()
        logging.debug(
            "Trigger %s misfired; next fire time is %s", self.expression,
            self.next_fire_time,
        )
