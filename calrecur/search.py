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

"""Occurrence search over a recurrence rule.

The occurrences found so far are memoized in ascending order; queries
extend the memoized list one period at a time until they can be answered.
"""

import bisect
import logging
from datetime import datetime
from typing import Iterator, Optional

from .generator import advance_and_expand, period_start
from .rrule import RecurrenceRule

logger = logging.getLogger(__name__)

# Number of consecutive periods without occurrences after which a search
# gives up. Rules with very sparse occurrences (February 29th on a Monday)
# may need more.
DEFAULT_MAX_FAILED_ATTEMPTS = 100


class OccurrenceSearchState:
    """Mutable state of an occurrence search."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.memoized_occurrences: list[datetime] = []
        # Rule.instant_key of each memoized occurrence, for bisecting.
        self.memoized_keys: list[datetime] = []
        self.iteration_count = 0
        self.reference_instant: Optional[datetime] = None
        self.search_exhausted = False

    def __repr__(self) -> str:
        return "{}(occurrences={}, iteration_count={}, exhausted={})".format(
            type(self).__name__,
            len(self.memoized_occurrences),
            self.iteration_count,
            self.search_exhausted,
        )


class OccurrenceSearch:
    """Answer occurrence queries for a single recurrence rule.

    A search is not safe for concurrent use; the memoized occurrences are
    extended in place by every query.

    A query that returns None has either run out of occurrences, in which
    case :attr:`search_exhausted` is set, or has given up after
    ``max_failed_attempts`` consecutive periods without any occurrence.
    """

    def __init__(self, rule: RecurrenceRule,
                 max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS) -> None:
        if rule is None:
            raise TypeError("rule can not be None")
        if max_failed_attempts < 1:
            raise ValueError(
                "max_failed_attempts must be positive, got %r" % max_failed_attempts
            )
        self.rule = rule
        self.max_failed_attempts = max_failed_attempts
        self.state = OccurrenceSearchState()

    def __repr__(self) -> str:
        return "{}({!r}, max_failed_attempts={!r})".format(
            type(self).__name__, self.rule, self.max_failed_attempts
        )

    @property
    def search_exhausted(self) -> bool:
        """Whether the rule has no occurrences beyond the memoized ones."""
        return self.state.search_exhausted

    @property
    def occurrences(self) -> tuple[datetime, ...]:
        """The occurrences found so far."""
        return tuple(self.state.memoized_occurrences)

    def reset(self) -> None:
        self.state.reset()

    def _append(self, candidates: list[datetime]) -> bool:
        state = self.state
        memo = state.memoized_occurrences
        keys = state.memoized_keys
        key = self.rule.instant_key
        until = self.rule.until
        if until is not None:
            until = key(until)
        count = self.rule.count
        added = False
        for candidate in candidates:
            candidate_key = key(candidate)
            # Two wall-clock times may name the same instant when the
            # clocks spring forward.
            if keys and candidate_key <= keys[-1]:
                continue
            if until is not None and candidate_key > until:
                state.search_exhausted = True
                break
            memo.append(candidate)
            keys.append(candidate_key)
            added = True
            if count is not None and len(memo) >= count:
                state.search_exhausted = True
                break
        return added

    def _extend(self) -> bool:
        """Evaluate periods until at least one new occurrence is memoized.

        Returns: False when the rule is exhausted or the search gave up
        """
        state = self.state
        key = self.rule.instant_key
        until = self.rule.until
        failures = 0
        while not state.search_exhausted:
            reference, candidates = advance_and_expand(self.rule, state)
            if self._append(candidates):
                return True
            if (
                reference is not None
                and until is not None
                and key(period_start(self.rule, reference)) > key(until)
            ):
                state.search_exhausted = True
                break
            failures += 1
            if failures >= self.max_failed_attempts:
                logger.debug(
                    "Giving up on %s after %d periods without occurrences",
                    self.rule, failures,
                )
                return False
        logger.debug(
            "No further occurrences for %s after %d", self.rule,
            len(state.memoized_occurrences),
        )
        return False

    def next_after(self, instant: datetime) -> Optional[datetime]:
        """Find the first occurrence strictly after instant."""
        instant = self.rule.instant_key(instant)
        memo = self.state.memoized_occurrences
        keys = self.state.memoized_keys
        while not keys or keys[-1] <= instant:
            if not self._extend():
                break
        index = bisect.bisect_right(keys, instant)
        if index < len(memo):
            return memo[index]
        return None

    def previous_before(self, instant: datetime) -> Optional[datetime]:
        """Find the last occurrence strictly before instant.

        Returns None if the search gave up before reaching instant, since a
        later occurrence before instant can then not be ruled out.
        """
        instant = self.rule.instant_key(instant)
        if instant <= self.rule.instant_key(self.rule.start_date):
            return None
        memo = self.state.memoized_occurrences
        keys = self.state.memoized_keys
        while not keys or keys[-1] < instant:
            if not self._extend():
                if not self.state.search_exhausted:
                    return None
                break
        index = bisect.bisect_left(keys, instant)
        if index > 0:
            return memo[index - 1]
        return None

    def final_occurrence(self) -> Optional[datetime]:
        """Return the last occurrence of a rule bounded by COUNT or UNTIL.

        Returns None for unbounded rules, for rules without any occurrence
        and when the search gives up before the end of the rule.
        """
        if not self.rule.is_bounded:
            return None
        while self._extend():
            pass
        memo = self.state.memoized_occurrences
        if not self.state.search_exhausted or not memo:
            return None
        return memo[-1]

    def contains(self, instant: datetime, day_only: bool = False) -> bool:
        """Check whether the rule has an occurrence at instant.

        Args:
          instant: Instant to look for
          day_only: Match any occurrence on the same calendar day
        """
        day = self.rule.normalize(instant).timetuple()[:3]
        instant = self.rule.instant_key(instant)
        memo = self.state.memoized_occurrences
        keys = self.state.memoized_keys
        while not keys or keys[-1] < instant:
            if not self._extend():
                break
        for occurrence, key in zip(reversed(memo), reversed(keys)):
            if day_only:
                if occurrence.timetuple()[:3] == day:
                    return True
            elif key == instant:
                return True
            if key < instant:
                break
        return False

    def __iter__(self) -> Iterator[datetime]:
        index = 0
        while True:
            memo = self.state.memoized_occurrences
            if index >= len(memo) and not self._extend():
                return
            yield memo[index]
            index += 1

    def between(self, start: datetime, end: datetime,
                inc: bool = False) -> list[datetime]:
        """Return the occurrences between start and end.

        Args:
          start: Lower bound
          end: Upper bound
          inc: Whether occurrences equal to a bound are included
        """
        key = self.rule.instant_key
        start = key(start)
        end = key(end)
        ret = []
        for occurrence in self:
            instant = key(occurrence)
            if instant > end or (not inc and instant == end):
                break
            if instant > start or (inc and instant == start):
                ret.append(occurrence)
        return ret
