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

"""Tests for calrecur.search."""

import itertools
import unittest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from calrecur.rrule import parse_rrule
from calrecur.search import (
    DEFAULT_MAX_FAILED_ATTEMPTS,
    OccurrenceSearch,
    OccurrenceSearchState,
)

AMSTERDAM = ZoneInfo("Europe/Amsterdam")


def search(text, start, time_zone=None, max_failed_attempts=None):
    return parse_rrule(text, start, time_zone).search(max_failed_attempts)


class OccurrenceSearchTests(unittest.TestCase):
    def test_invalid_arguments(self):
        rule = parse_rrule("FREQ=DAILY", datetime(2024, 1, 1))
        self.assertRaises(TypeError, OccurrenceSearch, None)
        self.assertRaises(ValueError, OccurrenceSearch, rule, 0)

    def test_default_budget(self):
        s = search("FREQ=DAILY", datetime(2024, 1, 1))
        self.assertEqual(DEFAULT_MAX_FAILED_ATTEMPTS, s.max_failed_attempts)

    def test_repr(self):
        state = OccurrenceSearchState()
        self.assertEqual(
            "OccurrenceSearchState(occurrences=0, iteration_count=0, exhausted=False)",
            repr(state),
        )


class CountTests(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.search = search("FREQ=DAILY;COUNT=5", datetime(2024, 1, 1))

    def test_iterate(self):
        self.assertEqual(
            [datetime(2024, 1, d) for d in range(1, 6)], list(self.search)
        )
        self.assertTrue(self.search.search_exhausted)

    def test_final_occurrence(self):
        self.assertEqual(datetime(2024, 1, 5), self.search.final_occurrence())

    def test_next_after_last(self):
        self.assertIsNone(self.search.next_after(datetime(2024, 1, 5)))
        self.assertTrue(self.search.search_exhausted)

    def test_count_applies_after_setpos(self):
        s = search(
            "FREQ=MONTHLY;BYDAY=MO,TU,WE,TH,FR;BYSETPOS=-1;COUNT=3",
            datetime(2024, 1, 1),
        )
        self.assertEqual(
            [datetime(2024, 1, 31), datetime(2024, 2, 29), datetime(2024, 3, 29)],
            list(s),
        )

    def test_reset(self):
        list(self.search)
        self.search.reset()
        self.assertEqual((), self.search.occurrences)
        self.assertFalse(self.search.search_exhausted)
        self.assertEqual(5, len(list(self.search)))


class UntilTests(unittest.TestCase):
    def test_inclusive(self):
        s = search("FREQ=DAILY;UNTIL=20240103T000000Z", datetime(2024, 1, 1))
        self.assertEqual(
            [datetime(2024, 1, 1), datetime(2024, 1, 2), datetime(2024, 1, 3)],
            list(s),
        )

    def test_date_until(self):
        s = search("FREQ=DAILY;UNTIL=20240103", datetime(2024, 1, 1, 10, 0))
        self.assertEqual(
            [datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 2, 10, 0)], list(s)
        )
        self.assertEqual(datetime(2024, 1, 2, 10, 0), s.final_occurrence())

    def test_zoned(self):
        s = search(
            "FREQ=DAILY;UNTIL=20240102T080000Z",
            datetime(2024, 1, 1, 9, 0), AMSTERDAM,
        )
        self.assertEqual(
            [datetime(2024, 1, 1, 9, 0, tzinfo=AMSTERDAM),
             datetime(2024, 1, 2, 9, 0, tzinfo=AMSTERDAM)],
            list(s),
        )

    def test_exhausted_without_candidates(self):
        s = search("FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30;UNTIL=20300101",
                   datetime(2024, 1, 1))
        self.assertIsNone(s.next_after(datetime(2024, 1, 1)))
        self.assertTrue(s.search_exhausted)


class NextAfterTests(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.search = search("FREQ=MONTHLY;BYDAY=-1FR", datetime(2024, 1, 1))

    def test_before_start(self):
        self.assertEqual(datetime(2024, 1, 26), self.search.next_after(datetime(2023, 6, 1)))

    def test_strictly_after(self):
        self.assertEqual(datetime(2024, 2, 23), self.search.next_after(datetime(2024, 1, 26)))
        self.assertEqual(datetime(2024, 3, 29), self.search.next_after(datetime(2024, 2, 23)))

    def test_memoized(self):
        self.search.next_after(datetime(2024, 3, 1))
        self.assertEqual(
            (datetime(2024, 1, 26), datetime(2024, 2, 23), datetime(2024, 3, 29)),
            self.search.occurrences,
        )
        self.assertEqual(datetime(2024, 1, 26), self.search.next_after(datetime(2024, 1, 1)))

    def test_leap_day(self):
        s = search("FREQ=MONTHLY;BYMONTHDAY=-1", datetime(2023, 2, 1))
        self.assertEqual(datetime(2023, 2, 28), s.next_after(datetime(2023, 2, 1)))
        self.assertEqual(datetime(2024, 2, 29), s.next_after(datetime(2024, 2, 1)))

    def test_far_ahead(self):
        s = search("FREQ=SECONDLY;BYYEARDAY=364", datetime(2024, 1, 1))
        self.assertEqual(datetime(2024, 12, 29), s.next_after(datetime(2024, 1, 1)))

    def test_ascending(self):
        s = search("FREQ=WEEKLY;BYDAY=MO,WE,FR;BYHOUR=9,17", datetime(2024, 1, 1))
        values = list(itertools.islice(s, 60))
        self.assertEqual(sorted(set(values)), values)

    def test_aware_instant_on_floating_rule(self):
        s = search("FREQ=DAILY", datetime(2024, 1, 1, 9, 0))
        self.assertEqual(
            datetime(2024, 1, 2, 9, 0),
            s.next_after(datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)),
        )


class SparseRuleTests(unittest.TestCase):
    RULE = "FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=29;BYDAY=MO"

    def test_found_within_budget(self):
        s = search(self.RULE, datetime(2017, 1, 1))
        self.assertEqual(datetime(2044, 2, 29), s.next_after(datetime(2017, 1, 1)))

    def test_gives_up(self):
        s = search(self.RULE, datetime(2017, 1, 1), max_failed_attempts=10)
        self.assertIsNone(s.next_after(datetime(2017, 1, 1)))
        self.assertFalse(s.search_exhausted)

    def test_never_matches(self):
        s = search("FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30", datetime(2024, 1, 1))
        self.assertIsNone(s.next_after(datetime(2024, 1, 1)))
        self.assertFalse(s.search_exhausted)
        self.assertIsNone(s.final_occurrence())

    def test_previous_before_gives_up(self):
        s = search(self.RULE, datetime(2017, 1, 1), max_failed_attempts=10)
        self.assertIsNone(s.previous_before(datetime(2100, 1, 1)))
        self.assertFalse(s.search_exhausted)

    def test_end_of_supported_range(self):
        s = search("FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30", datetime(9990, 1, 1))
        self.assertIsNone(s.next_after(datetime(9990, 1, 1)))
        self.assertTrue(s.search_exhausted)


class PreviousBeforeTests(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.search = search("FREQ=MONTHLY;BYDAY=-1FR", datetime(2024, 1, 1))

    def test_previous(self):
        self.assertEqual(datetime(2024, 2, 23), self.search.previous_before(datetime(2024, 3, 1)))

    def test_strictly_before(self):
        self.assertEqual(
            datetime(2024, 1, 26), self.search.previous_before(datetime(2024, 2, 23))
        )

    def test_before_first(self):
        self.assertIsNone(self.search.previous_before(datetime(2024, 1, 26)))
        self.assertIsNone(self.search.previous_before(datetime(2024, 1, 1)))
        self.assertIsNone(self.search.previous_before(datetime(2020, 1, 1)))

    def test_after_last(self):
        s = search("FREQ=DAILY;COUNT=3", datetime(2024, 1, 1))
        self.assertEqual(datetime(2024, 1, 3), s.previous_before(datetime(2030, 1, 1)))


class ContainsTests(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.search = search("FREQ=DAILY;BYHOUR=10", datetime(2024, 1, 1))

    def test_exact(self):
        self.assertTrue(self.search.contains(datetime(2024, 1, 2, 10, 0)))
        self.assertFalse(self.search.contains(datetime(2024, 1, 2, 11, 0)))

    def test_day_only(self):
        self.assertTrue(self.search.contains(datetime(2024, 1, 2, 11, 0), day_only=True))
        self.assertTrue(self.search.contains(datetime(2024, 1, 2), day_only=True))

    def test_before_start(self):
        self.assertFalse(self.search.contains(datetime(2023, 12, 31), day_only=True))

    def test_past_count(self):
        s = search("FREQ=DAILY;COUNT=2", datetime(2024, 1, 1))
        self.assertTrue(s.contains(datetime(2024, 1, 2)))
        self.assertFalse(s.contains(datetime(2024, 1, 3)))


class BetweenTests(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.search = search("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO", datetime(2024, 1, 1))

    def test_exclusive(self):
        self.assertEqual(
            [datetime(2024, 1, 15)],
            self.search.between(datetime(2024, 1, 1), datetime(2024, 1, 29)),
        )

    def test_inclusive(self):
        self.assertEqual(
            [datetime(2024, 1, 1), datetime(2024, 1, 15), datetime(2024, 1, 29)],
            self.search.between(datetime(2024, 1, 1), datetime(2024, 1, 29), inc=True),
        )


class TimeZoneTests(unittest.TestCase):
    def test_daylight_saving(self):
        s = search("FREQ=DAILY", datetime(2024, 3, 30, 9, 0), AMSTERDAM)
        first, second = itertools.islice(s, 2)
        self.assertEqual(datetime(2024, 3, 30, 9, 0, tzinfo=AMSTERDAM), first)
        self.assertEqual(datetime(2024, 3, 31, 9, 0, tzinfo=AMSTERDAM), second)
        self.assertEqual(timedelta(hours=1), first.utcoffset())
        self.assertEqual(timedelta(hours=2), second.utcoffset())

    def test_aware_query(self):
        s = search("FREQ=DAILY", datetime(2024, 3, 30, 9, 0), AMSTERDAM)
        self.assertEqual(
            datetime(2024, 3, 31, 9, 0, tzinfo=AMSTERDAM),
            s.next_after(datetime(2024, 3, 30, 8, 0, tzinfo=timezone.utc)),
        )

    def in_utc(self, occurrences):
        return [o.astimezone(timezone.utc) for o in occurrences]

    def test_hourly_spring_forward(self):
        s = search("FREQ=HOURLY;COUNT=5", datetime(2024, 3, 31, 0, 0), AMSTERDAM)
        occurrences = list(s)
        self.assertEqual(
            [datetime(2024, 3, 30, 23, 0, tzinfo=timezone.utc) + timedelta(hours=i)
             for i in range(5)],
            self.in_utc(occurrences),
        )
        self.assertEqual([0, 1, 3, 4, 5], [o.hour for o in occurrences])

    def test_hourly_fall_back(self):
        s = search("FREQ=HOURLY;COUNT=5", datetime(2024, 10, 27, 0, 0), AMSTERDAM)
        occurrences = list(s)
        self.assertEqual(
            [datetime(2024, 10, 26, 22, 0, tzinfo=timezone.utc) + timedelta(hours=i)
             for i in range(5)],
            self.in_utc(occurrences),
        )
        self.assertEqual([0, 1, 2, 2, 3], [o.hour for o in occurrences])
        self.assertEqual(
            [timedelta(hours=2)] * 3 + [timedelta(hours=1)] * 2,
            [o.utcoffset() for o in occurrences],
        )

    def test_repeated_hour_queries(self):
        s = search("FREQ=HOURLY", datetime(2024, 10, 27, 0, 0), AMSTERDAM)
        first = datetime(2024, 10, 27, 0, 0, tzinfo=timezone.utc)
        second = datetime(2024, 10, 27, 1, 0, tzinfo=timezone.utc)
        self.assertEqual(second, s.next_after(first).astimezone(timezone.utc))
        self.assertEqual(first, s.previous_before(second).astimezone(timezone.utc))
        self.assertTrue(s.contains(second))
        self.assertEqual(
            [first, second],
            self.in_utc(s.between(first, second, inc=True)),
        )

    def test_minutely_across_spring_forward(self):
        s = search(
            "FREQ=MINUTELY;INTERVAL=30;BYHOUR=3", datetime(2024, 3, 30, 3, 0),
            AMSTERDAM,
        )
        self.assertEqual(
            [
                datetime(2024, 3, 30, 3, 0, tzinfo=AMSTERDAM),
                datetime(2024, 3, 30, 3, 30, tzinfo=AMSTERDAM),
                datetime(2024, 3, 31, 3, 0, tzinfo=AMSTERDAM),
                datetime(2024, 3, 31, 3, 30, tzinfo=AMSTERDAM),
            ],
            list(itertools.islice(s, 4)),
        )

    def test_nonexistent_time_counted_once(self):
        s = search(
            "FREQ=DAILY;BYHOUR=2,3;COUNT=4", datetime(2024, 3, 30, 2, 0), AMSTERDAM
        )
        self.assertEqual(
            [
                datetime(2024, 3, 30, 1, 0, tzinfo=timezone.utc),
                datetime(2024, 3, 30, 2, 0, tzinfo=timezone.utc),
                datetime(2024, 3, 31, 1, 0, tzinfo=timezone.utc),
                datetime(2024, 4, 1, 0, 0, tzinfo=timezone.utc),
            ],
            self.in_utc(s),
        )
