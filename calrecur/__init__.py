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

"""RFC 5545 recurrence rule evaluation."""

__version__ = (0, 1, 0)

from .rrule import (  # noqa: E402
    ByDay,
    Frequency,
    InvalidRuleError,
    ParseError,
    RecurrenceError,
    RecurrenceRule,
    WeekDay,
    parse_rrule,
)
from .search import OccurrenceSearch  # noqa: E402

__all__ = [
    "ByDay",
    "Frequency",
    "InvalidRuleError",
    "OccurrenceSearch",
    "ParseError",
    "RecurrenceError",
    "RecurrenceRule",
    "WeekDay",
    "parse_rrule",
]
