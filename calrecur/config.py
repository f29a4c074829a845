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

"""Evaluator configuration file.

Example::

    [recurrence]
    max-failed-attempts = 500
    timezone = Europe/Amsterdam
"""

import configparser

from .search import DEFAULT_MAX_FAILED_ATTEMPTS

SECTION = "recurrence"
DEFAULT_TIMEZONE = "UTC"


class EvaluatorConfig(object):
    """Settings for evaluating recurrence rules."""

    def __init__(self, cp=None):
        if cp is None:
            cp = configparser.ConfigParser()
        self._configparser = cp

    @classmethod
    def from_file(cls, f):
        cp = configparser.ConfigParser()
        cp.read_file(f)
        return cls(cp)

    @classmethod
    def from_path(cls, path):
        with open(path, encoding="utf-8") as f:
            return cls.from_file(f)

    def write(self, f):
        self._configparser.write(f)

    def _section(self):
        try:
            self._configparser.add_section(SECTION)
        except configparser.DuplicateSectionError:
            pass
        return self._configparser[SECTION]

    def get_max_failed_attempts(self) -> int:
        """Number of periods without occurrences before a search gives up."""
        try:
            value = self._configparser.getint(SECTION, "max-failed-attempts")
        except (configparser.NoSectionError, configparser.NoOptionError):
            return DEFAULT_MAX_FAILED_ATTEMPTS
        if value < 1:
            raise ValueError(f"max-failed-attempts must be positive, got {value}")
        return value

    def set_max_failed_attempts(self, value):
        if value is None:
            if self._configparser.has_section(SECTION):
                self._configparser.remove_option(SECTION, "max-failed-attempts")
        else:
            if value < 1:
                raise ValueError(f"max-failed-attempts must be positive, got {value}")
            self._section()["max-failed-attempts"] = str(value)

    def get_timezone(self) -> str:
        """IANA name of the zone used for floating instants."""
        try:
            return self._configparser.get(SECTION, "timezone")
        except (configparser.NoSectionError, configparser.NoOptionError):
            return DEFAULT_TIMEZONE

    def set_timezone(self, timezone):
        if timezone is None:
            if self._configparser.has_section(SECTION):
                self._configparser.remove_option(SECTION, "timezone")
        else:
            self._section()["timezone"] = timezone
