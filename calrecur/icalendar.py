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

"""Evaluate the recurrence of iCalendar components."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Union
from zoneinfo import ZoneInfo

from icalendar.cal import Component

from .rrule import RecurrenceRule, parse_rrule
from .trigger import ExclusionHook, RecurrenceTrigger


class MissingProperty(Exception):
    def __init__(self, property_name) -> None:
        super().__init__(f"Property {property_name!r} missing")
        self.property_name = property_name


def as_tz_aware_ts(
    dt: Union[datetime, date], default_timezone: Union[str, timezone]
) -> datetime:
    if not getattr(dt, "time", None):
        _dt = datetime.combine(dt, time())
    else:
        _dt = dt  # type: ignore
    if _dt.tzinfo is None:
        if isinstance(default_timezone, str):
            _dt = _dt.replace(tzinfo=ZoneInfo(default_timezone))
        else:
            _dt = _dt.replace(tzinfo=default_timezone)
    assert _dt.tzinfo
    return _dt


def _rrule_text(comp: Component) -> str:
    rrule = comp["RRULE"]
    if isinstance(rrule, list):
        if len(rrule) > 1:
            logging.warning(
                "Component %s has %d RRULE properties, only using the first",
                comp.get("UID"), len(rrule),
            )
        rrule = rrule[0]
    return rrule.to_ical().decode("utf-8")


def rule_from_component(
    comp: Component, default_timezone: Union[str, timezone] = "UTC"
) -> RecurrenceRule:
    """Build a recurrence rule from a component's DTSTART and RRULE.

    Floating and date-only start dates are interpreted in default_timezone.

    Raises:
      MissingProperty: if DTSTART or RRULE is absent
      ParseError: if the RRULE can not be parsed
    """
    try:
        dtstart = comp["DTSTART"].dt
    except KeyError:
        raise MissingProperty("DTSTART")
    if "RRULE" not in comp:
        raise MissingProperty("RRULE")
    start = as_tz_aware_ts(dtstart, default_timezone)
    return parse_rrule(_rrule_text(comp), start_date=start, time_zone=start.tzinfo)


def exclusion_hook(
    comp: Component, default_timezone: Union[str, timezone] = "UTC"
) -> ExclusionHook:
    """Create a callable reporting whether an instant is in EXDATE."""
    exdates = comp.get("EXDATE", [])
    if not isinstance(exdates, list):
        exdates = [exdates]
    excluded = set()
    for exdate in exdates:
        for value in exdate.dts:
            excluded.add(as_tz_aware_ts(value.dt, default_timezone))

    def is_excluded(instant: datetime) -> bool:
        return as_tz_aware_ts(instant, default_timezone) in excluded

    return is_excluded


def trigger_from_component(
    comp: Component, default_timezone: Union[str, timezone] = "UTC", **kwargs
) -> RecurrenceTrigger:
    """Create a trigger firing at the occurrences of a component."""
    return RecurrenceTrigger(
        rule_from_component(comp, default_timezone),
        excluded=exclusion_hook(comp, default_timezone),
        **kwargs,
    )


def component_recurs_on(
    comp: Component,
    instant: Union[datetime, date],
    day_only: bool = True,
    default_timezone: Union[str, timezone] = "UTC",
) -> bool:
    """Check whether a component has an occurrence at (or on the day of) instant.

    Occurrences listed in EXDATE do not count.
    """
    rule = rule_from_component(comp, default_timezone)
    excluded = exclusion_hook(comp, default_timezone)
    search = rule.search()
    instant = as_tz_aware_ts(instant, default_timezone)
    if not day_only:
        return search.contains(instant) and not excluded(instant)
    day = rule.wall_clock(instant).date()
    start = rule.localize(datetime.combine(day, time()))
    end = rule.localize(datetime.combine(day + timedelta(days=1), time()))
    return any(
        occurrence.date() == day and not excluded(occurrence)
        for occurrence in search.between(start, end, inc=True)
    )
