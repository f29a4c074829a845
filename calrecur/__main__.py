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

"""Calrecur command-line handling."""

import argparse
import itertools
import logging
import sys

from dateutil.parser import isoparse

from . import __version__
from .config import EvaluatorConfig
from .rrule import ParseError, parse_rrule


# If no subparser is given, default to 'expand'
def set_default_subparser(self, argv, name):
    subparser_found = False
    for arg in argv:
        if arg in ["-h", "--help", "--version"]:
            break
    else:
        for x in self._subparsers._actions:
            if not isinstance(x, argparse._SubParsersAction):
                continue
            for sp_name in x._name_parser_map.keys():
                if sp_name in argv:
                    subparser_found = True
        if not subparser_found:
            print('No subcommand given, defaulting to "%s"' % name, file=sys.stderr)
            # Keep global options in front of the subcommand.
            index = 0
            while index < len(argv) and argv[index].startswith("--"):
                index += 2 if argv[index] == "--config" else 1
            argv.insert(min(index, len(argv)), name)


def add_rule_arguments(parser, start=True):
    parser.add_argument("rrule", metavar="RRULE", help="Recurrence rule, e.g. FREQ=DAILY;COUNT=5")
    if start:
        parser.add_argument(
            "--start", type=isoparse, default=None,
            help="Start date (ISO 8601). [now]")
    parser.add_argument(
        "--tz", dest="timezone", default=None,
        help="Time zone for instants without an offset. [from config, or UTC]")


def _load_rule(args, config):
    return parse_rrule(
        args.rrule, start_date=getattr(args, "start", None),
        time_zone=args.timezone or config.get_timezone())


def _occurrences(search, after):
    if after is None:
        yield from search
        return
    occurrence = search.next_after(after)
    while occurrence is not None:
        yield occurrence
        occurrence = search.next_after(occurrence)


def expand_main(args, config):
    rule = _load_rule(args, config)
    search = rule.search(config.get_max_failed_attempts())
    after = args.after
    if after is not None:
        after = rule.normalize(after)
    for occurrence in itertools.islice(_occurrences(search, after), args.limit):
        print(occurrence.isoformat())
    return 0


def next_main(args, config):
    rule = _load_rule(args, config)
    search = rule.search(config.get_max_failed_attempts())
    occurrence = search.next_after(args.after)
    if occurrence is None:
        logging.info("No occurrence after %s", args.after)
        return 1
    print(occurrence.isoformat())
    return 0


def final_main(args, config):
    rule = _load_rule(args, config)
    occurrence = rule.search(config.get_max_failed_attempts()).final_occurrence()
    if occurrence is None:
        logging.info("%s has no final occurrence", rule)
        return 1
    print(occurrence.isoformat())
    return 0


def contains_main(args, config):
    rule = _load_rule(args, config)
    search = rule.search(config.get_max_failed_attempts())
    if search.contains(args.at, args.day_only):
        print("yes")
        return 0
    print("no")
    return 1


def normalize_main(args, config):
    print(_load_rule(args, config).to_ical())
    return 0


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    else:
        argv = list(argv)

    parser = argparse.ArgumentParser(prog="calrecur")

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s " + ".".join(map(str, __version__)),
    )
    parser.add_argument(
        "--config", dest="config", default=None,
        help="Path to configuration file.")
    parser.add_argument(
        "--debug", action="store_true",
        help="Print debug messages.")

    subparsers = parser.add_subparsers(help="Subcommands", dest="subcommand")

    expand_parser = subparsers.add_parser(
        "expand", help="List occurrences of a recurrence rule")
    add_rule_arguments(expand_parser)
    expand_parser.add_argument(
        "--limit", type=int, default=10,
        help="Maximum number of occurrences to list. [%(default)s]")
    expand_parser.add_argument(
        "--after", type=isoparse, default=None,
        help="Only list occurrences after this instant.")
    expand_parser.set_defaults(func=expand_main)

    next_parser = subparsers.add_parser(
        "next", help="Print the first occurrence after an instant")
    add_rule_arguments(next_parser)
    next_parser.add_argument("--after", type=isoparse, required=True)
    next_parser.set_defaults(func=next_main)

    final_parser = subparsers.add_parser(
        "final", help="Print the last occurrence of a bounded rule")
    add_rule_arguments(final_parser)
    final_parser.set_defaults(func=final_main)

    contains_parser = subparsers.add_parser(
        "contains", help="Check whether an instant is an occurrence")
    add_rule_arguments(contains_parser)
    contains_parser.add_argument("--at", type=isoparse, required=True)
    contains_parser.add_argument(
        "--day-only", action="store_true",
        help="Match any occurrence on the same day.")
    contains_parser.set_defaults(func=contains_main)

    normalize_parser = subparsers.add_parser(
        "normalize", help="Print a recurrence rule in canonical form")
    add_rule_arguments(normalize_parser, start=False)
    normalize_parser.set_defaults(func=normalize_main)

    set_default_subparser(parser, argv, "expand")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    if args.config:
        config = EvaluatorConfig.from_path(args.config)
    else:
        config = EvaluatorConfig()

    try:
        return args.func(args, config)
    except ParseError as e:
        if e.rule_text is not None:
            print("Invalid recurrence rule %r: %s" % (e.rule_text, e), file=sys.stderr)
        else:
            print("Invalid recurrence rule: %s" % e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
