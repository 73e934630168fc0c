"""
fortune: print a random, hopefully interesting, adage.

Usage:
    fortune [-acDefilosut] [-m pattern] [-n length] [[N%] file/dir/embed:prefix ...]

Locations may be preceded by a weight "N%". Weights must total 100% when
any are given; unweighted locations share whatever probability is left to
calculate (by quote count, or equally per file with -e).
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from ..domain import Cookie, FortuneError
from ..logging_config import setup_logging
from ..sieve import DEFAULT_SHORT_LENGTH
from .pipeline import FortuneOptions, find_matches, list_probabilities, run_fortune


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_cookie(cookie: Cookie, show_file: bool = False) -> str:
    """A quote as printed, optionally headed by its source."""
    if show_file:
        return f"({cookie.location})\n%\n{cookie.content}"
    return cookie.content


def format_probability_row(depth: int, probability: float, location: str) -> str:
    """One line of ``fortune -f`` output."""
    return f"{'    ' * depth}{probability:5.2f}% {location}"


# =============================================================================
# OPTIONS
# =============================================================================

def options_from_args(args: argparse.Namespace) -> FortuneOptions:
    return FortuneOptions(
        locations=list(args.paths),
        all_sources=args.all,
        offensive=args.offensive,
        equal_size=args.equal_size,
        short_only=args.short_only,
        long_only=args.long_only,
        length=args.length,
        pattern=args.pattern,
        ignore_case=args.ignore_case,
        with_index=not args.text,
    )


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_match(options: FortuneOptions) -> int:
    """Print every matching fortune (stdout) under its file name (stderr)."""
    for jar in find_matches(options):
        print(f"({jar.location})\n%", file=sys.stderr)
        for cookie in jar.cookies:
            print(f"{cookie.content}\n%")
    return 0


def cmd_list(options: FortuneOptions) -> int:
    """Print the files that would be searched, with their probabilities."""
    for depth, probability, location in list_probabilities(options):
        print(format_probability_row(depth, probability, location), file=sys.stderr)
    return 0


def cmd_fortune(options: FortuneOptions, show_file: bool) -> int:
    """Print one fortune."""
    cookie = run_fortune(options)
    print(format_cookie(cookie, show_file))
    return 0


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the fortune argument parser."""
    parser = argparse.ArgumentParser(
        prog="fortune",
        description="Print a random, hopefully interesting, adage",
    )
    parser.add_argument("-a", dest="all", action="store_true",
                        help="choose from all lists of maxims, both offensive and not")
    parser.add_argument("-c", dest="show_file", action="store_true",
                        help="show the cookie file from which the fortune came")
    parser.add_argument("-D", dest="debug", action="store_true",
                        help="enable additional debugging output")
    parser.add_argument("-e", dest="equal_size", action="store_true",
                        help="consider all fortune files to be of equal size")
    parser.add_argument("-f", dest="list_files", action="store_true",
                        help="print out the list of files which would be searched")
    parser.add_argument("-i", dest="ignore_case", action="store_true",
                        help="ignore case for -m patterns")
    parser.add_argument("-l", dest="long_only", action="store_true",
                        help="long dictums only")
    parser.add_argument("-m", dest="pattern", default=None,
                        help="print out all fortunes which match the pattern")
    parser.add_argument("-n", dest="length", type=int, default=DEFAULT_SHORT_LENGTH,
                        help="longest fortune length considered to be short")
    parser.add_argument("-s", dest="short_only", action="store_true",
                        help="short apothegms only")
    parser.add_argument("-o", dest="offensive", action="store_true",
                        help="choose only from potentially offensive aphorisms")
    parser.add_argument("-u", dest="no_translate", action="store_true",
                        help="don't translate UTF-8 fortunes to the locale (accepted, no effect)")
    parser.add_argument("-t", "--text", dest="text", action="store_true",
                        help="only load cookies, ignoring .dat index files")
    parser.add_argument("paths", nargs="*", metavar="LOCATION",
                        help="file, directory or embed:prefix, each optionally preceded by a weight N%%")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the fortune command."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.debug else "WARNING")
    options = options_from_args(args)

    try:
        if options.pattern is not None:
            return cmd_match(options)
        if args.list_files:
            return cmd_list(options)
        return cmd_fortune(options, args.show_file)
    except FortuneError as e:
        print(f"fortune: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
