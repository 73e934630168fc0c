"""
strfile: create a random access index for a fortune file.

Usage:
    strfile [-c C] [-s] [-o] [-i] [-r] [-x] [-l] [--platform P] infile [outfile]

The index is written in the layout of the running host unless
--platform names one of homebrew, linux or freebsd. With -l an existing
index is loaded (layout detected from its bytes) and described instead.
"""

from __future__ import annotations

import argparse
import random
import sys
from typing import Optional

from ..domain import (
    DEFAULT_DELIMITER,
    FLAGS_ORDERED,
    FLAGS_RANDOMIZED,
    FLAGS_ROTATED,
    FortuneError,
    Jar,
    RandomSource,
    parse_text_file,
)
from ..logging_config import setup_logging
from ..strfile.codec import DAT_SUFFIX, describe, platform_from_name, read_index, write_index


# =============================================================================
# INDEX BUILDING
# =============================================================================

def build_index(
    infile: str,
    delim: str = DEFAULT_DELIMITER,
    order: bool = False,
    ignore_case: bool = False,
    randomize: bool = False,
    rotated: bool = False,
    rng: Optional[RandomSource] = None,
) -> Jar:
    """
    Parse a fortune file and apply the requested ordering and flags.

    Offsets are assigned when the index is encoded, in the order the
    cookies hold after sorting or shuffling.
    """
    jar = parse_text_file(infile, delim)

    if order:
        key = (lambda c: c.content.lower()) if ignore_case else (lambda c: c.content)
        jar.cookies.sort(key=key)
        jar.flags |= FLAGS_ORDERED

    if randomize:
        (rng or random.Random()).shuffle(jar.cookies)
        jar.flags |= FLAGS_RANDOMIZED

    if rotated:
        jar.flags |= FLAGS_ROTATED

    return jar


def format_summary(outfile: str, jar: Jar) -> str:
    """The report strfile prints after writing an index."""
    count = len(jar.cookies)
    lines = [f"'{outfile}' created"]
    lines.append("There was 1 string" if count == 1 else f"There were {count} strings")
    lines.append(f"Longest string: {jar.max_length} byte{'' if jar.max_length == 1 else 's'}")
    lines.append(f"Shortest string: {jar.min_length} byte{'' if jar.min_length == 1 else 's'}")
    return "\n".join(lines)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the strfile argument parser."""
    parser = argparse.ArgumentParser(
        prog="strfile",
        description="Create a data file for the fortune program",
    )
    parser.add_argument("infile", help="input file containing strings separated by delimiter")
    parser.add_argument("outfile", nargs="?", default=None,
                        help="output data file (default: infile.dat)")
    parser.add_argument("-c", dest="delimch", default=DEFAULT_DELIMITER,
                        help="change delimiting character from '%%' to the one given")
    parser.add_argument("-s", dest="silent", action="store_true",
                        help="silent mode, do not show a summary of data processed")
    parser.add_argument("-o", dest="order", action="store_true",
                        help="order the strings in alphabetical order")
    parser.add_argument("-i", dest="ignore_case", action="store_true",
                        help="ignore case when ordering strings")
    parser.add_argument("-r", dest="randomize", action="store_true",
                        help="randomize the order of the strings")
    parser.add_argument("-x", dest="rotated", action="store_true",
                        help="set the rotated bit")
    parser.add_argument("-l", dest="load", action="store_true",
                        help="load a data file and display its contents")
    parser.add_argument("--platform", default=None,
                        help="index layout: homebrew, linux or freebsd")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the strfile command."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging("WARNING")

    base = args.infile[: -len(DAT_SUFFIX)] if args.infile.endswith(DAT_SUFFIX) else args.infile
    outfile = args.outfile or f"{base}{DAT_SUFFIX}"

    try:
        if args.load:
            jar = read_index(outfile)
            print(f"File: {outfile}")
            print(describe(jar))
            return 0

        jar = build_index(
            base,
            delim=args.delimch,
            order=args.order,
            ignore_case=args.ignore_case,
            randomize=args.randomize,
            rotated=args.rotated,
        )
        write_index(jar, outfile, platform_from_name(args.platform))
    except (FortuneError, OSError) as e:
        print(f"strfile: {e}", file=sys.stderr)
        return 1

    if not args.silent:
        print(format_summary(outfile, jar))
    return 0


if __name__ == "__main__":
    sys.exit(main())
