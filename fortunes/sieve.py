"""
Sieve: conjunctive text predicates for cookies.

A Sieve admits a quote only if every predicate it holds returns True.
An empty Sieve admits everything. Predicates are plain callables
``(text) -> bool`` and order never changes the result.

Factories cover the fortune(6) selection flags:
    -s  short quotes only     shorter_than(n)
    -l  long quotes only      longer_than(n)
    -m  pattern match         matching(pattern, ignore_case)
"""

from __future__ import annotations

import re
from typing import Callable, Iterator, Optional

from .domain import ConfigError, byte_length


Predicate = Callable[[str], bool]


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Longest quote (including its trailing newline) still considered "short"
DEFAULT_SHORT_LENGTH = 160


# =============================================================================
# SIEVE
# =============================================================================

class Sieve:
    """An ordered collection of predicates joined by AND."""

    def __init__(self, predicates: Optional[list[Predicate]] = None):
        self._predicates: list[Predicate] = list(predicates or [])

    def add(self, predicate: Predicate) -> Sieve:
        self._predicates.append(predicate)
        return self

    def admits(self, text: str) -> bool:
        return all(predicate(text) for predicate in self._predicates)

    def __len__(self) -> int:
        return len(self._predicates)

    def __iter__(self) -> Iterator[Predicate]:
        return iter(self._predicates)


# =============================================================================
# PREDICATE FACTORIES
# =============================================================================

def shorter_than(length: int) -> Predicate:
    """Admit quotes whose stored length (text + newline) is at most ``length``."""
    return lambda text: byte_length(text) + 1 <= length


def longer_than(length: int) -> Predicate:
    """Admit quotes whose stored length (text + newline) exceeds ``length``."""
    return lambda text: byte_length(text) + 1 > length


def matching(pattern: str, ignore_case: bool = False) -> Predicate:
    """
    Admit quotes containing a match for a regular expression.

    Raises:
        ConfigError: If the pattern does not compile
    """
    flags = re.IGNORECASE if ignore_case else 0
    try:
        compiled = re.compile(pattern, flags)
    except re.error as e:
        raise ConfigError(f"invalid pattern {pattern!r}: {e}")
    return lambda text: compiled.search(text) is not None


def build_sieve(
    short_only: bool = False,
    long_only: bool = False,
    length: int = DEFAULT_SHORT_LENGTH,
    pattern: Optional[str] = None,
    ignore_case: bool = False,
) -> Sieve:
    """
    Assemble the Sieve for a set of fortune selection options.

    ``short_only`` wins over ``long_only`` when both are given.
    """
    sieve = Sieve()
    if short_only:
        sieve.add(shorter_than(length))
    elif long_only:
        sieve.add(longer_than(length))
    if pattern is not None:
        sieve.add(matching(pattern, ignore_case))
    return sieve
