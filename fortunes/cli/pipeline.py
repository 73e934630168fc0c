"""
Pipeline Orchestrator for the fortune command.

Ties the modules together into a single execution flow:
    1. Build the Cabinet from weighted location tokens
    2. Load every shelf (normal and/or offensive sources)
    3. Filter with the Sieve built from the selection options
    4. Normalize probabilities
    5. Sample one cookie, list every match, or report probabilities

Every failure surfaces as a FortuneError; nothing is retried.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from ..domain import Cookie, Jar, NoMatchError, RandomSource
from ..hierarchy.cabinet import Cabinet
from ..loading.loader import Loader
from ..sieve import DEFAULT_SHORT_LENGTH, Sieve, build_sieve


logger = logging.getLogger(__name__)


# =============================================================================
# OPTIONS
# =============================================================================

@dataclass
class FortuneOptions:
    """Everything the fortune command lets a user choose."""
    locations: list[str] = field(default_factory=list)
    all_sources: bool = False
    offensive: bool = False
    equal_size: bool = False
    short_only: bool = False
    long_only: bool = False
    length: int = DEFAULT_SHORT_LENGTH
    pattern: Optional[str] = None
    ignore_case: bool = False
    with_index: bool = True

    @property
    def include_normal(self) -> bool:
        return self.all_sources or not self.offensive

    @property
    def include_offensive(self) -> bool:
        return self.all_sources or self.offensive

    def sieve(self) -> Sieve:
        return build_sieve(
            short_only=self.short_only,
            long_only=self.long_only,
            length=self.length,
            pattern=self.pattern,
            ignore_case=self.ignore_case,
        )


# =============================================================================
# PIPELINE EXECUTION
# =============================================================================

def build_cabinet(options: FortuneOptions, loader: Optional[Loader] = None) -> Cabinet:
    """
    Construct, load and filter the Cabinet (not yet normalized).

    Raises:
        ConfigError: If the location tokens are malformed
        NotFoundError: If a location does not exist
        NoMatchError: If no cookie survives loading and filtering
    """
    loader = loader or Loader()
    cabinet = Cabinet.from_weighted_locations(
        options.locations, default_location=None if options.locations else loader.default_location()
    )
    cabinet.load(options.include_normal, options.include_offensive, loader, options.with_index)

    sieve = options.sieve()
    if len(sieve):
        cabinet.filter(sieve)

    if cabinet.num_of_cookies() == 0:
        if options.pattern is not None:
            raise NoMatchError(f"No matching fortune cookies for pattern: {options.pattern}")
        raise NoMatchError("Not found any fortune cookies")
    return cabinet


def run_fortune(
    options: FortuneOptions,
    rng: Optional[RandomSource] = None,
    loader: Optional[Loader] = None,
) -> Cookie:
    """Pick one fortune according to the options."""
    cabinet = build_cabinet(options, loader)
    cabinet.calculate_prob(options.equal_size)

    cookie = cabinet.sample(rng or random.Random())
    if cookie is None:
        raise NoMatchError("Not found any fortune cookies")
    logger.debug("run_fortune(): picked from %s", cookie.location)
    return cookie


def find_matches(options: FortuneOptions, loader: Optional[Loader] = None) -> list[Jar]:
    """
    Every jar that still holds cookies after filtering, in load order.

    Used by ``fortune -m``; the pattern is part of the options' Sieve.
    """
    cabinet = build_cabinet(options, loader)
    return [jar for shelf in cabinet for jar in shelf if jar.cookies]


def list_probabilities(
    options: FortuneOptions,
    loader: Optional[Loader] = None,
) -> list[tuple[int, float, str]]:
    """
    (depth, probability, location) rows for ``fortune -f``.

    Depth 0 rows are shelves, depth 1 rows are their jars.
    """
    cabinet = build_cabinet(options, loader)
    cabinet.calculate_prob(options.equal_size)

    rows = []
    for shelf in cabinet:
        rows.append((0, shelf.probability, shelf.location))
        for jar in shelf:
            rows.append((1, jar.probability, jar.location))
    return rows
