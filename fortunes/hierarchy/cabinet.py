"""
Cabinet and Shelf: the weighted sampling hierarchy.

Cabinet -> Shelf -> Jar -> Cookie

Core principle:
    A quote is drawn with two weighted draws (shelf, then jar) and one
    uniform draw (cookie). Never one flat draw over every quote, so the
    mass a user assigns to a shelf holds no matter how many quotes it
    contains.

Two phases:
    raw         — after construction, load, filter or push; weights may
                  be zero or partial
    normalized  — after calculate_prob(); only now may sample() run
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from ..domain import Cookie, Jar, RandomSource, UnnormalizedError
from ..loading.loader import Loader
from ..sieve import Sieve
from .weights import (
    TOTAL_WEIGHT,
    check_weights,
    parse_weighted_locations,
    proportional_shares,
    weighted_index,
)


logger = logging.getLogger(__name__)


# =============================================================================
# SHELF
# =============================================================================

@dataclass
class Shelf:
    """
    One location (file, directory or embedded prefix) and its Jars.

    ``probability`` is the user's weight for this location, or 0 when it
    is left to calculate_prob().
    """
    location: str
    probability: float = 0.0
    jars: list[Jar] = field(default_factory=list)

    def __iter__(self) -> Iterator[Jar]:
        return iter(self.jars)

    def num_of_cookies(self) -> int:
        return sum(len(jar.cookies) for jar in self.jars)

    def num_of_jars(self) -> int:
        return len(self.jars)

    def calculate_prob(self, equal_size: bool) -> None:
        """
        Share this shelf's probability among its Jars.

        equal_size: every jar gets probability / num_jars
        otherwise:  every jar gets probability * its cookies / shelf cookies
        """
        if not self.jars:
            return
        if self.probability == 0.0:
            for jar in self.jars:
                jar.probability = 0.0
            return

        if equal_size:
            share = self.probability / len(self.jars)
            for jar in self.jars:
                jar.probability = share
        else:
            shares = proportional_shares(
                self.probability, [len(jar.cookies) for jar in self.jars]
            )
            for jar, share in zip(self.jars, shares):
                jar.probability = share

    def load(
        self,
        include_normal: bool = True,
        include_offensive: bool = False,
        loader: Optional[Loader] = None,
        with_index: bool = False,
    ) -> None:
        """Replace this shelf's jars with whatever its location resolves to."""
        loader = loader or Loader()
        jars = loader.load_jars(self.location, include_normal, include_offensive, with_index)
        for jar in jars:
            jar.update_location(self.location)
        self.jars = jars

    def filter(self, sieve: Sieve) -> None:
        """Filter every jar, then drop the jars left empty."""
        for jar in self.jars:
            jar.filter(sieve)
        self.jars = [jar for jar in self.jars if jar.cookies]

    def choose(self, rng: RandomSource) -> Optional[Cookie]:
        """Draw a jar by probability, then a cookie from it."""
        weights = [jar.probability if jar.cookies else 0.0 for jar in self.jars]
        index = weighted_index(rng, weights)
        if index is None:
            return None
        return self.jars[index].choose(rng)


# =============================================================================
# CABINET
# =============================================================================

class Cabinet:
    """
    The root collection of Shelves for one program run.

    Built from "N% location" tokens; see from_weighted_locations().
    """

    def __init__(self, shelves: Optional[list[Shelf]] = None):
        self.shelves: list[Shelf] = list(shelves or [])
        self._normalized = False

    @classmethod
    def from_weighted_locations(
        cls,
        tokens: Sequence[str],
        default_location: Optional[str] = None,
    ) -> Cabinet:
        """
        Build a Cabinet from command-line style tokens.

        e.g., ["60%", "tests/data", "40%", "tests/data2"]

        With no tokens at all, the Cabinet holds a single shelf for the
        default (embedded) location, weighted 100%.

        Raises:
            ConfigError: If a weight token is malformed or dangling
            PartialWeightsError: If weights are given but do not total 100%
        """
        if not tokens:
            location = default_location or Loader().default_location()
            return cls([Shelf(location, TOTAL_WEIGHT)])

        pairs = parse_weighted_locations(tokens)
        check_weights([weight for _, weight in pairs])
        return cls([Shelf(location, weight) for location, weight in pairs])

    # -------------------------------------------------------------------------
    # Container protocol
    # -------------------------------------------------------------------------

    def __iter__(self) -> Iterator[Shelf]:
        return iter(self.shelves)

    def __len__(self) -> int:
        return len(self.shelves)

    def push(self, shelf: Shelf) -> None:
        self.shelves.append(shelf)
        self._normalized = False

    def num_of_cookies(self) -> int:
        return sum(shelf.num_of_cookies() for shelf in self.shelves)

    def num_of_jars(self) -> int:
        return sum(shelf.num_of_jars() for shelf in self.shelves)

    @property
    def is_normalized(self) -> bool:
        return self._normalized

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def load(
        self,
        include_normal: bool = True,
        include_offensive: bool = False,
        loader: Optional[Loader] = None,
        with_index: bool = False,
    ) -> None:
        """
        Load every shelf.

        Raises:
            NotFoundError: If a shelf's location does not exist
        """
        loader = loader or Loader()
        for shelf in self.shelves:
            shelf.load(include_normal, include_offensive, loader, with_index)
        self._normalized = False
        logger.debug(
            "Cabinet.load(): %d shelves, %d jars, %d cookies",
            len(self.shelves), self.num_of_jars(), self.num_of_cookies(),
        )

    def filter(self, sieve: Sieve) -> None:
        """
        Filter every shelf, then drop the shelves left without jars.

        When a weighted shelf is dropped, the weights of the remaining
        shelves are scaled back up to 100%.
        """
        for shelf in self.shelves:
            shelf.filter(sieve)
        kept = [shelf for shelf in self.shelves if shelf.jars]

        dropped = sum(shelf.probability for shelf in self.shelves if not shelf.jars)
        remaining = sum(shelf.probability for shelf in kept)
        if dropped > 0.0 and remaining > 0.0:
            logger.debug("Cabinet.filter(): rescaling weights from %s%%", remaining)
            for shelf in kept:
                shelf.probability = shelf.probability * TOTAL_WEIGHT / remaining

        self.shelves = kept
        self._normalized = False

    def calculate_prob(self, equal_size: bool = False) -> None:
        """
        Resolve every shelf and jar probability.

        If no shelf carries a user weight, 100% is shared out: equally
        per jar with ``equal_size``, otherwise in proportion to quote
        counts.

        Raises:
            PartialWeightsError: If shelf weights are given but do not
                total 100%
        """
        weights = [shelf.probability for shelf in self.shelves]
        check_weights(weights)
        total = sum(weights)

        if total == 0.0:
            if equal_size:
                num_jars = self.num_of_jars()
                if num_jars:
                    per_jar = TOTAL_WEIGHT / num_jars
                    for shelf in self.shelves:
                        shelf.probability = per_jar * shelf.num_of_jars()
            else:
                shares = proportional_shares(
                    TOTAL_WEIGHT, [shelf.num_of_cookies() for shelf in self.shelves]
                )
                for shelf, share in zip(self.shelves, shares):
                    shelf.probability = share

        for shelf in self.shelves:
            shelf.calculate_prob(equal_size)
            logger.debug("%6.2f%% %s", shelf.probability, shelf.location)

        self._normalized = True

    def sample(self, rng: RandomSource) -> Optional[Cookie]:
        """
        Draw one cookie: a shelf by weight, a jar by weight, a cookie
        uniformly. Returns None when no non-empty jar can be reached.

        Raises:
            UnnormalizedError: If calculate_prob() has not run since the
                last load, filter or push
        """
        if not self._normalized:
            raise UnnormalizedError("calculate_prob() must run before sampling")

        weights = [
            shelf.probability if shelf.num_of_cookies() else 0.0
            for shelf in self.shelves
        ]
        index = weighted_index(rng, weights)
        if index is None:
            return None
        return self.shelves[index].choose(rng)
