"""
Weight handling for the Cabinet hierarchy.

Components:
    - Token parsing:  "60% tests/data 40% tests/data2" -> [(loc, weight), ...]
    - Weight checks:  explicit weights must total 100% or be absent
    - Weighted draw:  one index from a weight vector, via an injected RNG

Weights are percentages. A weight of 0 means "not assigned"; it is
resolved when the Cabinet calculates probabilities.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from ..domain import ConfigError, PartialWeightsError, RandomSource


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

TOTAL_WEIGHT = 100.0
WEIGHT_TOLERANCE = 1e-4
WEIGHT_SUFFIX = "%"


# =============================================================================
# TOKEN PARSING
# =============================================================================

def is_weight_token(token: str) -> bool:
    return token.endswith(WEIGHT_SUFFIX)


def parse_weight(token: str) -> float:
    """
    Parse a "N%" token.

    Raises:
        ConfigError: If N is not a number in [0, 100]
    """
    raw = token[: -len(WEIGHT_SUFFIX)]
    try:
        weight = float(raw)
    except ValueError:
        raise ConfigError(f"malformed weight token {token!r}")
    if not math.isfinite(weight) or weight < 0.0 or weight > TOTAL_WEIGHT:
        raise ConfigError(f"weight must be between 0% and 100%, got {token!r}")
    return weight


def parse_weighted_locations(tokens: Sequence[str]) -> list[tuple[str, float]]:
    """
    Pair every location with the weight token preceding it, if any.

    e.g., ["60%", "a", "b"] -> [("a", 60.0), ("b", 0.0)]

    Raises:
        ConfigError: If a token is malformed, or a weight token is not
            followed by a location
    """
    pairs: list[tuple[str, float]] = []
    pending: Optional[float] = None

    for token in tokens:
        if is_weight_token(token):
            if pending is not None:
                raise ConfigError(f"weight {token!r} follows another weight without a location")
            pending = parse_weight(token)
        else:
            pairs.append((token, pending or 0.0))
            pending = None

    if pending is not None:
        raise ConfigError("more weights than locations: last weight has no location")
    return pairs


def check_weights(weights: Sequence[float]) -> None:
    """
    Explicit weights must be absent or total 100%.

    Raises:
        PartialWeightsError: If weights are given but do not total 100%
    """
    total = sum(weights)
    if total > 0.0 and abs(total - TOTAL_WEIGHT) > WEIGHT_TOLERANCE:
        raise PartialWeightsError(
            f"partial probabilities are given, total probability: {total}"
        )


# =============================================================================
# WEIGHTED DRAW
# =============================================================================

def weighted_index(rng: RandomSource, weights: Sequence[float]) -> Optional[int]:
    """
    Draw one index with probability proportional to its weight.

    Returns None when there is nothing with positive weight to draw.
    """
    if not weights or sum(weights) <= 0.0:
        return None
    return rng.choices(range(len(weights)), weights=weights, k=1)[0]


def proportional_shares(total: float, sizes: Sequence[int]) -> list[float]:
    """Split ``total`` in proportion to ``sizes`` (all zero when sizes sum to 0)."""
    grand_total = sum(sizes)
    if grand_total == 0:
        return [0.0 for _ in sizes]
    return [total * size / grand_total for size in sizes]
