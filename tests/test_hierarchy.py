"""
Tests for the Cabinet -> Shelf -> Jar hierarchy.

These tests verify:
1. Weight tokens are parsed strictly and must total 100% when given
2. Shelves share their probability among jars (equally or by size)
3. The cabinet resolves unassigned weights to 100% and rejects partial ones
4. Sampling refuses to run on stale probabilities
5. Sampling frequencies follow the assigned weights
"""

import random
from collections import Counter

import pytest

from fortunes.domain import (
    ConfigError,
    Cookie,
    Jar,
    PartialWeightsError,
    UnnormalizedError,
)
from fortunes.hierarchy import Cabinet, Shelf
from fortunes.hierarchy.weights import (
    check_weights,
    parse_weight,
    parse_weighted_locations,
    proportional_shares,
    weighted_index,
)
from fortunes.sieve import Sieve


# =============================================================================
# TEST FIXTURES
# =============================================================================

def make_jar(location: str, contents: list[str]) -> Jar:
    jar = Jar(location=location)
    jar.cookies = [Cookie(location=location, content=c) for c in contents]
    jar.recompute_lengths()
    return jar


def make_shelf(location: str, sizes: list[int], probability: float = 0.0) -> Shelf:
    jars = [
        make_jar(f"{location}/jar{i}", [f"{location}-{i}-{n}" for n in range(size)])
        for i, size in enumerate(sizes)
    ]
    return Shelf(location, probability, jars)


def total_probability(cabinet: Cabinet) -> float:
    return sum(shelf.probability for shelf in cabinet)


# =============================================================================
# WEIGHT TOKENS
# =============================================================================

class TestWeightTokens:
    """Parsing "N% location" sequences."""

    def test_pairs_weights_with_locations(self):
        pairs = parse_weighted_locations(["60%", "a", "b", "40%", "c"])

        assert pairs == [("a", 60.0), ("b", 0.0), ("c", 40.0)]

    def test_fractional_weight(self):
        assert parse_weight("12.5%") == 12.5

    @pytest.mark.parametrize("token", ["abc%", "%", "-5%", "120%", "nan%", "inf%"])
    def test_malformed_weight(self, token):
        with pytest.raises(ConfigError):
            parse_weight(token)

    def test_dangling_weight(self):
        with pytest.raises(ConfigError, match="more weights than locations"):
            parse_weighted_locations(["a", "60%"])

    def test_consecutive_weights(self):
        with pytest.raises(ConfigError):
            parse_weighted_locations(["60%", "40%", "a"])

    def test_check_weights(self):
        check_weights([0.0, 0.0])
        check_weights([60.0, 40.0])
        check_weights([33.33333, 33.33333, 33.33334])

        with pytest.raises(PartialWeightsError, match="partial probabilities"):
            check_weights([15.0, 85.0, 10.0])

    def test_proportional_shares(self):
        assert proportional_shares(100.0, [2, 3, 0]) == [40.0, 60.0, 0.0]
        assert proportional_shares(100.0, [0, 0]) == [0.0, 0.0]

    def test_weighted_index_nothing_to_draw(self):
        rng = random.Random(1)

        assert weighted_index(rng, []) is None
        assert weighted_index(rng, [0.0, 0.0]) is None

    def test_weighted_index_skips_zero(self):
        rng = random.Random(1)

        assert {weighted_index(rng, [0.0, 1.0, 0.0]) for _ in range(50)} == {1}


# =============================================================================
# SHELF
# =============================================================================

class TestShelf:
    """Sharing a shelf's probability among its jars."""

    @pytest.mark.parametrize(
        "probability, equal_size, expected",
        [
            (100.0, True, [100 / 3, 100 / 3, 100 / 3]),
            (100.0, False, [40.0, 60.0, 0.0]),
            (50.0, True, [50 / 3, 50 / 3, 50 / 3]),
            (50.0, False, [20.0, 30.0, 0.0]),
            (0.0, True, [0.0, 0.0, 0.0]),
        ],
    )
    def test_calculate_prob(self, probability, equal_size, expected):
        shelf = make_shelf("s", [2, 3, 0], probability)

        shelf.calculate_prob(equal_size)

        assert [jar.probability for jar in shelf] == pytest.approx(expected)

    def test_calculate_prob_without_jars(self):
        shelf = Shelf("s", 100.0)

        shelf.calculate_prob(False)

        assert shelf.num_of_jars() == 0

    def test_filter_prunes_empty_jars(self):
        shelf = make_shelf("s", [2, 3])
        shelf.jars[0].cookies[0] = Cookie("s/jar0", "keep me")

        shelf.filter(Sieve([lambda q: q == "keep me"]))

        assert shelf.num_of_jars() == 1
        assert shelf.num_of_cookies() == 1

    def test_choose_never_picks_empty_jar(self):
        shelf = make_shelf("s", [0, 1], 100.0)
        shelf.jars[0].probability = 50.0
        shelf.jars[1].probability = 50.0
        rng = random.Random(3)

        assert {shelf.choose(rng).content for _ in range(50)} == {"s-1-0"}


# =============================================================================
# CABINET CONSTRUCTION
# =============================================================================

class TestCabinetConstruction:
    """Building a cabinet from tokens."""

    def test_no_tokens_uses_default_location(self):
        cabinet = Cabinet.from_weighted_locations([], default_location="embed:en")

        assert len(cabinet) == 1
        assert cabinet.shelves[0].location == "embed:en"
        assert cabinet.shelves[0].probability == 100.0

    def test_weighted_tokens(self):
        cabinet = Cabinet.from_weighted_locations(["60%", "a", "40%", "b"])

        assert [(s.location, s.probability) for s in cabinet] == [("a", 60.0), ("b", 40.0)]

    def test_partial_weights_rejected(self):
        with pytest.raises(PartialWeightsError):
            Cabinet.from_weighted_locations(["15%", "a", "85%", "b", "10%", "c"])

    def test_weights_short_of_total_rejected(self):
        with pytest.raises(PartialWeightsError):
            Cabinet.from_weighted_locations(["50%", "a", "b"])

    def test_push_marks_unnormalized(self):
        cabinet = Cabinet([make_shelf("a", [1])])
        cabinet.calculate_prob()
        assert cabinet.is_normalized

        cabinet.push(make_shelf("b", [1]))

        assert not cabinet.is_normalized


# =============================================================================
# CABINET NORMALIZATION
# =============================================================================

class TestCabinetNormalization:
    """Resolving every probability in the hierarchy."""

    def test_unweighted_by_cookie_count(self):
        cabinet = Cabinet([make_shelf("a", [2, 3]), make_shelf("b", [5])])

        cabinet.calculate_prob()

        assert [s.probability for s in cabinet] == pytest.approx([50.0, 50.0])
        assert [j.probability for j in cabinet.shelves[0]] == pytest.approx([20.0, 30.0])
        assert [j.probability for j in cabinet.shelves[1]] == pytest.approx([50.0])

    def test_unweighted_equal_size(self):
        cabinet = Cabinet([make_shelf("a", [2, 30]), make_shelf("b", [5])])

        cabinet.calculate_prob(equal_size=True)

        assert [s.probability for s in cabinet] == pytest.approx([200 / 3, 100 / 3])
        jar_probabilities = [j.probability for s in cabinet for j in s]
        assert jar_probabilities == pytest.approx([100 / 3] * 3)

    def test_weighted_shelves_keep_their_weight(self):
        cabinet = Cabinet([make_shelf("a", [1, 1], 90.0), make_shelf("b", [8], 10.0)])

        cabinet.calculate_prob()

        assert [s.probability for s in cabinet] == pytest.approx([90.0, 10.0])
        assert [j.probability for j in cabinet.shelves[0]] == pytest.approx([45.0, 45.0])

    def test_pruned_weight_is_rescaled(self):
        cabinet = Cabinet([make_shelf("a", [2], 60.0), make_shelf("b", [1], 40.0)])
        cabinet.shelves[1].jars[0].cookies[0] = Cookie("b/jar0", "drop me")

        cabinet.filter(Sieve([lambda q: q != "drop me"]))

        assert len(cabinet) == 1
        assert total_probability(cabinet) == pytest.approx(100.0)

        cabinet.calculate_prob()

        assert [j.probability for j in cabinet.shelves[0]] == pytest.approx([100.0])

    def test_partial_weights_rejected_at_normalization(self):
        cabinet = Cabinet([
            make_shelf("a", [1], 15.0),
            make_shelf("b", [1], 85.0),
            make_shelf("c", [1], 10.0),
        ])

        with pytest.raises(PartialWeightsError):
            cabinet.calculate_prob()

        assert not cabinet.is_normalized

    def test_unweighted_prune_keeps_shares_unassigned(self):
        cabinet = Cabinet([make_shelf("a", [2]), make_shelf("b", [1])])
        cabinet.shelves[1].jars[0].cookies[0] = Cookie("b/jar0", "drop me")

        cabinet.filter(Sieve([lambda q: q != "drop me"]))

        assert total_probability(cabinet) == 0.0

    def test_children_sum_to_parent(self):
        cabinet = Cabinet([make_shelf("a", [1, 4, 2]), make_shelf("b", [3, 3])])

        cabinet.calculate_prob()

        assert total_probability(cabinet) == pytest.approx(100.0)
        for shelf in cabinet:
            assert sum(j.probability for j in shelf) == pytest.approx(shelf.probability)


# =============================================================================
# SAMPLING
# =============================================================================

class TestSampling:
    """Drawing one cookie from the cabinet."""

    def test_sampling_requires_normalization(self):
        cabinet = Cabinet([make_shelf("a", [1])])

        with pytest.raises(UnnormalizedError):
            cabinet.sample(random.Random(1))

    def test_filter_invalidates_normalization(self):
        cabinet = Cabinet([make_shelf("a", [2])])
        cabinet.calculate_prob()

        cabinet.filter(Sieve())

        with pytest.raises(UnnormalizedError):
            cabinet.sample(random.Random(1))

    def test_nothing_to_draw(self):
        cabinet = Cabinet([Shelf("a", 100.0, [Jar(location="a/empty")])])
        cabinet.calculate_prob()

        assert cabinet.sample(random.Random(1)) is None

    def test_every_cookie_reachable(self):
        cabinet = Cabinet([make_shelf("a", [2, 1]), make_shelf("b", [2])])
        cabinet.calculate_prob()
        rng = random.Random(11)

        seen = {cabinet.sample(rng).content for _ in range(500)}

        assert seen == {"a-0-0", "a-0-1", "a-1-0", "b-0-0", "b-0-1"}

    def test_frequencies_follow_weights(self):
        cabinet = Cabinet([make_shelf("a", [1], 90.0), make_shelf("b", [50], 10.0)])
        cabinet.calculate_prob()
        rng = random.Random(2024)

        counts = Counter(cabinet.sample(rng).location.split("/")[0] for _ in range(2000))

        assert 1700 < counts["a"] < 1900
        assert counts["a"] + counts["b"] == 2000

    def test_same_seed_same_draws(self):
        cabinet = Cabinet([make_shelf("a", [3, 4]), make_shelf("b", [5])])
        cabinet.calculate_prob()

        first = [cabinet.sample(random.Random(5)).content for _ in range(3)]
        second = [cabinet.sample(random.Random(5)).content for _ in range(3)]

        assert first == second
