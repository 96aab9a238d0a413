"""Tests for the probability estimator."""

import math

import pytest

from conftest import make_samples
from valuebet.engine.probability import (
    EstimatorOptions,
    ProbabilityEstimator,
    normal_cdf,
    population_std,
)
from valuebet.errors import InsufficientSamples
from valuebet.models.schemas import ConfidenceTier, Sample, Side


@pytest.fixture
def estimator():
    return ProbabilityEstimator()


@pytest.fixture
def home_samples():
    return make_samples([6, 4, 7, 5, 6])


@pytest.fixture
def away_samples():
    return make_samples([5, 3, 4, 6, 5])


class TestDistribution:
    """Tests for per-team aggregation."""

    def test_recency_weighting(self, estimator):
        """Most recent sample gets weight 1.0, then decay^i."""
        dist = estimator.distribution(make_samples([10, 8, 6]), "corners")

        weighted = (10 * 1 + 8 * 0.9 + 6 * 0.81) / (1 + 0.9 + 0.81)
        assert dist.simple_mean == pytest.approx(8.0)
        assert dist.weighted_mean == pytest.approx(weighted)
        assert dist.blended_mean == pytest.approx(weighted * 0.6 + 8.0 * 0.4)
        assert dist.count == 3

    def test_population_std(self, estimator):
        dist = estimator.distribution(make_samples([10, 8, 6]), "corners")
        assert dist.std_dev == pytest.approx(math.sqrt(8 / 3))
        assert population_std([7.0]) == 0.0

    def test_blend_weight_is_configurable(self):
        estimator = ProbabilityEstimator(EstimatorOptions(weighted_blend=1.0))
        dist = estimator.distribution(make_samples([10, 8, 6]), "corners")
        assert dist.blended_mean == pytest.approx(dist.weighted_mean)

    def test_dated_samples_are_reordered_most_recent_first(self, estimator):
        """Chronological input gives the same result as most-recent-first."""
        samples = make_samples([10, 8, 6])
        forward = estimator.distribution(samples, "corners")
        backward = estimator.distribution(list(reversed(samples)), "corners")
        assert backward.weighted_mean == pytest.approx(forward.weighted_mean)

    def test_non_numeric_values_ignored(self, estimator):
        samples = [
            Sample(date=None, values={"corners": 5}),
            Sample(date=None, values={"corners": None}),
            Sample(date=None, values={"corners": "n/a"}),
            Sample(date=None, values={"shots": 12}),
        ]
        dist = estimator.distribution(samples, "corners")
        assert dist.count == 1
        assert dist.simple_mean == 5

    def test_no_samples_raises(self, estimator):
        with pytest.raises(InsufficientSamples) as exc:
            estimator.distribution([], "corners", side="away")
        assert exc.value.side == "away"


class TestLineSearch:
    """Tests for candidate line search."""

    def test_finds_single_under_line(self, estimator, home_samples, away_samples):
        """Combined mean ~10.15, std ~1.44: only under 10.5 lands in 58-62%."""
        candidates = estimator.estimate(home_samples, away_samples, "corners")

        assert len(candidates) == 1
        c = candidates[0]
        assert c.line == 10.5
        assert c.side is Side.UNDER
        assert c.sample_size == 10
        assert c.confidence is ConfidenceTier.HIGH
        assert c.probability == pytest.approx(
            normal_cdf((10.5 - c.combined_mean) / c.combined_std)
        )
        assert c.fair_odds == pytest.approx(1 / c.probability)

    def test_combined_model(self, estimator, home_samples, away_samples):
        home = estimator.distribution(home_samples, "corners")
        away = estimator.distribution(away_samples, "corners")
        c = estimator.estimate(home_samples, away_samples, "corners")[0]

        assert c.combined_mean == pytest.approx(home.blended_mean + away.blended_mean)
        assert c.combined_std == pytest.approx(math.hypot(home.std_dev, away.std_dev))
        assert c.home_mean == pytest.approx(home.blended_mean)
        assert c.away_mean == pytest.approx(away.blended_mean)

    def test_all_candidates_inside_band(self, home_samples, away_samples):
        options = EstimatorOptions(probability_band=(0.3, 0.7))
        candidates = ProbabilityEstimator(options).estimate(home_samples, away_samples, "corners")

        assert len(candidates) > 2
        for c in candidates:
            assert 0.3 <= c.probability <= 0.7
            assert (c.line * 2) == int(c.line * 2)
            assert c.line >= 0
        # Closest to the band midpoint first
        gaps = [abs(c.probability - 0.5) for c in candidates]
        assert gaps == sorted(gaps)

    def test_zero_variance_yields_no_candidates(self, estimator):
        """Identical samples collapse P(over) to 0 or 1, never in band."""
        candidates = estimator.estimate(make_samples([5, 5, 5]), make_samples([4, 4, 4]), "corners")
        assert candidates == []

    def test_missing_side_raises(self, estimator, home_samples):
        with pytest.raises(InsufficientSamples):
            estimator.estimate(home_samples, [], "corners")

    def test_probability_over_step_function(self):
        assert ProbabilityEstimator.probability_over(8.5, 9.0, 0) == 1.0
        assert ProbabilityEstimator.probability_over(9.0, 9.0, 0) == 0.0
        assert ProbabilityEstimator.probability_over(9.0, 9.0, 2.0) == pytest.approx(0.5)

    def test_estimate_markets_skips_missing_stats(self, estimator, home_samples, away_samples):
        result = estimator.estimate_markets(home_samples, away_samples, ["corners", "yellow_cards"])
        assert list(result) == ["corners"]


class TestConfidenceTier:

    @pytest.mark.parametrize("size,std,tier", [
        (8, 1.9, ConfidenceTier.HIGH),
        (8, 2.0, ConfidenceTier.MEDIUM),
        (5, 2.9, ConfidenceTier.MEDIUM),
        (5, 3.0, ConfidenceTier.LOW),
        (4, 0.5, ConfidenceTier.LOW),
    ])
    def test_tiers(self, size, std, tier):
        assert ProbabilityEstimator.confidence_tier(size, std) is tier


class TestOptions:

    def test_rejects_inverted_band(self):
        with pytest.raises(ValueError):
            EstimatorOptions(probability_band=(0.7, 0.6))

    def test_rejects_bad_decay(self):
        with pytest.raises(ValueError):
            EstimatorOptions(decay_factor=0)
