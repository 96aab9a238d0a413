"""
Probability Estimator.

Turns each team's recent per-match stats into a distribution for the
match total, then searches over/under lines whose modeled probability
lands in a target band (default 58-62%).

Model:
    per side:  blended = weighted_mean * 0.6 + simple_mean * 0.4
               weights = decay^i, most recent sample first
    combined:  mean = home + away
               std  = sqrt(home_std^2 + away_std^2)   (independent sides)
    line L:    P(over) = 1 - Phi((L - mean) / std), P(under) = Phi(z)
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from valuebet.errors import InsufficientSamples
from valuebet.models.schemas import (
    CandidateLine,
    ConfidenceTier,
    Sample,
    Side,
    StatDistribution,
)

logger = structlog.get_logger()


def normal_cdf(z: float) -> float:
    """Standard normal CDF."""
    return 0.5 * (1.0 + math.erf(z / math.sqrt(2.0)))


@dataclass
class EstimatorOptions:
    """Hyperparameters for line search."""

    decay_factor: float = 0.9
    probability_band: tuple[float, float] = (0.58, 0.62)
    line_step: float = 0.5
    weighted_blend: float = 0.6       # simple mean gets 1 - weighted_blend
    search_width_sigmas: float = 2.0  # grid spans mean +/- width * std
    min_line: float = 0.0
    min_sample_size: int = 3          # used by estimate_markets only

    def __post_init__(self):
        if not 0 < self.decay_factor <= 1:
            raise ValueError("decay_factor must be in (0, 1]")
        low, high = self.probability_band
        if not 0 < low <= high < 1:
            raise ValueError("probability_band must satisfy 0 < min <= max < 1")
        if self.line_step <= 0:
            raise ValueError("line_step must be positive")
        if not 0 <= self.weighted_blend <= 1:
            raise ValueError("weighted_blend must be in [0, 1]")

    @property
    def target_probability(self) -> float:
        low, high = self.probability_band
        return (low + high) / 2

    @classmethod
    def from_settings(cls, settings) -> "EstimatorOptions":
        """Build from config.settings.EstimatorSettings."""
        return cls(
            decay_factor=settings.decay_factor,
            probability_band=tuple(settings.probability_band),
            line_step=settings.line_step,
            weighted_blend=settings.weighted_blend,
            search_width_sigmas=settings.search_width_sigmas,
            min_sample_size=settings.min_sample_size,
        )


class ProbabilityEstimator:
    """
    Finds over/under lines whose modeled probability sits in the band.

    Pure and synchronous: no I/O, no state beyond options.
    """

    def __init__(self, options: Optional[EstimatorOptions] = None):
        self.options = options or EstimatorOptions()
        self.logger = logger.bind(component="probability_estimator")

    # =========================================================================
    # Distributions
    # =========================================================================

    def distribution(
        self,
        samples: Sequence[Sample],
        stat_key: str,
        side: str = "home",
        options: Optional[EstimatorOptions] = None,
    ) -> StatDistribution:
        """
        Aggregate one team's samples for a stat.

        Samples without a numeric value for the stat are ignored. Raises
        InsufficientSamples when none remain.
        """
        opts = options or self.options
        values = [v for v in (s.value(stat_key) for s in _most_recent_first(samples)) if v is not None]
        if not values:
            raise InsufficientSamples(stat_key, side)

        simple = sum(values) / len(values)

        weight = 1.0
        weighted_sum = 0.0
        weight_total = 0.0
        for value in values:
            weighted_sum += value * weight
            weight_total += weight
            weight *= opts.decay_factor
        weighted = weighted_sum / weight_total

        blended = weighted * opts.weighted_blend + simple * (1 - opts.weighted_blend)

        return StatDistribution(
            stat_key=stat_key,
            simple_mean=simple,
            weighted_mean=weighted,
            blended_mean=blended,
            std_dev=population_std(values),
            count=len(values),
        )

    # =========================================================================
    # Line Search
    # =========================================================================

    def estimate(
        self,
        samples_home: Sequence[Sample],
        samples_away: Sequence[Sample],
        stat_key: str,
        options: Optional[EstimatorOptions] = None,
    ) -> list[CandidateLine]:
        """
        Candidate lines for the match total of a stat.

        Returns lines ordered by closeness to the band midpoint; an empty
        list when no line falls in the band.
        """
        opts = options or self.options
        home = self.distribution(samples_home, stat_key, "home", opts)
        away = self.distribution(samples_away, stat_key, "away", opts)

        mean = home.blended_mean + away.blended_mean
        std = math.sqrt(home.std_dev ** 2 + away.std_dev ** 2)
        sample_size = home.count + away.count
        tier = self.confidence_tier(sample_size, std)
        low, high = opts.probability_band

        candidates: list[CandidateLine] = []
        for line in self.line_grid(mean, std, opts):
            p_over = self.probability_over(line, mean, std)
            for side, probability in ((Side.OVER, p_over), (Side.UNDER, 1.0 - p_over)):
                if not low <= probability <= high:
                    continue
                candidates.append(CandidateLine(
                    stat_key=stat_key,
                    line=line,
                    side=side,
                    probability=probability,
                    fair_odds=1.0 / probability,
                    confidence=tier,
                    sample_size=sample_size,
                    home_mean=home.blended_mean,
                    away_mean=away.blended_mean,
                    combined_mean=mean,
                    combined_std=std,
                ))

        target = opts.target_probability
        candidates.sort(key=lambda c: (abs(c.probability - target), c.line))

        self.logger.debug(
            "Line search complete",
            stat=stat_key,
            mean=round(mean, 2),
            std=round(std, 2),
            candidates=len(candidates),
        )
        return candidates

    def estimate_markets(
        self,
        samples_home: Sequence[Sample],
        samples_away: Sequence[Sample],
        stat_keys: Sequence[str],
        options: Optional[EstimatorOptions] = None,
    ) -> dict[str, list[CandidateLine]]:
        """
        Run the line search for several stats.

        Stats without samples on either side, or with fewer combined
        samples than min_sample_size, are left out of the result.
        """
        opts = options or self.options
        results: dict[str, list[CandidateLine]] = {}
        for stat_key in stat_keys:
            try:
                candidates = self.estimate(samples_home, samples_away, stat_key, opts)
            except InsufficientSamples as e:
                self.logger.debug("Skipping market", stat=stat_key, reason=e.message)
                continue
            if candidates and candidates[0].sample_size < opts.min_sample_size:
                self.logger.debug("Skipping market", stat=stat_key, reason="sample size")
                continue
            results[stat_key] = candidates
        return results

    @staticmethod
    def line_grid(mean: float, std: float, options: EstimatorOptions) -> list[float]:
        """Lines on the step grid covering mean +/- width * std."""
        step = options.line_step
        span = max(options.search_width_sigmas * std, step)
        low = math.floor((mean - span) / step) * step
        high = math.ceil((mean + span) / step) * step
        count = int(round((high - low) / step))
        lines = []
        for i in range(count + 1):
            line = round(low + i * step, 6)
            if line >= options.min_line:
                lines.append(line)
        return lines

    @staticmethod
    def probability_over(line: float, mean: float, std: float) -> float:
        """P(total > line). A zero std collapses to a step function."""
        if std == 0:
            return 1.0 if mean > line else 0.0
        return 1.0 - normal_cdf((line - mean) / std)

    @staticmethod
    def confidence_tier(sample_size: int, std: float) -> ConfidenceTier:
        if sample_size >= 8 and std < 2:
            return ConfidenceTier.HIGH
        if sample_size >= 5 and std < 3:
            return ConfidenceTier.MEDIUM
        return ConfidenceTier.LOW


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def _most_recent_first(samples: Sequence[Sample]) -> list[Sample]:
    # Providers hand samples over most-recent-first. Re-sort only when every
    # sample is dated so undated feeds keep their given order.
    ordered = list(samples)
    if ordered and all(s.date is not None for s in ordered):
        ordered.sort(key=lambda s: s.date, reverse=True)
    return ordered
