"""
Value-bet detection engine.

1. Model match-stat totals from recent form (probability)
2. Reconcile fixtures across providers (matcher)
3. Price model probability against bookmaker quotes (ev)
4. Chain the three into ranked value bets (finder)
"""

from valuebet.engine.probability import EstimatorOptions, ProbabilityEstimator
from valuebet.engine.matcher import EntityMatcher, MatchOptions
from valuebet.engine.ev import EVConstraints, EVEvaluator
from valuebet.engine.finder import ScanReport, ValueBet, ValueBetFinder

__all__ = [
    "EstimatorOptions",
    "ProbabilityEstimator",
    "EntityMatcher",
    "MatchOptions",
    "EVConstraints",
    "EVEvaluator",
    "ScanReport",
    "ValueBet",
    "ValueBetFinder",
]
