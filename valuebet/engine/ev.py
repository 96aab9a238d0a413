"""
Expected-Value Evaluator.

Prices a modeled probability against a set of bookmaker quotes:

    EV%   = (p * odds - 1) * 100
    edge% = (p - 1/odds) * 100

The median quoted price is the fair-price benchmark. The best playable
price drives the advisory stake bracket.
"""

import math
import statistics
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from valuebet.errors import InvalidProbability, NoQuotes
from valuebet.models.schemas import (
    BookmakerQuote,
    Evaluation,
    Grade,
    QuoteMetrics,
    StakeRecommendation,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class StakeBracket:
    """Units to stake when the best odds are at or below max_odds."""
    max_odds: float
    units: float
    label: str


# Longer odds get smaller stakes
UNIT_BRACKETS: tuple[StakeBracket, ...] = (
    StakeBracket(2.00, 1.00, "<=2.00"),
    StakeBracket(2.75, 0.75, "2.00-2.75"),
    StakeBracket(4.00, 0.50, "2.75-4.00"),
    StakeBracket(7.00, 0.25, "4.00-7.00"),
    StakeBracket(math.inf, 0.10, ">7.00"),
)


@dataclass
class EVConstraints:
    """Caller-supplied limits on an evaluation."""

    # Books we can bet at. None = every quoted book.
    playable_bookmakers: Optional[Sequence[str]] = None

    # Currency value of one unit
    unit_value: float = 1.0

    # Best EV must exceed this to count as a value bet
    min_ev: float = 0.0

    brackets: tuple[StakeBracket, ...] = field(default=UNIT_BRACKETS)

    @classmethod
    def from_settings(cls, settings) -> "EVConstraints":
        """Build from config.settings.EVSettings. An empty book list means all books."""
        return cls(
            playable_bookmakers=list(settings.playable_bookmakers) or None,
            unit_value=settings.unit_value,
            min_ev=settings.min_ev,
        )


# =============================================================================
# Formulas
# =============================================================================

def expected_value_pct(probability: float, odds: float) -> float:
    return (probability * odds - 1.0) * 100.0


def edge_pct(probability: float, odds: float) -> float:
    return (probability - 1.0 / odds) * 100.0


def grade_ev(ev_pct: float) -> Grade:
    if ev_pct <= 0:
        return Grade.POOR
    if ev_pct <= 5:
        return Grade.FAIR
    if ev_pct <= 10:
        return Grade.GOOD
    if ev_pct <= 20:
        return Grade.GREAT
    return Grade.EXCELLENT


def stake_bracket(odds: float, brackets: Sequence[StakeBracket] = UNIT_BRACKETS) -> StakeBracket:
    for bracket in brackets:
        if odds <= bracket.max_odds:
            return bracket
    return brackets[-1]


def kelly_fraction(probability: float, odds: float, fraction: float = 0.25, cap: float = 0.05) -> float:
    """
    Fractional Kelly stake as a share of bankroll.

    Quarter-Kelly by default, capped at 5% of bankroll. Zero when the
    bet has no edge.
    """
    b = odds - 1.0
    if b <= 0:
        return 0.0
    f = (b * probability - (1.0 - probability)) / b
    if f <= 0:
        return 0.0
    return min(f * fraction, cap)


def validate_probability(probability: float) -> float:
    try:
        p = float(probability)
    except (TypeError, ValueError):
        raise InvalidProbability(probability)
    if math.isnan(p) or not 0 < p <= 1:
        raise InvalidProbability(probability)
    return p


# =============================================================================
# Evaluator
# =============================================================================

class EVEvaluator:
    """
    Evaluates bookmaker quotes against a modeled probability.

    Pure and synchronous. Expected empty cases (no playable book, no
    positive EV) return an Evaluation with is_value_bet=False; only
    invalid input raises.
    """

    def __init__(self, constraints: Optional[EVConstraints] = None):
        self.constraints = constraints or EVConstraints()
        self.logger = logger.bind(component="ev_evaluator")

    def evaluate(
        self,
        probability: float,
        quotes: Sequence[BookmakerQuote],
        constraints: Optional[EVConstraints] = None,
    ) -> Evaluation:
        p = validate_probability(probability)
        if not quotes:
            raise NoQuotes()
        cons = constraints or self.constraints

        fair_odds = statistics.median(q.odds for q in quotes)
        fair_probability = 1.0 / fair_odds

        playable = None
        if cons.playable_bookmakers is not None:
            playable = {b.strip().lower() for b in cons.playable_bookmakers}

        metrics = []
        for quote in quotes:
            ev = expected_value_pct(p, quote.odds)
            metrics.append(QuoteMetrics(
                quote=quote,
                ev_pct=ev,
                edge_pct=edge_pct(p, quote.odds),
                consensus_ev_pct=expected_value_pct(fair_probability, quote.odds),
                implied_probability=quote.implied_probability,
                grade=grade_ev(ev),
                is_playable=playable is None or quote.bookmaker.strip().lower() in playable,
            ))
        metrics.sort(key=lambda m: m.ev_pct, reverse=True)

        evaluation = Evaluation(
            probability=p,
            fair_odds=fair_odds,
            fair_probability=fair_probability,
            quotes=metrics,
        )

        candidates = [m for m in metrics if m.is_playable]
        if not candidates:
            evaluation.skipped = True
            evaluation.reason = "No playable bookmaker quoted this market"
            return evaluation

        # Highest price wins; metrics are EV-sorted so ties keep the first seen
        best = max(candidates, key=lambda m: m.quote.odds)
        evaluation.best_opportunity = best

        if best.ev_pct <= 0 or best.ev_pct <= cons.min_ev:
            evaluation.reason = f"No value: best EV {best.ev_pct:.2f}% at {best.quote.bookmaker}"
            return evaluation

        bracket = stake_bracket(best.quote.odds, cons.brackets)
        stake = cons.unit_value * bracket.units
        evaluation.stake = StakeRecommendation(
            units=bracket.units,
            stake=stake,
            potential_profit=stake * (best.quote.odds - 1.0),
            bracket=bracket.label,
        )
        evaluation.is_value_bet = True
        return evaluation

    @staticmethod
    def summarize(evaluations: Sequence[Evaluation]) -> dict:
        """Aggregate stats over value-bet evaluations."""
        bets = [e for e in evaluations if e.is_value_bet and e.best_opportunity]
        if not bets:
            return {
                "count": 0,
                "avg_ev": 0.0,
                "avg_edge": 0.0,
                "avg_odds": 0.0,
                "avg_probability": 0.0,
                "grade_distribution": {},
            }

        grades: dict[str, int] = {}
        for e in bets:
            grade = e.best_opportunity.grade.value
            grades[grade] = grades.get(grade, 0) + 1

        return {
            "count": len(bets),
            "avg_ev": statistics.fmean(e.best_opportunity.ev_pct for e in bets),
            "avg_edge": statistics.fmean(e.best_opportunity.edge_pct for e in bets),
            "avg_odds": statistics.fmean(e.best_opportunity.quote.odds for e in bets),
            "avg_probability": statistics.fmean(e.probability for e in bets),
            "grade_distribution": grades,
        }
