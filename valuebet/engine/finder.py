"""
Value-bet finder pipeline.

    samples -> ProbabilityEstimator -> Predictions
            -> EntityMatcher (prediction event vs odds provider event)
            -> EVEvaluator (prediction probability vs bookmaker quotes)
            -> ranked value bets

Provider calls are the only awaits; everything between them is pure.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from valuebet.engine.ev import EVConstraints, EVEvaluator
from valuebet.engine.matcher import EntityMatcher
from valuebet.engine.probability import ProbabilityEstimator
from valuebet.errors import ValueBetError
from valuebet.feeds.base import OddsProvider, StatsProvider
from valuebet.models.schemas import (
    Evaluation,
    EventRecord,
    MatchResult,
    Prediction,
)

logger = structlog.get_logger()


@dataclass
class ValueBet:
    """A prediction priced above the market at a playable book."""
    prediction: Prediction
    odds_event: EventRecord
    match: MatchResult
    evaluation: Evaluation

    @property
    def ev_pct(self) -> float:
        return self.evaluation.best_ev or 0.0


@dataclass
class ScanReport:
    value_bets: list[ValueBet] = field(default_factory=list)
    evaluations: list[Evaluation] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


class ValueBetFinder:
    """
    Runs predictions through matching and EV evaluation.

    Usage:
        finder = ValueBetFinder(odds_provider, stats_provider)
        predictions = await finder.predict_event(event, ["corners"])
        report = await finder.find_value_bets(predictions)
    """

    def __init__(
        self,
        odds_provider: OddsProvider,
        stats_provider: Optional[StatsProvider] = None,
        estimator: Optional[ProbabilityEstimator] = None,
        matcher: Optional[EntityMatcher] = None,
        evaluator: Optional[EVEvaluator] = None,
        sample_limit: int = 10,
    ):
        self.odds_provider = odds_provider
        self.stats_provider = stats_provider
        self.estimator = estimator or ProbabilityEstimator()
        self.matcher = matcher or EntityMatcher()
        self.evaluator = evaluator or EVEvaluator()
        self.sample_limit = sample_limit
        self.logger = logger.bind(component="value_bet_finder")

    # =========================================================================
    # Predictions
    # =========================================================================

    async def predict_event(
        self,
        event: EventRecord,
        stat_keys: Sequence[str],
        best_only: bool = True,
    ) -> list[Prediction]:
        """
        Model an upcoming fixture from both teams' recent samples.

        With best_only, keeps the candidate closest to the band midpoint
        per stat; otherwise every in-band candidate becomes a prediction.
        """
        if self.stats_provider is None:
            raise ValueError("predict_event needs a stats provider")

        home_id = event.home.entity_id or event.home.name
        away_id = event.away.entity_id or event.away.name
        samples_home = await self.stats_provider.get_samples(home_id, self.sample_limit)
        samples_away = await self.stats_provider.get_samples(away_id, self.sample_limit)

        by_market = self.estimator.estimate_markets(samples_home, samples_away, stat_keys)

        predictions = []
        for candidates in by_market.values():
            chosen = candidates[:1] if best_only else candidates
            predictions.extend(Prediction.from_candidate(event, c) for c in chosen)

        self.logger.info(
            "Event modeled",
            event=event.get_display_name(),
            markets=len(by_market),
            predictions=len(predictions),
        )
        return predictions

    # =========================================================================
    # Value bets
    # =========================================================================

    async def find_value_bets(
        self,
        predictions: Sequence[Prediction],
        odds_events: Optional[Sequence[EventRecord]] = None,
        constraints: Optional[EVConstraints] = None,
    ) -> ScanReport:
        """
        Price predictions against bookmaker quotes.

        "No value bets" is a normal empty report. Per-prediction failures
        are logged and counted, never raised.
        """
        if odds_events is None:
            odds_events = list(await self.odds_provider.get_events())

        report = ScanReport(stats={
            "predictions": len(predictions),
            "unmatched": 0,
            "no_quotes": 0,
            "skipped": 0,
            "no_value": 0,
            "errors": 0,
            "value_bets": 0,
        })

        for prediction in predictions:
            found = self.matcher.find_matching_event(prediction.event, odds_events)
            if found is None:
                report.stats["unmatched"] += 1
                continue
            odds_event, match = found

            if not odds_event.event_id:
                report.stats["unmatched"] += 1
                continue

            quotes = await self.odds_provider.get_quotes(
                odds_event.event_id,
                prediction.stat_key,
                prediction.side,
                prediction.line,
            )
            if not quotes:
                report.stats["no_quotes"] += 1
                continue

            try:
                evaluation = self.evaluator.evaluate(prediction.probability, quotes, constraints)
            except ValueBetError as e:
                report.stats["errors"] += 1
                self.logger.warning(
                    "Evaluation failed",
                    prediction_id=prediction.prediction_id,
                    error=e.message,
                )
                continue

            report.evaluations.append(evaluation)
            if evaluation.skipped:
                report.stats["skipped"] += 1
            elif not evaluation.is_value_bet:
                report.stats["no_value"] += 1
            else:
                report.value_bets.append(ValueBet(
                    prediction=prediction,
                    odds_event=odds_event,
                    match=match,
                    evaluation=evaluation,
                ))

        report.value_bets.sort(key=lambda vb: vb.ev_pct, reverse=True)
        report.stats["value_bets"] = len(report.value_bets)

        self.logger.info("Value bet scan complete", **report.stats)
        return report
