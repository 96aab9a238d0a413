"""Value-bet data models."""

from valuebet.models.schemas import (
    BookmakerQuote,
    CandidateLine,
    ConfidenceTier,
    Entity,
    Evaluation,
    EventRecord,
    EventResult,
    Grade,
    Market,
    MatchReport,
    MatchResult,
    Outcome,
    PlayerResult,
    Prediction,
    PredictionResult,
    QuoteMetrics,
    RateLimiterState,
    Sample,
    Side,
    StakeRecommendation,
    StatDistribution,
    StatLine,
)

__all__ = [
    "BookmakerQuote",
    "CandidateLine",
    "ConfidenceTier",
    "Entity",
    "Evaluation",
    "EventRecord",
    "EventResult",
    "Grade",
    "Market",
    "MatchReport",
    "MatchResult",
    "Outcome",
    "PlayerResult",
    "Prediction",
    "PredictionResult",
    "QuoteMetrics",
    "RateLimiterState",
    "Sample",
    "Side",
    "StakeRecommendation",
    "StatDistribution",
    "StatLine",
]
