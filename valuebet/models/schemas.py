"""
Value-bet data models and schemas.

Defines the core data structures for:
- Historical samples and derived stat distributions
- Events and entities reconciled across providers
- Bookmaker quotes and EV evaluations
- Predictions and their verification result state
- Rate limiter state
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
import math
import uuid


# =============================================================================
# Enums
# =============================================================================

class Side(Enum):
    """Over/under side of a line."""
    OVER = "over"
    UNDER = "under"

    @classmethod
    def from_string(cls, value: Union[str, "Side"]) -> "Side":
        if isinstance(value, Side):
            return value
        return cls(str(value).strip().lower())


class ConfidenceTier(Enum):
    """Coarse reliability label for a probability estimate."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Outcome(Enum):
    """Prediction result state."""
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PUSH = "push"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.PENDING


class Grade(Enum):
    """EV quality grade."""
    POOR = "poor"            # EV <= 0
    FAIR = "fair"            # 0 < EV <= 5
    GOOD = "good"            # 5 < EV <= 10
    GREAT = "great"          # 10 < EV <= 20
    EXCELLENT = "excellent"  # EV > 20


class Market(Enum):
    """Supported over/under markets: match totals and player props."""
    CORNERS = "corners"
    YELLOW_CARDS = "yellow_cards"
    SHOTS_ON_TARGET = "shots_on_target"
    SHOTS_TOTAL = "shots_total"
    GOALS = "goals"

    # Player props
    PLAYER_POINTS = "player_points"
    PLAYER_REBOUNDS = "player_rebounds"
    PLAYER_ASSISTS = "player_assists"
    PLAYER_PRA = "player_pra"  # Points + rebounds + assists

    @property
    def display_name(self) -> str:
        return MARKET_DISPLAY_NAMES[self]

    @property
    def is_player(self) -> bool:
        return self in PLAYER_MARKETS


MARKET_DISPLAY_NAMES: dict[Market, str] = {
    Market.CORNERS: "Corners",
    Market.YELLOW_CARDS: "Yellow Cards",
    Market.SHOTS_ON_TARGET: "Shots on Target",
    Market.SHOTS_TOTAL: "Total Shots",
    Market.GOALS: "Total Goals",
    Market.PLAYER_POINTS: "Points",
    Market.PLAYER_REBOUNDS: "Rebounds",
    Market.PLAYER_ASSISTS: "Assists",
    Market.PLAYER_PRA: "Pts + Reb + Ast",
}

PLAYER_MARKETS = frozenset({
    Market.PLAYER_POINTS,
    Market.PLAYER_REBOUNDS,
    Market.PLAYER_ASSISTS,
    Market.PLAYER_PRA,
})


# =============================================================================
# Helpers
# =============================================================================

def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize a provider timestamp to an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (a trailing "Z" is allowed) and
    epoch seconds or milliseconds. Naive datetimes are treated as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return coerce_datetime(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


# =============================================================================
# Samples and distributions
# =============================================================================

@dataclass(frozen=True)
class Sample:
    """One historical observation for a team or player."""
    date: Optional[datetime]
    opponent: str = ""
    values: dict[str, float] = field(default_factory=dict)

    def value(self, stat_key: str) -> Optional[float]:
        """Numeric value for a stat, or None when absent or non-numeric."""
        return _finite(self.values.get(stat_key))

    @classmethod
    def from_mapping(cls, data: dict) -> "Sample":
        values = data.get("values")
        if values is None:
            values = {k: v for k, v in data.items() if k not in ("date", "opponent")}
        return cls(
            date=coerce_datetime(data.get("date")),
            opponent=str(data.get("opponent") or ""),
            values=dict(values),
        )


@dataclass(frozen=True)
class StatDistribution:
    """Per (entity, stat) aggregate derived from samples."""
    stat_key: str
    simple_mean: float
    weighted_mean: float
    blended_mean: float
    std_dev: float
    count: int


# =============================================================================
# Entities and events
# =============================================================================

@dataclass(frozen=True)
class Entity:
    """Canonical team/player identity. Built once at the provider boundary."""
    name: str
    entity_id: Optional[str] = None
    short_name: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "Entity":
        """Accept a bare name, a mapping with name fields, or an Entity."""
        if isinstance(raw, Entity):
            return raw
        if isinstance(raw, str):
            return cls(name=raw.strip())
        if isinstance(raw, dict):
            name = raw.get("name") or raw.get("team_name") or raw.get("full_name") or ""
            short = raw.get("short_name") or raw.get("shortName") or raw.get("abbreviation")
            ident = raw.get("id") or raw.get("team_id")
            if not name and short:
                name = short
            return cls(
                name=str(name).strip(),
                entity_id=str(ident) if ident is not None else None,
                short_name=str(short) if short else None,
            )
        if raw is None:
            return cls(name="")
        raise TypeError(f"Cannot build Entity from {type(raw).__name__}")


def _league_label(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        label = raw.get("name") or raw.get("slug") or raw.get("id")
        return str(label) if label else None
    label = str(raw).strip()
    return label or None


@dataclass(frozen=True)
class EventRecord:
    """One fixture as described by a single data source."""
    home: Entity
    away: Entity
    date: Optional[datetime] = None
    league: Optional[str] = None
    event_id: Optional[str] = None
    source: str = ""

    @classmethod
    def from_mapping(cls, data: dict, source: str = "") -> "EventRecord":
        """Normalize a provider payload. Teams may be strings or objects."""
        home = data.get("home_team", data.get("home", data.get("homeTeam")))
        away = data.get("away_team", data.get("away", data.get("awayTeam")))
        when = data.get("date", data.get("commence_time", data.get("time", data.get("startTime"))))
        league = data.get("league", data.get("competition", data.get("tournament")))
        ident = data.get("event_id", data.get("id"))
        return cls(
            home=Entity.from_raw(home),
            away=Entity.from_raw(away),
            date=coerce_datetime(when),
            league=_league_label(league),
            event_id=str(ident) if ident is not None else None,
            source=source,
        )

    def get_display_name(self) -> str:
        return f"{self.home.name} vs {self.away.name}"


@dataclass
class MatchResult:
    """Correspondence between two records of the same fixture."""
    matched: bool
    confidence: float
    home_similarity: float
    away_similarity: float
    league_similarity: Optional[float] = None
    date_diff_hours: Optional[float] = None
    reason: Optional[str] = None


@dataclass
class MatchReport:
    """Bulk-match outcome for one target record."""
    original: EventRecord
    matched: Optional[EventRecord]
    confidence: float = 0.0
    result: Optional[MatchResult] = None
    reason: Optional[str] = None


# =============================================================================
# Odds and evaluation
# =============================================================================

@dataclass(frozen=True)
class BookmakerQuote:
    """A bookmaker's decimal price for one side of a line."""
    bookmaker: str
    odds: float
    observed_at: Optional[datetime] = None
    source_url: Optional[str] = None

    def __post_init__(self):
        odds = _finite(self.odds)
        if odds is None or odds < 1.01:
            raise ValueError(f"Decimal odds must be >= 1.01, got {self.odds!r}")
        object.__setattr__(self, "odds", odds)

    @property
    def implied_probability(self) -> float:
        return 1.0 / self.odds


@dataclass
class CandidateLine:
    """A line whose modeled probability falls in the target band."""
    stat_key: str
    line: float
    side: Side
    probability: float
    fair_odds: float
    confidence: ConfidenceTier
    sample_size: int
    home_mean: float
    away_mean: float
    combined_mean: float
    combined_std: float


@dataclass
class QuoteMetrics:
    """EV metrics for a single bookmaker quote."""
    quote: BookmakerQuote
    ev_pct: float               # (p * odds - 1) * 100 with the modeled probability
    edge_pct: float             # (p - 1/odds) * 100
    consensus_ev_pct: float     # Same formula using the median-implied probability
    implied_probability: float
    grade: Grade
    is_playable: bool = True

    @property
    def is_value(self) -> bool:
        return self.ev_pct > 0


@dataclass
class StakeRecommendation:
    """Advisory stake sizing for the best playable price."""
    units: float
    stake: float
    potential_profit: float
    bracket: str


@dataclass
class Evaluation:
    """Result of pricing a modeled probability against a quote set."""
    probability: float
    fair_odds: float
    fair_probability: float
    quotes: list[QuoteMetrics] = field(default_factory=list)
    best_opportunity: Optional[QuoteMetrics] = None
    stake: Optional[StakeRecommendation] = None
    is_value_bet: bool = False
    skipped: bool = False
    reason: Optional[str] = None

    @property
    def best_ev(self) -> Optional[float]:
        return self.best_opportunity.ev_pct if self.best_opportunity else None

    @property
    def value_quotes(self) -> list[QuoteMetrics]:
        return [q for q in self.quotes if q.is_playable and q.is_value]


# =============================================================================
# Predictions
# =============================================================================

@dataclass
class PredictionResult:
    """Verification state carried on a prediction."""
    outcome: Outcome = Outcome.PENDING
    actual_value: Optional[float] = None
    verified_at: Optional[datetime] = None


@dataclass
class Prediction:
    """
    A modeled over/under pick for one fixture.

    Created from a CandidateLine. Only the verification flow (outcome
    transition) or an explicit undo changes ``result``.
    """
    event: EventRecord
    stat_key: str
    line: float
    side: Side
    probability: float
    fair_odds: float
    confidence: ConfidenceTier
    prediction_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    result_event_id: Optional[str] = None  # Event id at the result provider
    player: Optional[Entity] = None        # Set for player props
    created_at: datetime = field(default_factory=utc_now)
    result: PredictionResult = field(default_factory=PredictionResult)

    @property
    def outcome(self) -> Outcome:
        return self.result.outcome

    @property
    def is_pending(self) -> bool:
        return self.result.outcome is Outcome.PENDING

    @property
    def lookup_event_id(self) -> Optional[str]:
        return self.result_event_id or self.event.event_id

    @classmethod
    def from_candidate(
        cls,
        event: EventRecord,
        candidate: CandidateLine,
        result_event_id: Optional[str] = None,
        player: Optional[Entity] = None,
    ) -> "Prediction":
        return cls(
            event=event,
            stat_key=candidate.stat_key,
            line=candidate.line,
            side=candidate.side,
            probability=candidate.probability,
            fair_odds=candidate.fair_odds,
            confidence=candidate.confidence,
            result_event_id=result_event_id,
            player=player,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.prediction_id,
            "event": {
                "id": self.event.event_id,
                "home": self.event.home.name,
                "home_id": self.event.home.entity_id,
                "away": self.event.away.name,
                "away_id": self.event.away.entity_id,
                "date": self.event.date.isoformat() if self.event.date else None,
                "league": self.event.league,
                "source": self.event.source,
            },
            "result_event_id": self.result_event_id,
            "player": (
                {"id": self.player.entity_id, "name": self.player.name}
                if self.player else None
            ),
            "stat_key": self.stat_key,
            "line": self.line,
            "side": self.side.value,
            "probability": self.probability,
            "fair_odds": self.fair_odds,
            "confidence": self.confidence.value,
            "created_at": self.created_at.isoformat(),
            "result": {
                "outcome": self.result.outcome.value,
                "actual_value": self.result.actual_value,
                "verified_at": self.result.verified_at.isoformat() if self.result.verified_at else None,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Prediction":
        ev = data.get("event") or {}
        event = EventRecord(
            home=Entity(name=ev.get("home") or "", entity_id=ev.get("home_id")),
            away=Entity(name=ev.get("away") or "", entity_id=ev.get("away_id")),
            date=coerce_datetime(ev.get("date")),
            league=ev.get("league"),
            event_id=ev.get("id"),
            source=ev.get("source") or "",
        )
        res = data.get("result") or {}
        raw_player = data.get("player")
        player = (
            Entity(name=raw_player.get("name") or "", entity_id=raw_player.get("id"))
            if raw_player else None
        )
        return cls(
            event=event,
            stat_key=data["stat_key"],
            line=float(data["line"]),
            side=Side.from_string(data["side"]),
            probability=float(data["probability"]),
            fair_odds=float(data["fair_odds"]),
            confidence=ConfidenceTier(data.get("confidence", "low")),
            prediction_id=data.get("id") or uuid.uuid4().hex,
            result_event_id=data.get("result_event_id"),
            player=player,
            created_at=coerce_datetime(data.get("created_at")) or utc_now(),
            result=PredictionResult(
                outcome=Outcome(res.get("outcome", "pending")),
                actual_value=_finite(res.get("actual_value")),
                verified_at=coerce_datetime(res.get("verified_at")),
            ),
        )


# =============================================================================
# Results and quota state
# =============================================================================

@dataclass(frozen=True)
class StatLine:
    """Home/away split for one stat."""
    home: float
    away: float

    @property
    def total(self) -> float:
        return self.home + self.away


@dataclass
class EventResult:
    """Final (or in-progress) result as reported by the result provider."""
    event_id: str
    finished: bool
    status: Optional[str] = None
    home_team: str = ""
    away_team: str = ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    stats: dict[Market, StatLine] = field(default_factory=dict)


@dataclass
class PlayerResult:
    """One player's box-score line for a finished game."""
    game_id: str
    player_id: str
    player_name: str = ""
    minutes_played: Optional[float] = None
    game_date: Optional[datetime] = None
    stats: dict[Market, float] = field(default_factory=dict)


@dataclass
class CallRecord:
    timestamp_ms: int
    label: str = ""


@dataclass
class CacheEntry:
    result: Any
    cached_at_ms: int
    expires_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at_ms


@dataclass
class RateLimiterState:
    """Call counters with the calendar markers they were last reset at."""
    daily_calls: int = 0
    hourly_calls: int = 0
    last_call_ms: Optional[int] = None
    day_marker: Optional[str] = None    # YYYY-MM-DD
    hour_marker: Optional[str] = None   # YYYY-MM-DDTHH
    call_history: list[CallRecord] = field(default_factory=list)
