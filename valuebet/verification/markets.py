"""
Market taxonomy and actual-value extraction.

Market labels resolve through an explicit alias table, never by
substring search, so "shots on target" can never be read as "shots".
Team markets map to one extractor over an EventResult; player markets
read straight from a PlayerResult.
"""

import re
from typing import Callable, Optional, Union

from valuebet.errors import UnsupportedMarket
from valuebet.models.schemas import EventResult, Market, Outcome, PlayerResult, Side

_SEPARATORS = re.compile(r"[\s_\-/]+")


def _key(label: str) -> str:
    return _SEPARATORS.sub(" ", label.strip().lower()).strip()


# Normalized label -> market
MARKET_ALIASES: dict[str, Market] = {
    # Corners
    "corners": Market.CORNERS,
    "corner": Market.CORNERS,
    "total corners": Market.CORNERS,
    "corners totals": Market.CORNERS,
    "corners over under": Market.CORNERS,
    # Yellow cards
    "yellow cards": Market.YELLOW_CARDS,
    "yellowcards": Market.YELLOW_CARDS,
    "yellow card": Market.YELLOW_CARDS,
    "cards": Market.YELLOW_CARDS,
    "total cards": Market.YELLOW_CARDS,
    "bookings": Market.YELLOW_CARDS,
    "bookings totals": Market.YELLOW_CARDS,
    # Shots on target
    "shots on target": Market.SHOTS_ON_TARGET,
    "shot on target": Market.SHOTS_ON_TARGET,
    "on target": Market.SHOTS_ON_TARGET,
    "sot": Market.SHOTS_ON_TARGET,
    "total shots on target": Market.SHOTS_ON_TARGET,
    # Total shots
    "shots": Market.SHOTS_TOTAL,
    "shots total": Market.SHOTS_TOTAL,
    "total shots": Market.SHOTS_TOTAL,
    "shots totals": Market.SHOTS_TOTAL,
    # Goals
    "goals": Market.GOALS,
    "total goals": Market.GOALS,
    "goals over under": Market.GOALS,
    # Player props
    "points": Market.PLAYER_POINTS,
    "pts": Market.PLAYER_POINTS,
    "player points": Market.PLAYER_POINTS,
    "rebounds": Market.PLAYER_REBOUNDS,
    "reb": Market.PLAYER_REBOUNDS,
    "player rebounds": Market.PLAYER_REBOUNDS,
    "assists": Market.PLAYER_ASSISTS,
    "ast": Market.PLAYER_ASSISTS,
    "player assists": Market.PLAYER_ASSISTS,
    "pra": Market.PLAYER_PRA,
    "pts+reb+ast": Market.PLAYER_PRA,
    "pts + reb + ast": Market.PLAYER_PRA,
    "points rebounds assists": Market.PLAYER_PRA,
}

# Canonical keys ("yellow_cards") and display names resolve too
for _market in Market:
    MARKET_ALIASES.setdefault(_key(_market.value), _market)
    MARKET_ALIASES.setdefault(_key(_market.display_name), _market)


def parse_market(label: str) -> Market:
    """Resolve a market label or key. Raises UnsupportedMarket."""
    if isinstance(label, Market):
        return label
    market = MARKET_ALIASES.get(_key(label or ""))
    if market is None:
        raise UnsupportedMarket(label)
    return market


# =============================================================================
# Extraction
# =============================================================================

Extractor = Callable[[EventResult], Optional[float]]


def _stat_total(market: Market) -> Extractor:
    def extract(result: EventResult) -> Optional[float]:
        line = result.stats.get(market)
        return line.total if line is not None else None
    return extract


def _goals(result: EventResult) -> Optional[float]:
    if result.home_score is not None and result.away_score is not None:
        return float(result.home_score + result.away_score)
    line = result.stats.get(Market.GOALS)
    return line.total if line is not None else None


MARKET_EXTRACTORS: dict[Market, Extractor] = {
    Market.CORNERS: _stat_total(Market.CORNERS),
    Market.YELLOW_CARDS: _stat_total(Market.YELLOW_CARDS),
    Market.SHOTS_ON_TARGET: _stat_total(Market.SHOTS_ON_TARGET),
    Market.SHOTS_TOTAL: _stat_total(Market.SHOTS_TOTAL),
    Market.GOALS: _goals,
}


def extract_actual_value(market: Market, result: Union[EventResult, PlayerResult]) -> float:
    """
    Actual value for a market: the match total for team markets, the
    player's line for props. Raises UnsupportedMarket if the stat was
    not reported or the result is of the wrong kind.
    """
    if market.is_player:
        if not isinstance(result, PlayerResult):
            raise UnsupportedMarket(market.value, detail="Player market needs a player result")
        value = result.stats.get(market)
        if value is None:
            raise UnsupportedMarket(
                market.value,
                detail=f"Player {result.player_id} in game {result.game_id} has no stat",
            )
        return value

    extractor = MARKET_EXTRACTORS.get(market)
    if extractor is None or not isinstance(result, EventResult):
        raise UnsupportedMarket(market.value)
    value = extractor(result)
    if value is None:
        raise UnsupportedMarket(market.value, detail=f"Result {result.event_id} has no stat")
    return value


def resolve_outcome(side: Side, line: float, actual: float) -> Outcome:
    """Over wins above the line, under wins below it, equality pushes."""
    if actual == line:
        return Outcome.PUSH
    if side is Side.OVER:
        return Outcome.WON if actual > line else Outcome.LOST
    return Outcome.WON if actual < line else Outcome.LOST
