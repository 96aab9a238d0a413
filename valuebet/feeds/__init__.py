"""
Provider interfaces and clients.

- base: protocols for stats, odds, result and persistence collaborators
- results_api: HTTP client for the match result provider
"""

from valuebet.feeds.base import OddsProvider, PredictionStore, ResultProvider, StatsProvider
from valuebet.feeds.results_api import HttpResultProvider, ResultAPIConfig, parse_event_view

__all__ = [
    "OddsProvider",
    "PredictionStore",
    "ResultProvider",
    "StatsProvider",
    "HttpResultProvider",
    "ResultAPIConfig",
    "parse_event_view",
]
