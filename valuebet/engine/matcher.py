"""
Cross-source Entity Matcher.

Reconciles the same fixture described by two providers that spell
teams differently ("Man United" vs "Manchester United FC").

Similarity between normalized names:
- exact equality        -> 1.0
- one contains the other -> 0.9
- otherwise             -> 1 - levenshtein / max(len)
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog
from rapidfuzz.distance import Levenshtein

from valuebet.errors import EntityMismatch
from valuebet.models.schemas import Entity, EventRecord, MatchReport, MatchResult

logger = structlog.get_logger()


# Organizational tokens dropped from either end of a name
ORGANIZATIONAL_SUFFIXES = frozenset({
    "fc", "sc", "cf", "afc", "bfc", "cfc",
    "united", "city", "town", "athletic",
    "rovers", "wanderers", "albion",
})

CONTAINMENT_SIMILARITY = 0.9

_APOSTROPHES = re.compile(r"[.'’`]")
_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class MatchOptions:
    """Thresholds for declaring two records the same fixture."""

    min_similarity: float = 0.7
    date_window_hours: float = 24.0
    league_threshold: float = 0.5
    min_confidence: float = 0.8
    aliases: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings) -> "MatchOptions":
        """Build from config.settings.MatcherSettings."""
        return cls(
            min_similarity=settings.min_similarity,
            date_window_hours=settings.date_window_hours,
            league_threshold=settings.league_threshold,
            min_confidence=settings.min_confidence,
            aliases=dict(settings.team_aliases),
        )


def normalize_name(name: str) -> str:
    """
    Canonical comparison form of a team or league name.

    Lowercases, folds accents, strips punctuation, collapses whitespace
    and drops organizational tokens from either end while at least one
    token remains ("Arsenal FC" -> "arsenal").
    """
    text = unicodedata.normalize("NFKD", name or "")
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.lower().strip()
    text = _APOSTROPHES.sub("", text)
    text = _PUNCTUATION.sub(" ", text)
    tokens = _WHITESPACE.sub(" ", text).strip().split(" ")
    tokens = [t for t in tokens if t]

    while len(tokens) > 1 and tokens[-1] in ORGANIZATIONAL_SUFFIXES:
        tokens.pop()
    while len(tokens) > 1 and tokens[0] in ORGANIZATIONAL_SUFFIXES:
        tokens.pop(0)
    return " ".join(tokens)


def _alias_table(aliases: dict[str, str]) -> dict[str, str]:
    return {k.strip().lower(): v for k, v in aliases.items()}


def similarity(a: str, b: str) -> float:
    """Similarity of two already-normalized names in [0, 1]."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return CONTAINMENT_SIMILARITY
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


class EntityMatcher:
    """
    Matches event records across data sources.

    Pure: every method is a function of its inputs and options.
    """

    def __init__(self, options: Optional[MatchOptions] = None):
        self.options = options or MatchOptions()
        self.logger = logger.bind(component="entity_matcher")
        self._aliases = _alias_table(self.options.aliases)

    # =========================================================================
    # Names
    # =========================================================================

    def canonical_name(self, entity: Entity, aliases: Optional[dict[str, str]] = None) -> str:
        """Apply the alias table (the constructor's unless given), then normalize."""
        table = self._aliases if aliases is None else _alias_table(aliases)
        for raw in (entity.name, entity.short_name):
            if raw and raw.strip().lower() in table:
                return normalize_name(table[raw.strip().lower()])
        return normalize_name(entity.name or entity.short_name or "")

    def team_similarity(self, a: Entity, b: Entity, aliases: Optional[dict[str, str]] = None) -> float:
        return similarity(self.canonical_name(a, aliases), self.canonical_name(b, aliases))

    # =========================================================================
    # Matching
    # =========================================================================

    def match(
        self,
        record_a: EventRecord,
        record_b: EventRecord,
        options: Optional[MatchOptions] = None,
    ) -> MatchResult:
        """
        Decide whether two records describe the same fixture.

        Per-call options replace the constructor's, aliases included.
        """
        opts = options or self.options
        aliases = None if options is None else options.aliases
        home_sim = self.team_similarity(record_a.home, record_b.home, aliases)
        away_sim = self.team_similarity(record_a.away, record_b.away, aliases)
        confidence = (home_sim + away_sim) / 2

        result = MatchResult(
            matched=False,
            confidence=confidence,
            home_similarity=home_sim,
            away_similarity=away_sim,
        )

        if home_sim < opts.min_similarity or away_sim < opts.min_similarity:
            result.reason = "Team names do not match"
            return result

        if record_a.date is not None and record_b.date is not None:
            diff_hours = abs((record_a.date - record_b.date).total_seconds()) / 3600
            result.date_diff_hours = diff_hours
            if diff_hours > opts.date_window_hours:
                result.reason = f"Dates too far apart ({diff_hours:.1f} hours)"
                return result

        if record_a.league and record_b.league:
            league_sim = similarity(normalize_name(record_a.league), normalize_name(record_b.league))
            result.league_similarity = league_sim
            if league_sim <= opts.league_threshold:
                result.reason = "Leagues do not match"
                return result

        result.matched = True
        return result

    def find_matching_event(
        self,
        target: EventRecord,
        candidates: Sequence[EventRecord],
        min_confidence: Optional[float] = None,
    ) -> Optional[tuple[EventRecord, MatchResult]]:
        """Highest-confidence candidate at or above min_confidence, or None."""
        ranked = self.find_all_matching_events(target, candidates, min_confidence)
        return ranked[0] if ranked else None

    def find_all_matching_events(
        self,
        target: EventRecord,
        candidates: Sequence[EventRecord],
        min_confidence: Optional[float] = None,
    ) -> list[tuple[EventRecord, MatchResult]]:
        """Every matching candidate at or above min_confidence, best first."""
        threshold = self.options.min_confidence if min_confidence is None else min_confidence
        matches = []
        for candidate in candidates:
            result = self.match(target, candidate)
            if result.matched and result.confidence >= threshold:
                matches.append((candidate, result))
        # Stable sort keeps provider order among equal confidences
        matches.sort(key=lambda m: m[1].confidence, reverse=True)
        return matches

    def match_multiple_events(
        self,
        targets: Sequence[EventRecord],
        candidates: Sequence[EventRecord],
        min_confidence: Optional[float] = None,
    ) -> list[MatchReport]:
        """Match each target against the candidate list."""
        reports = []
        for target in targets:
            found = self.find_matching_event(target, candidates, min_confidence)
            if found is None:
                reports.append(MatchReport(
                    original=target,
                    matched=None,
                    reason="No matching event found",
                ))
                continue
            event, result = found
            reports.append(MatchReport(
                original=target,
                matched=event,
                confidence=result.confidence,
                result=result,
            ))

        matched = sum(1 for r in reports if r.matched is not None)
        self.logger.info(
            "Bulk match complete",
            targets=len(targets),
            matched=matched,
            unmatched=len(targets) - matched,
        )
        return reports

    def require_match(
        self,
        target: EventRecord,
        candidates: Sequence[EventRecord],
        min_confidence: Optional[float] = None,
    ) -> tuple[EventRecord, MatchResult]:
        """Like find_matching_event but raises EntityMismatch when nothing qualifies."""
        found = self.find_matching_event(target, candidates, min_confidence)
        if found is None:
            raise EntityMismatch(f"No matching event found for {target.get_display_name()}")
        return found
