"""
Configuration settings for the value-bet engine.
Uses pydantic-settings for validation and environment variable loading.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EstimatorSettings(BaseSettings):
    """Probability estimator hyperparameters."""

    # Recency weighting: most recent sample weight 1.0, then 0.9, 0.81, ...
    decay_factor: float = 0.9

    # Target probability band for candidate lines (inclusive)
    probability_band: tuple[float, float] = (0.58, 0.62)

    # Line search grid
    line_step: float = 0.5
    search_width_sigmas: float = 2.0

    # Blend of recency-weighted and simple means (simple gets 1 - weighted_blend).
    # Empirical choice, not a derived constant.
    weighted_blend: float = 0.6

    # Markets with fewer combined samples are skipped in multi-market scans
    min_sample_size: int = 3

    @field_validator("decay_factor")
    @classmethod
    def _check_decay(cls, value: float) -> float:
        if not 0 < value <= 1:
            raise ValueError("decay_factor must be in (0, 1]")
        return value

    @field_validator("probability_band")
    @classmethod
    def _check_band(cls, value: tuple[float, float]) -> tuple[float, float]:
        low, high = value
        if not 0 < low <= high < 1:
            raise ValueError("probability_band must satisfy 0 < min <= max < 1")
        return value

    @field_validator("line_step")
    @classmethod
    def _check_step(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("line_step must be positive")
        return value

    @field_validator("weighted_blend")
    @classmethod
    def _check_blend(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("weighted_blend must be in [0, 1]")
        return value


class MatcherSettings(BaseSettings):
    """Cross-source entity matching thresholds."""

    min_similarity: float = 0.7       # Both team names must clear this
    date_window_hours: float = 24.0   # Max kickoff difference between sources
    league_threshold: float = 0.5     # League similarity must exceed this
    min_confidence: float = 0.8       # Bulk lookups ignore weaker matches

    # Deterministic overrides applied before normalization
    team_aliases: dict[str, str] = Field(default_factory=lambda: {
        # English Premier League
        # Both Manchester clubs normalize to "manchester"; keep their targets apart
        "Manchester United": "Manchester Utd",
        "Manchester United FC": "Manchester Utd",
        "Man United": "Manchester Utd",
        "Man Utd": "Manchester Utd",
        "Manchester City": "Man City Blues",
        "Manchester City FC": "Man City Blues",
        "Man City": "Man City Blues",
        "Spurs": "Tottenham Hotspur",
        "Tottenham": "Tottenham Hotspur",
        "Newcastle": "Newcastle United",
        "West Ham": "West Ham United",
        "Brighton": "Brighton & Hove Albion",
        "Wolves": "Wolverhampton Wanderers",
        "Nott'm Forest": "Nottingham Forest",
        # La Liga
        "Atlético": "Atletico Madrid",
        "Atleti": "Atletico Madrid",
        "Barça": "Barcelona",
        # Bundesliga
        "Bayern": "Bayern Munich",
        "Dortmund": "Borussia Dortmund",
        "Leverkusen": "Bayer Leverkusen",
        "Gladbach": "Borussia Monchengladbach",
        # Serie A
        "Inter": "Inter Milan",
        "Milan": "AC Milan",
        "Juve": "Juventus",
        "Roma": "AS Roma",
    })


class EVSettings(BaseSettings):
    """Expected-value evaluation settings."""

    min_ev: float = 0.0               # EV % the best quote must exceed
    unit_value: float = 1.0           # Currency value of one unit (4% of bankroll)

    # Books we can actually bet at. Empty = every quoted book is playable.
    playable_bookmakers: list[str] = Field(default_factory=list)


class QuotaSettings(BaseSettings):
    """Result-provider call budget."""

    max_calls_per_day: int = 500
    max_calls_per_hour: int = 100
    min_delay_between_calls_ms: int = 1000

    cache_expiry_hours: float = 24.0
    history_limit: int = 100


class VerificationSettings(BaseSettings):
    """Result verification settings."""

    # Gap between bulk verification calls (never below 500ms)
    bulk_delay_ms: int = 1000

    # Only verify predictions this long after kickoff
    min_hours_after_kickoff: float = 2.0

    # Result provider (event view endpoint)
    result_api_url: str = "https://api.b365api.com/v1"
    result_api_key: str = Field(default="", description="Result provider API token")
    timeout_seconds: float = 15.0

    # Player box-score endpoint (game_id + player_id query); empty disables props
    player_stats_url: str = ""

    @field_validator("bulk_delay_ms")
    @classmethod
    def _check_bulk_delay(cls, value: int) -> int:
        return max(500, value)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore"
    )

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Persistence collaborator used by the CLI
    predictions_path: str = "predictions.json"

    # Sub-settings
    estimator: EstimatorSettings = Field(default_factory=EstimatorSettings)
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    ev: EVSettings = Field(default_factory=EVSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings


__all__: list[str] = [
    "EstimatorSettings",
    "MatcherSettings",
    "EVSettings",
    "QuotaSettings",
    "VerificationSettings",
    "Settings",
    "settings",
    "get_settings",
    "reload_settings",
]
