"""
Configuration management for knightrank.

Settings come from environment variables (prefixed ``KNIGHTRANK_``) with
defaults sized for a small ladder. The rating constants live here too, so a
deployment or a test run can override them without code changes.

Usage:
    from knightrank.config import settings
    print(settings.database_url)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knightrank.elo import constants


class Settings(BaseSettings):
    """
    Ladder settings.

    Every field can be set as KNIGHTRANK_<FIELD> in the environment or in a
    .env file next to where the scripts are run.
    """

    model_config = SettingsConfigDict(
        env_prefix="KNIGHTRANK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///knightrank.db",
        description="SQLAlchemy connection URL (SQLite file or PostgreSQL)",
    )

    # Pool settings (ignored for SQLite, which uses its own pooling)
    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    # ==========================================================================
    # Rating Configuration
    # ==========================================================================

    k_factor: int = Field(
        default=constants.K_FACTOR,
        description="Elo K-factor (rating volatility per match)",
    )
    starting_rating: int = Field(
        default=constants.STARTING_RATING,
        description="Rating assigned to newly added players",
    )
    inactivity_threshold_days: int = Field(
        default=constants.INACTIVITY_THRESHOLD_DAYS,
        description="Days without a match before decay starts",
    )
    decay_points_per_period: int = Field(
        default=constants.DECAY_POINTS_PER_PERIOD,
        description="Points lost per started decay period",
    )
    decay_period_days: int = Field(
        default=constants.DECAY_PERIOD_DAYS,
        description="Length of a decay period in days",
    )
    absolute_minimum_rating: int = Field(
        default=constants.ABSOLUTE_MINIMUM_RATING,
        description="Hard floor decay never crosses",
    )
    max_weekly_bonus: int = Field(
        default=constants.MAX_WEEKLY_BONUS,
        description="Cap on the per-player activity bonus of one decay run",
    )

    # ==========================================================================
    # Transaction Configuration
    # ==========================================================================

    match_max_retries: int = Field(
        default=3,
        description="Attempts for a match transaction that hits a concurrent write",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("match_max_retries", "decay_period_days")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """Read once per process; ``get_settings.cache_clear()`` forces a reload."""
    return Settings()


settings = get_settings()
