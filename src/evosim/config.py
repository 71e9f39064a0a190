"""Simulation settings loaded from the environment.

Every engine parameter can be overridden with an ``EVOSIM_``-prefixed
environment variable or a ``.env`` file, e.g. ``EVOSIM_TRIBUTE_SURVIVORS=8``.
Invalid values are rejected when the settings are loaded, before any engine
is built.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

MIN_TICK_INTERVAL_MS = 50
MAX_TICK_INTERVAL_MS = 3000


class SimulationSettings(BaseSettings):
    """Engine and controller parameters for both simulations.

    Environment Variables:
        EVOSIM_COLOR_POPULATION_SIZE: Color population size (default: 20)
        EVOSIM_COLOR_MUTATION_RATE: Per-channel mutation probability (default: 0.1)
        EVOSIM_COLOR_MUTATION_SPAN: Width of the color perturbation (default: 60)
        EVOSIM_TOURNAMENT_SIZE: Candidates per tournament (default: 3)
        EVOSIM_TRIBUTE_POPULATION_SIZE: Tributes per generation (default: 24)
        EVOSIM_TRIBUTE_SURVIVORS: Tributes left alive before breeding (default: 12)
        EVOSIM_TRIBUTE_MUTATION_RATE: Per-trait mutation probability (default: 0.15)
        EVOSIM_TRIBUTE_MUTATION_SPAN: Width of the trait perturbation (default: 40)
        EVOSIM_LUCK_MAX: Upper bound of the contest luck term (default: 30)
        EVOSIM_BATTLE_LOG_SIZE: Contests kept in the rolling log (default: 5)
        EVOSIM_STATS_HISTORY_SIZE: Generations of stats kept (default: 100)
        EVOSIM_COLOR_TICK_INTERVAL_MS: Color timer interval (default: 200)
        EVOSIM_TRIBUTE_TICK_INTERVAL_MS: Tribute timer interval (default: 800)
        EVOSIM_SEED: Seed for reproducible runs (default: unseeded)

    Example:
        >>> settings = SimulationSettings()  # Loads from environment
        >>> settings = SimulationSettings(tribute_survivors=6)
    """

    model_config = SettingsConfigDict(
        env_prefix="EVOSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Color simulation
    color_population_size: int = Field(default=20, ge=1, le=10000)
    color_mutation_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    color_mutation_span: float = Field(default=60.0, ge=0.0, le=255.0)
    tournament_size: int = Field(default=3, ge=1, le=100)

    # Tribute simulation
    tribute_population_size: int = Field(default=24, ge=2, le=10000)
    tribute_survivors: int = Field(default=12, ge=1)
    tribute_mutation_rate: float = Field(default=0.15, ge=0.0, le=1.0)
    tribute_mutation_span: float = Field(default=40.0, ge=0.0, le=100.0)
    luck_max: float = Field(default=30.0, ge=0.0)
    battle_log_size: int = Field(default=5, ge=0, le=1000)

    # Bookkeeping
    stats_history_size: int = Field(default=100, ge=1, le=100000)

    # Controller timing
    color_tick_interval_ms: int = Field(
        default=200, ge=MIN_TICK_INTERVAL_MS, le=MAX_TICK_INTERVAL_MS
    )
    tribute_tick_interval_ms: int = Field(
        default=800, ge=MIN_TICK_INTERVAL_MS, le=MAX_TICK_INTERVAL_MS
    )

    seed: int | None = Field(default=None, description="Seed for reproducible runs")

    @model_validator(mode="after")
    def check_survivors(self) -> SimulationSettings:
        """Survivors must leave room for at least one child per generation."""
        if self.tribute_survivors >= self.tribute_population_size:
            msg = (
                f"tribute_survivors ({self.tribute_survivors}) must be smaller than "
                f"tribute_population_size ({self.tribute_population_size})"
            )
            raise ValueError(msg)
        return self


@lru_cache
def get_settings() -> SimulationSettings:
    """Get cached settings singleton.

    To reload, call ``get_settings.cache_clear()`` first.
    """
    settings = SimulationSettings()
    logger.info("Loaded simulation settings: %s", settings.model_dump())
    return settings
