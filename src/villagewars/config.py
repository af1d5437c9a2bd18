"""Application settings for the Village Wars server."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from villagewars.domain.rules_config import DEFAULT_RULES, RulesConfig, SpeedRules


class Settings(BaseSettings):
    """Server and game settings, overridable through ``VILLAGEWARS_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="VILLAGEWARS_", env_file=".env", env_file_encoding="utf-8"
    )

    data_dir: Path = Field(default=Path("worlds"), description="Where world snapshots live")
    storage_backend: Literal["json", "sql"] = Field(
        default="json", description="Snapshot store used by the API"
    )
    database_url: str = Field(
        default="sqlite:///villagewars.db", description="SQLAlchemy URL for the sql backend"
    )
    database_echo: bool = False
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_recycle: int = Field(default=3600, ge=-1)
    database_pool_timeout: int = Field(default=30, ge=1)
    log_level: str = Field(default="INFO", description="Root logging level")
    tick_interval_seconds: float = Field(
        default=60.0,
        description="Real-time seconds between automatic ticks when scheduling is enabled",
        gt=0.0,
    )
    debug_tick_speed_multiplier: float = Field(
        default=1.0,
        description="Multiplier applied to the tick interval in development",
        gt=0.0,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed to call the HTTP API",
    )

    resource_production_rate: float = Field(default=1.0, gt=0.0)
    building_time_multiplier: float = Field(default=1.0, gt=0.0)
    training_time_multiplier: float = Field(default=1.0, gt=0.0)
    movement_speed_multiplier: float = Field(default=1.0, gt=0.0)

    def build_rules(self, base: RulesConfig = DEFAULT_RULES) -> RulesConfig:
        """Return ``base`` with the speed knobs from these settings applied."""

        speed = SpeedRules(
            resource_production_rate=self.resource_production_rate,
            building_time_multiplier=self.building_time_multiplier,
            training_time_multiplier=self.training_time_multiplier,
            movement_speed_multiplier=self.movement_speed_multiplier,
        )
        return base.with_speed(speed)


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings
