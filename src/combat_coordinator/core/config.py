"""Configuration management for the combat coordinator.

This module provides centralized configuration management using
pydantic-settings, supporting environment variables, .env files, and runtime
overrides.

Example:
    >>> from combat_coordinator.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.combat.plane_order
    (<Plane.PHYSICAL: 'physical'>, <Plane.ASTRAL: 'astral'>, <Plane.MATRIX: 'matrix'>)

Environment Variables:
    COMBAT_COORDINATOR_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    COMBAT_COORDINATOR_LOG_JSON: Emit JSON log lines
    COMBAT_COORDINATOR_COMBAT_PLANE_ORDER: JSON list of planes in resolution order
    COMBAT_COORDINATOR_COMBAT_SIMPLE_ACTIONS: Simple actions per turn
    COMBAT_COORDINATOR_STORAGE_DATABASE_PATH: Path to the SQLite event store
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from combat_coordinator.core.constants import (
    DEFAULT_COMPLEX_ACTIONS,
    DEFAULT_FREE_ACTIONS,
    DEFAULT_INTERRUPT_ACTIONS,
    DEFAULT_SIMPLE_ACTIONS,
    DEFAULT_SNAPSHOT_INTERVAL,
    MAX_INITIATIVE_PASSES,
)
from combat_coordinator.core.exceptions import ConfigurationError
from combat_coordinator.models.actions import ActionAllotment
from combat_coordinator.models.enums import PLANE_ORDER, Plane


class CombatSettings(BaseSettings):
    """Configuration for turn order and the action economy.

    Attributes:
        plane_order: Order in which planes are resolved within a pass.
        simple_actions: Simple actions granted at the start of a turn.
        complex_actions: Complex actions granted at the start of a turn.
        free_actions: Free actions per turn; None means unlimited.
        interrupt_actions: Interrupt opportunities per turn.
        allow_complex_exchange: Allow an unused complex action to be spent
            as an extra simple action.
        max_initiative_passes: Upper bound on passes per participant.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMBAT_COORDINATOR_COMBAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    plane_order: tuple[Plane, ...] = Field(
        default=PLANE_ORDER,
        description="Plane resolution order",
    )
    simple_actions: int = Field(
        default=DEFAULT_SIMPLE_ACTIONS,
        ge=0,
        le=10,
        description="Simple actions per turn",
    )
    complex_actions: int = Field(
        default=DEFAULT_COMPLEX_ACTIONS,
        ge=0,
        le=10,
        description="Complex actions per turn",
    )
    free_actions: int | None = Field(
        default=DEFAULT_FREE_ACTIONS,
        ge=0,
        description="Free actions per turn (None = unlimited)",
    )
    interrupt_actions: int = Field(
        default=DEFAULT_INTERRUPT_ACTIONS,
        ge=0,
        le=10,
        description="Interrupt opportunities per turn",
    )
    allow_complex_exchange: bool = Field(
        default=True,
        description="Trade an unused complex action for a simple one",
    )
    max_initiative_passes: int = Field(
        default=MAX_INITIATIVE_PASSES,
        ge=1,
        le=MAX_INITIATIVE_PASSES,
        description="Maximum initiative passes per round",
    )

    @field_validator("plane_order", mode="after")
    @classmethod
    def validate_plane_order(cls, value: tuple[Plane, ...]) -> tuple[Plane, ...]:
        """Ensure the plane order names each plane at most once.

        Args:
            value: The configured order.

        Returns:
            The validated order.

        Raises:
            ConfigurationError: If the order is empty or repeats a plane.
        """
        if not value:
            raise ConfigurationError(
                "plane_order must name at least one plane",
                config_key="plane_order",
            )
        if len(set(value)) != len(value):
            raise ConfigurationError(
                f"plane_order repeats a plane: {[str(p) for p in value]}",
                config_key="plane_order",
            )
        return value

    def allotment(self) -> ActionAllotment:
        """Build the base per-turn action allotment.

        Returns:
            ActionAllotment carrying the configured counts.
        """
        return ActionAllotment(
            simple=self.simple_actions,
            complex=self.complex_actions,
            free=self.free_actions,
            interrupt=self.interrupt_actions,
        )


class StorageSettings(BaseSettings):
    """Configuration for the event store.

    Attributes:
        database_path: Path to the SQLite database file.
        snapshot_interval: Events between persisted snapshots.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMBAT_COORDINATOR_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path("data/combat_coordinator.db"),
        description="Path to SQLite database",
    )
    snapshot_interval: int = Field(
        default=DEFAULT_SNAPSHOT_INTERVAL,
        ge=1,
        le=10_000,
        description="Events between snapshots",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Application logging level.
        log_json: Emit JSON log lines instead of console output.
        combat: Turn order and action economy settings.
        storage: Event store settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMBAT_COORDINATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(
        default="Combat Coordinator",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    combat: CombatSettings = Field(default_factory=CombatSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @model_validator(mode="after")
    def validate_debug_logging(self) -> "Settings":
        """Force DEBUG logging when debug mode is on.

        Returns:
            Self with the effective log level.
        """
        if self.debug and self.log_level != "DEBUG":
            object.__setattr__(self, "log_level", "DEBUG")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The application Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access."""
    get_settings.cache_clear()


__all__ = [
    "CombatSettings",
    "StorageSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
