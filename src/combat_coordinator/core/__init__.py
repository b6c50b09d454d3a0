"""Core module providing configuration, logging, and base exceptions.

This module serves as the foundation for the combat coordinator, providing
essential infrastructure components used throughout the application.

Exports:
    Exceptions:
        CombatCoordinatorError: Base exception for all application errors.
        CombatError: Base for rejected combat intents.
        ConfigurationError: Configuration-related errors.
        ValidationError: Intent payload validation errors.

    Configuration:
        Settings: Main application settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up application logging.
        get_logger: Get a configured logger instance.
        request_context: Bind request context to log entries.
"""

from __future__ import annotations

from combat_coordinator.core.config import (
    CombatSettings,
    Settings,
    StorageSettings,
    clear_settings_cache,
    get_settings,
)
from combat_coordinator.core.exceptions import (
    ActionUnavailableError,
    CombatCoordinatorError,
    CombatError,
    ConfigurationError,
    ConflictError,
    ErrorKind,
    EventLogError,
    InvalidPhaseError,
    InvalidPlaneError,
    NotFoundError,
    OutOfTurnError,
    ReplayError,
    StorageError,
    ValidationError,
)
from combat_coordinator.core.logging import (
    configure_logging,
    get_logger,
    request_context,
)


__all__ = [
    # Base exception
    "CombatCoordinatorError",
    "ErrorKind",
    # Combat exceptions
    "CombatError",
    "NotFoundError",
    "InvalidPlaneError",
    "OutOfTurnError",
    "ActionUnavailableError",
    "ConflictError",
    "InvalidPhaseError",
    # Event log exceptions
    "EventLogError",
    "ReplayError",
    # Configuration exceptions
    "ConfigurationError",
    "ValidationError",
    # Storage exceptions
    "StorageError",
    # Configuration
    "Settings",
    "CombatSettings",
    "StorageSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "get_logger",
    "request_context",
]
