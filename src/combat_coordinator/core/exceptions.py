"""Custom exception hierarchy for the combat coordinator.

This module defines the exception hierarchy used across the engine. All
exceptions inherit from CombatCoordinatorError and carry an ErrorKind, so the
transport boundary can turn any rejection into a typed response without
inspecting exception classes.

Example:
    >>> from combat_coordinator.core.exceptions import OutOfTurnError
    >>> raise OutOfTurnError("Not your turn", participant_id="street-sam")
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar


class ErrorKind(StrEnum):
    """Machine-readable error categories surfaced to clients."""

    NOT_FOUND = "not_found"
    INVALID_PLANE = "invalid_plane"
    OUT_OF_TURN = "out_of_turn"
    ACTION_UNAVAILABLE = "action_unavailable"
    CONFLICT = "conflict"
    INVALID_PHASE = "invalid_phase"
    INVALID_INTENT = "invalid_intent"
    CONFIGURATION = "configuration"
    STORAGE = "storage"
    INTERNAL = "internal"


class CombatCoordinatorError(Exception):
    """Base exception for all combat coordinator errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
        kind: Error category reported to clients.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception.

        Returns:
            String representation suitable for debugging.
        """
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Combat Domain Exceptions
# =============================================================================


class CombatError(CombatCoordinatorError):
    """Base exception for rejected combat intents.

    Raised when an intent cannot be applied to a combat session. The session
    state is left exactly as it was before the intent.
    """

    def __init__(
        self,
        message: str,
        *,
        participant_id: str | None = None,
        round_number: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize combat error with combat context.

        Args:
            message: Human-readable error description.
            participant_id: Identifier of the participant involved.
            round_number: Current combat round when the error occurred.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if participant_id:
            combined_details["participant_id"] = participant_id
        if round_number is not None:
            combined_details["round_number"] = round_number
        super().__init__(message, details=combined_details)


class NotFoundError(CombatError):
    """Raised when a participant, session or record does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        participant_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize not-found error with the missing resource type.

        Args:
            message: Human-readable error description.
            resource: Kind of resource that was looked up ("participant", "session").
            participant_id: Identifier of the participant involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if resource:
            combined_details["resource"] = resource
        super().__init__(message, participant_id=participant_id, details=combined_details)


class InvalidPlaneError(CombatError):
    """Raised when a participant acts or rolls in a plane it is not present in."""

    kind = ErrorKind.INVALID_PLANE

    def __init__(
        self,
        message: str,
        *,
        plane: str | None = None,
        participant_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid plane error.

        Args:
            message: Human-readable error description.
            plane: The plane that was requested.
            participant_id: Identifier of the participant involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if plane:
            combined_details["plane"] = str(plane)
        super().__init__(message, participant_id=participant_id, details=combined_details)


class OutOfTurnError(CombatError):
    """Raised when a participant acts while it is not the acting participant.

    Free actions, interrupts and held actions are exempt.
    """

    kind = ErrorKind.OUT_OF_TURN


class ActionUnavailableError(CombatError):
    """Raised when the action budget cannot cover the requested action."""

    kind = ErrorKind.ACTION_UNAVAILABLE

    def __init__(
        self,
        message: str,
        *,
        action_kind: str | None = None,
        participant_id: str | None = None,
        round_number: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize action unavailable error.

        Args:
            message: Human-readable error description.
            action_kind: The action kind that was refused.
            participant_id: Identifier of the participant involved.
            round_number: Current combat round.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if action_kind:
            combined_details["action_kind"] = str(action_kind)
        super().__init__(
            message,
            participant_id=participant_id,
            round_number=round_number,
            details=combined_details,
        )


class ConflictError(CombatError):
    """Raised on duplicate identifiers or reused idempotency tokens."""

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str,
        *,
        token: str | None = None,
        participant_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize conflict error.

        Args:
            message: Human-readable error description.
            token: The idempotency token that was reused, if any.
            participant_id: Identifier of the participant involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if token:
            combined_details["token"] = token
        super().__init__(message, participant_id=participant_id, details=combined_details)


class InvalidPhaseError(CombatError):
    """Raised when an intent is not allowed in the session's current phase."""

    kind = ErrorKind.INVALID_PHASE

    def __init__(
        self,
        message: str,
        *,
        current_phase: str | None = None,
        expected_phases: list[str] | None = None,
        participant_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid phase error with phase context.

        Args:
            message: Human-readable error description.
            current_phase: The phase the session is in.
            expected_phases: Phases in which the intent would be legal.
            participant_id: Identifier of the participant involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if current_phase:
            combined_details["current_phase"] = str(current_phase)
        if expected_phases:
            combined_details["expected_phases"] = [str(p) for p in expected_phases]
        super().__init__(message, participant_id=participant_id, details=combined_details)


# =============================================================================
# Event Log Exceptions
# =============================================================================


class EventLogError(CombatCoordinatorError):
    """Raised when the append-only log would be broken.

    This covers out-of-sequence appends and replays from before the log start.
    """

    def __init__(
        self,
        message: str,
        *,
        sequence: int | None = None,
        expected_sequence: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize event log error with sequence context.

        Args:
            message: Human-readable error description.
            sequence: The sequence number that was offered.
            expected_sequence: The sequence number the log expected.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if sequence is not None:
            combined_details["sequence"] = sequence
        if expected_sequence is not None:
            combined_details["expected_sequence"] = expected_sequence
        super().__init__(message, details=combined_details)


class ReplayError(EventLogError):
    """Raised when replaying events does not reproduce the recorded state."""


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(CombatCoordinatorError):
    """Raised when application configuration is invalid."""

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(CombatCoordinatorError):
    """Raised when an intent payload or mutation fails validation."""

    kind = ErrorKind.INVALID_INTENT

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error with field context.

        Args:
            message: Human-readable error description.
            field_name: Name of the field that failed validation.
            invalid_value: The value that failed validation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


# =============================================================================
# Storage Exceptions
# =============================================================================


class StorageError(CombatCoordinatorError):
    """Raised when the event store cannot read or write a session."""

    kind = ErrorKind.STORAGE

    def __init__(
        self,
        message: str,
        *,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize storage error with session context.

        Args:
            message: Human-readable error description.
            session_id: The session whose records were involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if session_id:
            combined_details["session_id"] = session_id
        super().__init__(message, details=combined_details)


__all__ = [
    "ErrorKind",
    # Base exception
    "CombatCoordinatorError",
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
]
