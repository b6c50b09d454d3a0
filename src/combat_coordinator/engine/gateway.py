"""Boundary between the transport layer and the combat sessions.

The gateway turns transport requests into intents and every outcome into a
response object. Rejections carry the error kind and the human-readable
reason verbatim; nothing is retried here, retry policy belongs to clients.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from combat_coordinator.core.exceptions import CombatCoordinatorError, ErrorKind
from combat_coordinator.core.logging import get_logger, request_context
from combat_coordinator.engine.directory import SessionDirectory
from combat_coordinator.engine.session import CombatSession
from combat_coordinator.models.enums import IntentKind
from combat_coordinator.models.events import Intent, SessionSnapshot, StateDelta


logger = get_logger(__name__)


class CombatRequest(BaseModel):
    """A client request as received by the transport layer.

    Attributes:
        session_id: Target session.
        participant_id: Participant the request is made for.
        kind: Intent kind.
        payload: Intent arguments.
        token: Optional idempotency token.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str = Field(min_length=1)
    participant_id: str | None = None
    kind: IntentKind
    payload: dict[str, Any] = Field(default_factory=dict)
    token: str | None = Field(default=None, min_length=1, max_length=128)

    def to_intent(self) -> Intent:
        """Build the intent submitted to the session."""
        return Intent(
            kind=self.kind,
            participant_id=self.participant_id,
            payload=self.payload,
            token=self.token,
        )


class CombatResponse(BaseModel):
    """Outcome of a request, returned to the transport layer.

    Attributes:
        accepted: Whether the intent was applied.
        delta: State delta of an accepted intent.
        snapshot: Resulting state, or the unchanged state on rejection.
        reason: Human-readable rejection reason.
        error_kind: Machine-readable rejection category.
        details: Structured rejection context.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    accepted: bool
    delta: StateDelta | None = None
    snapshot: SessionSnapshot | None = None
    reason: str | None = None
    error_kind: ErrorKind | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def accept(cls, delta: StateDelta) -> CombatResponse:
        """Response for an applied intent."""
        return cls(accepted=True, delta=delta, snapshot=delta.snapshot)

    @classmethod
    def reject(
        cls,
        error: CombatCoordinatorError,
        snapshot: SessionSnapshot | None = None,
    ) -> CombatResponse:
        """Response for a rejected intent."""
        return cls(
            accepted=False,
            snapshot=snapshot,
            reason=error.message,
            error_kind=error.kind,
            details=dict(error.details),
        )


class CombatGateway:
    """Routes requests to sessions and maps results to responses.

    Example:
        >>> gateway = CombatGateway(directory)
        >>> response = gateway.handle(CombatRequest(session_id="s1", kind="start_combat"))
        >>> response.accepted, response.error_kind
        (False, <ErrorKind.INVALID_PHASE: 'invalid_phase'>)
    """

    def __init__(self, directory: SessionDirectory) -> None:
        """Initialize the gateway.

        Args:
            directory: Directory used to look up sessions.
        """
        self.directory = directory

    def handle(self, request: CombatRequest) -> CombatResponse:
        """Apply a request and describe the outcome.

        Args:
            request: The transport request.

        Returns:
            Accepted response with the delta, or a rejection with the error
            kind and reason. Only CombatCoordinatorError is converted; any
            other exception propagates.
        """
        session: CombatSession | None = None
        with request_context(session_id=request.session_id, participant_id=request.participant_id):
            try:
                session = self.directory.get(request.session_id)
                delta = session.submit(request.to_intent())
            except CombatCoordinatorError as exc:
                logger.info("Request rejected", kind=request.kind, error_kind=exc.kind)
                return CombatResponse.reject(exc, session.snapshot() if session else None)
        return CombatResponse.accept(delta)

    def handle_raw(self, data: dict[str, Any]) -> CombatResponse:
        """Validate an untyped request mapping and handle it.

        Malformed requests are rejected with ``invalid_intent``.
        """
        try:
            request = CombatRequest.model_validate(data)
        except PydanticValidationError as exc:
            return CombatResponse(
                accepted=False,
                reason=f"Malformed request: {exc.errors()[0]['msg']}",
                error_kind=ErrorKind.INVALID_INTENT,
                details={"errors": [e["msg"] for e in exc.errors()]},
            )
        return self.handle(request)


__all__ = [
    "CombatRequest",
    "CombatResponse",
    "CombatGateway",
]
