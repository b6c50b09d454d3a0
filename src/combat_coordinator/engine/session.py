"""Combat session: the single serialization point of one encounter.

A session composes the participant registry, the per-plane initiative track
and the action ledger. Every intent is validated and applied under the
session lock; on success the normalised intent is appended to the event log
together with the checksum of the resulting snapshot, on failure the state
is restored from a checkpoint taken before the intent, so nothing is ever
partially applied.

Clients never mutate state directly. They submit intents and receive a
StateDelta or a typed CombatError.
"""

from __future__ import annotations

import secrets
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from combat_coordinator.core.config import CombatSettings, get_settings
from combat_coordinator.core.constants import SEED_BITS
from combat_coordinator.core.exceptions import (
    CombatCoordinatorError,
    ConflictError,
    InvalidPhaseError,
    InvalidPlaneError,
    OutOfTurnError,
    ReplayError,
    ValidationError,
)
from combat_coordinator.core.logging import get_logger
from combat_coordinator.engine.event_log import EventLog
from combat_coordinator.engine.initiative import PLANE_EXHAUSTED, InitiativeTrack
from combat_coordinator.engine.ledger import ActionLedger
from combat_coordinator.engine.registry import ParticipantRegistry
from combat_coordinator.models.actions import ActionBudget
from combat_coordinator.models.enums import (
    CombatPhase,
    IntentKind,
    NotificationKind,
    Plane,
)
from combat_coordinator.models.events import (
    ActionPayload,
    ConditionRemovalPayload,
    EmptyPayload,
    Event,
    Intent,
    Notification,
    PlanePayload,
    RollInitiativePayload,
    SessionSnapshot,
    StateDelta,
)
from combat_coordinator.models.initiative import CombatRound, InitiativeEntry
from combat_coordinator.models.participant import Participant, StatusCondition


logger = get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)
CommitHook = Callable[[Event, SessionSnapshot], None]
Outcome = tuple[dict[str, Any], list[Notification]]


def _default_seed() -> int:
    return secrets.randbits(SEED_BITS)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CombatSession:
    """Aggregate state machine of one combat encounter.

    Attributes:
        session_id: Identifier of the session.
        settings: Turn order and action economy settings.
        registry: Participants of the encounter.
        track: Per-plane initiative track.
        ledger: Action budgets.

    Example:
        >>> session = CombatSession("s1")
        >>> session.submit(Intent(kind=IntentKind.ADD_PARTICIPANT,
        ...                       payload={"id": "sam", "name": "Sam"}))
        >>> session.submit(Intent(kind=IntentKind.ROLL_INITIATIVE, participant_id="sam",
        ...                       payload={"plane": "physical", "score": 12}))
        >>> delta = session.submit(Intent(kind=IntentKind.START_COMBAT))
        >>> delta.combat_round.acting_participant_id
        'sam'
    """

    def __init__(
        self,
        session_id: str | None = None,
        *,
        settings: CombatSettings | None = None,
        clock: Callable[[], datetime] = _utcnow,
        seed_source: Callable[[], int] = _default_seed,
        on_commit: CommitHook | None = None,
        start_sequence: int = 0,
    ) -> None:
        """Initialize an empty session in the setup phase.

        Args:
            session_id: Identifier, generated when omitted.
            settings: Combat settings; defaults to the application settings.
            clock: Source of event timestamps.
            seed_source: Source of tie-break seeds for rolls without one.
            on_commit: Called with each event and its snapshot before the
                event joins the log. If it raises, the intent is rolled back.
            start_sequence: Sequence number of the first event.
        """
        self.session_id = session_id or uuid4().hex
        self.settings = settings or get_settings().combat
        self._clock = clock
        self._seed_source = seed_source
        self._on_commit = on_commit
        self._lock = threading.RLock()
        self._logger = logger.bind(session_id=self.session_id)

        self.registry = ParticipantRegistry()
        self.track = InitiativeTrack(
            self.registry,
            self.settings.plane_order,
            max_passes=self.settings.max_initiative_passes,
        )
        self.ledger = ActionLedger(
            self.registry,
            self.settings.allotment(),
            allow_complex_exchange=self.settings.allow_complex_exchange,
        )
        self.registry.add_removal_listener(self.track.purge)
        self.registry.add_removal_listener(self.ledger.purge)
        self._log = EventLog(start_sequence)

        self._phase = CombatPhase.SETUP
        self._acting: str | None = None
        self._turn_key: tuple[Any, ...] | None = None
        self._receipts: dict[str, str] = {}
        self._token_sequences: dict[str, int] = {}

        self._handlers: dict[IntentKind, Callable[[Intent], Outcome]] = {
            IntentKind.ADD_PARTICIPANT: self._add_participant,
            IntentKind.REMOVE_PARTICIPANT: self._remove_participant,
            IntentKind.UPDATE_PARTICIPANT: self._update_participant,
            IntentKind.ENTER_PLANE: self._enter_plane,
            IntentKind.LEAVE_PLANE: self._leave_plane,
            IntentKind.ADD_CONDITION: self._add_condition,
            IntentKind.REMOVE_CONDITION: self._remove_condition,
            IntentKind.ROLL_INITIATIVE: self._roll_initiative,
            IntentKind.START_COMBAT: self._start_combat,
            IntentKind.DECLARE_ACTION: self._declare_action,
            IntentKind.RESERVE_ACTION: self._reserve_action,
            IntentKind.USE_RESERVED: self._use_reserved,
            IntentKind.END_TURN: self._end_turn,
            IntentKind.END_COMBAT: self._end_combat,
        }

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def phase(self) -> CombatPhase:
        """Current lifecycle phase."""
        return self._phase

    @property
    def combat_round(self) -> CombatRound:
        """Current round, pass, active plane and acting participant."""
        with self._lock:
            return CombatRound(
                round_number=self.track.round_number,
                pass_number=self.track.pass_number,
                active_plane=self.track.active_plane,
                acting_participant_id=self._acting,
            )

    @property
    def event_log(self) -> EventLog:
        """The session's append-only event log."""
        return self._log

    def acting_participant(self) -> Participant | None:
        """Participant whose turn it is, if any."""
        with self._lock:
            return self.registry.get(self._acting) if self._acting else None

    def on_deck(self) -> str | None:
        """Participant expected to act after the current one in this pass."""
        with self._lock:
            if self._acting is None or self.track.active_plane is None:
                return None
            active = self.track.active_plane
            planes = [active] + [p for p in self.track.plane_order if p != active]
            for plane in planes:
                for entry in self.track.remaining(plane):
                    if entry.participant_id == self._acting and plane == active:
                        continue
                    if not self.registry.get(entry.participant_id).incapacitated:
                        return entry.participant_id
            return None

    def initiative_order(self, plane: Plane) -> list[InitiativeEntry]:
        """Entries of a plane from first to last to act."""
        with self._lock:
            return self.track.order(plane)

    def remaining_initiatives(self, plane: Plane) -> list[InitiativeEntry]:
        """Entries of a plane still to act in the current pass."""
        with self._lock:
            return self.track.remaining(plane)

    def missing_initiatives(self) -> dict[Plane, list[str]]:
        """Per plane, participants present there that have not rolled."""
        with self._lock:
            missing = {plane: self.track.missing(plane) for plane in self.track.plane_order}
            return {plane: ids for plane, ids in missing.items() if ids}

    def budget(self, participant_id: str) -> ActionBudget:
        """Current action budget of a participant."""
        with self._lock:
            return self.ledger.budget(participant_id)

    def snapshot(self) -> SessionSnapshot:
        """Deterministic snapshot of the whole session."""
        with self._lock:
            return self._build_snapshot(self._log.last_sequence)

    def _build_snapshot(self, last_sequence: int) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            phase=self._phase,
            combat_round=self.combat_round,
            plane_order=self.track.plane_order,
            participants=tuple(sorted(self.registry.all(), key=lambda p: p.id)),
            initiative=tuple(self.track.entries()),
            acted=self.track.acted_map(),
            budgets=tuple(self.ledger.budgets()),
            receipts=dict(sorted(self._receipts.items())),
            last_sequence=last_sequence,
        )

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, intent: Intent) -> StateDelta:
        """Validate and apply one intent.

        Args:
            intent: The client request.

        Returns:
            StateDelta with the new snapshot and derived notifications. A
            resubmitted idempotency token returns the original delta flagged
            as a duplicate.

        Raises:
            CombatError: If the intent is rejected. The session is unchanged.
            ValidationError: If the intent payload is malformed.
        """
        with self._lock:
            fingerprint = intent.fingerprint()
            if intent.token is not None and intent.token in self._receipts:
                return self._duplicate(intent, fingerprint)

            checkpoint = self._build_snapshot(self._log.last_sequence)
            try:
                payload, notifications = self._apply(intent, fingerprint)
                sequence = self._log.next_sequence
                snapshot = self._build_snapshot(sequence)
                event = self._log.build(
                    intent.kind,
                    self._event_payload(intent, payload, fingerprint),
                    checksum=snapshot.checksum(),
                    timestamp=self._clock(),
                )
                # The event only joins the log once the hook has accepted it
                if self._on_commit is not None:
                    self._on_commit(event, snapshot)
                self._log.append(event)
            except CombatCoordinatorError as exc:
                self._load(checkpoint)
                self._logger.info(
                    "Intent rejected",
                    kind=str(intent.kind),
                    participant_id=intent.participant_id,
                    error_kind=str(exc.kind),
                    reason=exc.message,
                )
                raise
            except Exception:
                self._load(checkpoint)
                raise

            delta = StateDelta(
                sequence=event.sequence,
                combat_round=snapshot.combat_round,
                phase=snapshot.phase,
                notifications=tuple(notifications),
                snapshot=snapshot,
            )
            if intent.token is not None:
                self._token_sequences[intent.token] = event.sequence
            self._logger.info(
                "Intent applied",
                kind=str(intent.kind),
                participant_id=intent.participant_id,
                sequence=event.sequence,
                round=snapshot.combat_round.round_number,
            )
        return delta

    def _duplicate(self, intent: Intent, fingerprint: str) -> StateDelta:
        token = intent.token or ""
        if self._receipts[token] != fingerprint:
            raise ConflictError(
                "Idempotency token reused with a different intent",
                token=token,
                participant_id=intent.participant_id,
            )
        snapshot = self._build_snapshot(self._log.last_sequence)
        sequence = self._token_sequences.get(token, max(self._log.last_sequence, 0))
        return StateDelta(
            sequence=sequence,
            combat_round=snapshot.combat_round,
            phase=snapshot.phase,
            snapshot=snapshot,
            duplicate=True,
        )

    @staticmethod
    def _event_payload(intent: Intent, payload: dict[str, Any], fingerprint: str) -> dict[str, Any]:
        return {
            "participant_id": payload.pop("_participant_id", intent.participant_id),
            "payload": payload,
            "token": intent.token,
            "fingerprint": fingerprint,
        }

    def _apply(self, intent: Intent, fingerprint: str) -> Outcome:
        handler = self._handlers[intent.kind]
        payload, notifications = handler(intent)
        if self._phase == CombatPhase.ACTIVE:
            notifications.extend(self._settle())
        if intent.token is not None:
            self._receipts[intent.token] = fingerprint
        return payload, notifications

    # =========================================================================
    # Intent handlers
    # =========================================================================

    def _add_participant(self, intent: Intent) -> Outcome:
        data = dict(intent.payload)
        if intent.participant_id is not None:
            if data.setdefault("id", intent.participant_id) != intent.participant_id:
                raise ValidationError(
                    "Participant id in payload does not match the intent",
                    field_name="id",
                    invalid_value=data["id"],
                )
        data.setdefault("id", uuid4().hex)
        participant = self._parse(Participant, data)
        self.registry.add(participant)
        payload = participant.model_dump(mode="json")
        payload["_participant_id"] = participant.id
        return payload, [self._note(NotificationKind.PARTICIPANT_ADDED, participant.id)]

    def _remove_participant(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        self._parse(EmptyPayload, intent.payload)
        self.registry.remove(participant_id)
        if self._acting == participant_id:
            self._acting = None
        return {}, [self._note(NotificationKind.PARTICIPANT_REMOVED, participant_id)]

    def _update_participant(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        before = self.registry.get(participant_id)
        updated = self.registry.update(participant_id, intent.payload)
        for plane in before.planes:
            if plane in self.track.plane_order and not updated.is_present(plane):
                self.track.discard(participant_id, plane)
        dumped = updated.model_dump(mode="json")
        payload = {field: dumped[field] for field in sorted(intent.payload)}
        note = self._note(
            NotificationKind.PARTICIPANT_UPDATED, participant_id, fields=sorted(intent.payload)
        )
        return payload, [note]

    def _enter_plane(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        plane = self._parse(PlanePayload, intent.payload).plane
        if plane not in self.track.plane_order:
            raise InvalidPlaneError(
                f"Plane {plane} is not part of this combat",
                plane=plane,
                participant_id=participant_id,
            )
        self.registry.replace(self.registry.get(participant_id).with_plane(plane))
        note = self._note(NotificationKind.PARTICIPANT_UPDATED, participant_id, plane, fields=["planes"])
        return {"plane": str(plane)}, [note]

    def _leave_plane(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        plane = self._parse(PlanePayload, intent.payload).plane
        participant = self.registry.get(participant_id)
        if not participant.is_present(plane):
            raise InvalidPlaneError(
                f"Participant {participant_id} is not present in the {plane} plane",
                plane=plane,
                participant_id=participant_id,
            )
        if len(participant.planes) == 1:
            raise ValidationError(
                "A participant must stay present in at least one plane",
                field_name="planes",
                invalid_value=str(plane),
            )
        if plane in self.track.plane_order:
            self.track.discard(participant_id, plane)
        self.registry.replace(participant.without_plane(plane))
        note = self._note(NotificationKind.PARTICIPANT_UPDATED, participant_id, plane, fields=["planes"])
        return {"plane": str(plane)}, [note]

    def _add_condition(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        condition = self._parse(StatusCondition, intent.payload)
        self.registry.add_condition(participant_id, condition)
        note = self._note(
            NotificationKind.PARTICIPANT_UPDATED, participant_id, condition=condition.name
        )
        return condition.model_dump(mode="json"), [note]

    def _remove_condition(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        name = self._parse(ConditionRemovalPayload, intent.payload).name
        self.registry.remove_condition(participant_id, name)
        note = self._note(NotificationKind.PARTICIPANT_UPDATED, participant_id, condition=name)
        return {"name": name}, [note]

    def _roll_initiative(self, intent: Intent) -> Outcome:
        participant_id = self._participant_id(intent)
        roll = self._parse(RollInitiativePayload, intent.payload)
        if (
            self._phase == CombatPhase.ACTIVE
            and participant_id == self._acting
            and roll.plane == self.track.active_plane
        ):
            raise InvalidPhaseError(
                "The acting participant cannot re-roll during their own turn",
                current_phase=self._phase,
                participant_id=participant_id,
            )
        seed = roll.seed if roll.seed is not None else self._seed_source()
        entry = self.track.roll(participant_id, roll.plane, roll.score, seed, roll.passes)
        participant = self.registry.get(participant_id)
        self.registry.replace(participant.evolve(initiative_score=roll.score))
        payload = {
            "plane": str(entry.plane),
            "score": entry.score,
            "seed": entry.seed,
            "passes": entry.passes,
        }
        note = self._note(
            NotificationKind.INITIATIVE_ROLLED,
            participant_id,
            entry.plane,
            score=entry.score,
            seed=entry.seed,
        )
        return payload, [note]

    def _start_combat(self, intent: Intent) -> Outcome:
        self._require_phase(intent, CombatPhase.SETUP)
        self._parse(EmptyPayload, intent.payload)
        if len(self.track) == 0:
            raise InvalidPhaseError(
                "Cannot start combat: no initiative has been rolled",
                current_phase=self._phase,
                expected_phases=[CombatPhase.SETUP],
            )
        self._phase = CombatPhase.ACTIVE
        notes = [self._note(NotificationKind.COMBAT_STARTED)]
        notes.extend(self._open_round())
        self._logger.info("Combat started", participants=len(self.registry))
        return {}, notes

    def _declare_action(self, intent: Intent) -> Outcome:
        self._require_phase(intent, CombatPhase.ACTIVE)
        participant_id = self._participant_id(intent)
        action = self._parse(ActionPayload, intent.payload)
        self.registry.get(participant_id)
        if action.action.needs_turn:
            self._require_turn(participant_id, f"a {action.action} action")
        budget = self.ledger.spend(participant_id, action.action)
        note = self._note(
            NotificationKind.ACTION_TAKEN,
            participant_id,
            self.track.active_plane,
            action=str(action.action),
            description=action.description,
            state=str(budget.state),
        )
        return action.model_dump(mode="json"), [note]

    def _reserve_action(self, intent: Intent) -> Outcome:
        self._require_phase(intent, CombatPhase.ACTIVE)
        participant_id = self._participant_id(intent)
        action = self._parse(ActionPayload, intent.payload)
        self.registry.get(participant_id)
        self._require_turn(participant_id, "holding an action")
        self.ledger.reserve(participant_id, action.action)
        note = self._note(
            NotificationKind.ACTION_RESERVED, participant_id, self.track.active_plane,
            action=str(action.action),
        )
        return action.model_dump(mode="json"), [note]

    def _use_reserved(self, intent: Intent) -> Outcome:
        self._require_phase(intent, CombatPhase.ACTIVE)
        participant_id = self._participant_id(intent)
        action = self._parse(ActionPayload, intent.payload)
        budget = self.ledger.use_reserved(participant_id, action.action)
        note = self._note(
            NotificationKind.ACTION_TAKEN,
            participant_id,
            action=str(action.action),
            description=action.description,
            reserved=True,
            state=str(budget.state),
        )
        return action.model_dump(mode="json"), [note]

    def _end_turn(self, intent: Intent) -> Outcome:
        self._require_phase(intent, CombatPhase.ACTIVE)
        participant_id = self._participant_id(intent)
        self._parse(EmptyPayload, intent.payload)
        self._require_turn(participant_id, "ending the turn")
        plane = self.track.active_plane
        if plane is not None and self.track.advance(plane) is PLANE_EXHAUSTED:
            self._logger.debug("Plane exhausted", plane=str(plane), pass_number=self.track.pass_number)
        self._acting = None
        return {}, []

    def _end_combat(self, intent: Intent) -> Outcome:
        self._require_phase(intent, CombatPhase.ACTIVE)
        self._parse(EmptyPayload, intent.payload)
        rounds = self.track.round_number
        self.track.clear()
        self.ledger.clear()
        self._phase = CombatPhase.SETUP
        self._acting = None
        self._turn_key = None
        self._logger.info("Combat ended", rounds=rounds)
        return {}, [self._note(NotificationKind.COMBAT_ENDED, rounds=rounds)]

    # =========================================================================
    # Turn progression
    # =========================================================================

    def _settle(self) -> list[Notification]:
        """Move the turn pointer to whoever should be acting now.

        Planes are resolved in configured order; a plane is only left once it
        is exhausted, a new pass only begins once every plane is exhausted,
        and a new round only once no entry has a further pass. Incapacitated
        participants are skipped.
        """
        notes: list[Notification] = []
        while True:
            if self._acting_still_valid():
                break
            if self._acting is not None and self.track.active_plane is not None:
                # Acting participant became incapacitated mid-turn
                self.track.mark_acted(self._acting, self.track.active_plane)
                notes.append(
                    self._note(NotificationKind.TURN_SKIPPED, self._acting, self.track.active_plane)
                )
            self._acting = None

            if not self._has_able_entry():
                break

            plane = self.track.first_ready_plane()
            if plane is None:
                if self.track.has_further_pass():
                    self.track.begin_pass(self.track.pass_number + 1)
                    notes.append(
                        self._note(NotificationKind.PASS_ADVANCED, pass_number=self.track.pass_number)
                    )
                else:
                    notes.extend(self._open_round())
                continue

            candidate = self.track.current(plane)
            if candidate is None:
                break
            if self.registry.get(candidate).incapacitated:
                self.track.mark_acted(candidate, plane)
                notes.append(self._note(NotificationKind.TURN_SKIPPED, candidate, plane))
                continue

            if self.track.active_plane is not None and plane != self.track.active_plane:
                notes.append(
                    self._note(
                        NotificationKind.PLANE_ADVANCED, plane=plane, previous=str(self.track.active_plane)
                    )
                )
            self.track.active_plane = plane
            self._acting = candidate

        turn_key = self.combat_round.turn_key
        if self._acting is not None and turn_key != self._turn_key:
            self.ledger.refresh(self._acting, self.track.round_number)
            acting = self.registry.get(self._acting)
            notes.append(self._note(NotificationKind.TURN_ADVANCED, acting.id, self.track.active_plane))
            notes.append(
                self._note(
                    NotificationKind.YOUR_TURN,
                    acting.id,
                    self.track.active_plane,
                    controller=acting.controller,
                )
            )
        self._turn_key = turn_key if self._acting is not None else None
        return notes

    def _acting_still_valid(self) -> bool:
        plane = self.track.active_plane
        if self._acting is None or plane is None or self._acting not in self.registry:
            return False
        if self.registry.get(self._acting).incapacitated:
            return False
        return self.track.current(plane) == self._acting

    def _has_able_entry(self) -> bool:
        return any(
            not self.registry.get(entry.participant_id).incapacitated
            for entry in self.track.entries()
        )

    def _open_round(self) -> list[Notification]:
        round_number = self.track.new_round()
        notes = [self._note(NotificationKind.ROUND_ADVANCED)]
        for participant_id, condition in self.registry.expire_conditions(round_number):
            notes.append(
                self._note(NotificationKind.CONDITION_EXPIRED, participant_id, condition=condition.name)
            )
        for budget in self.ledger.new_round(round_number):
            notes.append(
                self._note(
                    NotificationKind.RESERVATION_FORFEITED,
                    budget.participant_id,
                    simple=budget.reserved_simple,
                    complex=budget.reserved_complex,
                )
            )
        self._logger.info("Round advanced", round=round_number)
        return notes

    # =========================================================================
    # Helpers
    # =========================================================================

    def _note(
        self,
        kind: NotificationKind,
        participant_id: str | None = None,
        plane: Plane | None = None,
        **detail: Any,
    ) -> Notification:
        return Notification(
            kind=kind,
            participant_id=participant_id,
            plane=plane,
            round_number=self.track.round_number,
            detail=detail,
        )

    def _require_phase(self, intent: Intent, phase: CombatPhase) -> None:
        if self._phase != phase:
            raise InvalidPhaseError(
                f"{intent.kind} is not allowed during {self._phase}",
                current_phase=self._phase,
                expected_phases=[phase],
                participant_id=intent.participant_id,
            )

    def _require_turn(self, participant_id: str, what: str) -> None:
        if participant_id != self._acting:
            raise OutOfTurnError(
                f"It is not {participant_id}'s turn for {what}",
                participant_id=participant_id,
                round_number=self.track.round_number,
                details={"acting_participant_id": self._acting},
            )

    @staticmethod
    def _participant_id(intent: Intent) -> str:
        if not intent.participant_id:
            raise ValidationError(
                f"{intent.kind} requires a participant id",
                field_name="participant_id",
            )
        return intent.participant_id

    @staticmethod
    def _parse(model: type[PayloadT], payload: Mapping[str, Any]) -> PayloadT:
        try:
            return model.model_validate(dict(payload))
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            raise ValidationError(
                f"Invalid payload: {first['msg']}",
                field_name=".".join(str(part) for part in first["loc"]) or None,
                details={"errors": [e["msg"] for e in exc.errors()]},
            ) from exc

    # =========================================================================
    # Checkpoints, replay and restore
    # =========================================================================

    def _load(self, snapshot: SessionSnapshot) -> None:
        """Overwrite the live state with ``snapshot``. The event log is untouched."""
        self.registry.load(snapshot.participants)
        self.track.load(
            snapshot.initiative,
            snapshot.acted,
            round_number=snapshot.combat_round.round_number,
            pass_number=snapshot.combat_round.pass_number,
            active_plane=snapshot.combat_round.active_plane,
        )
        self.ledger.load(snapshot.budgets, snapshot.combat_round.round_number)
        self._phase = snapshot.phase
        self._acting = snapshot.combat_round.acting_participant_id
        self._turn_key = snapshot.combat_round.turn_key if self._acting is not None else None
        self._receipts = dict(snapshot.receipts)

    def apply_event(self, event: Event) -> None:
        """Re-apply a recorded event and verify its checksum.

        Raises:
            ReplayError: If the event does not apply cleanly or the resulting
                state does not match the recorded checksum.
        """
        with self._lock:
            if event.sequence != self._log.next_sequence:
                raise ReplayError(
                    "Recorded event out of sequence",
                    sequence=event.sequence,
                    expected_sequence=self._log.next_sequence,
                )
            checkpoint = self._build_snapshot(self._log.last_sequence)
            intent = event.to_intent()
            fingerprint = event.payload.get("fingerprint") or intent.fingerprint()
            try:
                self._apply(intent, fingerprint)
            except CombatCoordinatorError as exc:
                self._load(checkpoint)
                raise ReplayError(
                    f"Recorded event could not be applied: {exc.message}",
                    sequence=event.sequence,
                ) from exc
            snapshot = self._build_snapshot(event.sequence)
            if snapshot.checksum() != event.checksum:
                self._load(checkpoint)
                raise ReplayError("Replayed state does not match the recorded checksum", sequence=event.sequence)
            self._log.append(event)
            if intent.token is not None:
                self._token_sequences[intent.token] = event.sequence

    @classmethod
    def replay(
        cls,
        session_id: str,
        events: Iterable[Event],
        *,
        settings: CombatSettings | None = None,
        **kwargs: Any,
    ) -> CombatSession:
        """Rebuild a session from its full event history.

        Args:
            session_id: Identifier the events were recorded under.
            events: Events from sequence 0, in order.
            settings: Combat settings the session ran with.
            **kwargs: Extra constructor arguments (clock, on_commit).

        Returns:
            The rebuilt session.

        Raises:
            ReplayError: If any event fails to reproduce its checksum.
        """
        session = cls(session_id, settings=settings, **kwargs)
        for event in events:
            session.apply_event(event)
        return session

    @classmethod
    def restore(
        cls,
        snapshot: SessionSnapshot,
        events: Iterable[Event] = (),
        *,
        settings: CombatSettings | None = None,
        **kwargs: Any,
    ) -> CombatSession:
        """Rebuild a session from a snapshot plus the events recorded after it.

        Events at or before the snapshot's last sequence are skipped.

        Returns:
            The restored session.

        Raises:
            ReplayError: If any later event fails to reproduce its checksum.
        """
        base = settings or get_settings().combat
        if tuple(base.plane_order) != tuple(snapshot.plane_order):
            base = base.model_copy(update={"plane_order": tuple(snapshot.plane_order)})
        session = cls(
            snapshot.session_id,
            settings=base,
            start_sequence=snapshot.last_sequence + 1,
            **kwargs,
        )
        session._load(snapshot)
        for event in events:
            if event.sequence > snapshot.last_sequence:
                session.apply_event(event)
        logger.info(
            "Session restored",
            session_id=snapshot.session_id,
            last_sequence=session.event_log.last_sequence,
        )
        return session


__all__ = [
    "CommitHook",
    "CombatSession",
]
