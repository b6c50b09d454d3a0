"""Actor-style intent queue in front of a combat session.

Request handlers put intents on the queue and wait on the returned future;
a single consumer applies them to the session in arrival order. Until an
intent reaches the front of the queue its submitter may withdraw it.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field

from combat_coordinator.core.logging import get_logger
from combat_coordinator.engine.session import CombatSession
from combat_coordinator.models.events import Intent, StateDelta


logger = get_logger(__name__)


@dataclass(order=True)
class PendingIntent:
    """An intent waiting in the queue.

    Ordering is by arrival timestamp, then by arrival counter.

    Attributes:
        arrival_ns: Monotonic arrival time in nanoseconds.
        arrival_seq: Arrival counter, unique per queue.
        intent: The queued intent.
        future: Resolves to the StateDelta or the rejection error.
    """

    arrival_ns: int
    arrival_seq: int
    intent: Intent = field(compare=False)
    future: Future[StateDelta] = field(compare=False, default_factory=Future)

    @property
    def withdrawn(self) -> bool:
        """Whether the intent was withdrawn before being applied."""
        return self.future.cancelled()

    def result(self, timeout: float | None = None) -> StateDelta:
        """Wait for the outcome, re-raising the rejection error if any."""
        return self.future.result(timeout)


class IntentQueue:
    """Single-consumer queue serializing intents for one session.

    Use ``process_next``/``drain`` to consume synchronously, or ``start`` a
    background consumer thread.

    Example:
        >>> queue = IntentQueue(session)
        >>> pending = queue.put(Intent(kind=IntentKind.START_COMBAT))
        >>> queue.drain()
        1
        >>> pending.result().phase
        <CombatPhase.ACTIVE: 'active'>
    """

    def __init__(
        self,
        session: CombatSession,
        *,
        clock_ns: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        """Initialize the queue.

        Args:
            session: Session the intents are applied to.
            clock_ns: Source of arrival timestamps.
        """
        self.session = session
        self._clock_ns = clock_ns
        self._heap: list[PendingIntent] = []
        self._counter = itertools.count()
        self._condition = threading.Condition()
        self._running = False
        self._worker: threading.Thread | None = None

    def __len__(self) -> int:
        with self._condition:
            return sum(1 for p in self._heap if not p.withdrawn)

    def put(self, intent: Intent) -> PendingIntent:
        """Queue an intent, stamping its arrival.

        Returns:
            Handle used to wait for the outcome or withdraw the intent.
        """
        with self._condition:
            pending = PendingIntent(
                arrival_ns=self._clock_ns(),
                arrival_seq=next(self._counter),
                intent=intent,
            )
            heapq.heappush(self._heap, pending)
            self._condition.notify()
        return pending

    def withdraw(self, pending: PendingIntent) -> bool:
        """Withdraw an intent that has not been applied yet.

        Returns:
            True if the intent was withdrawn, False if it is already being
            applied or done.
        """
        with self._condition:
            withdrawn = pending.future.cancel()
        if withdrawn:
            logger.debug(
                "Intent withdrawn",
                session_id=self.session.session_id,
                kind=str(pending.intent.kind),
                arrival_seq=pending.arrival_seq,
            )
        return withdrawn

    def process_next(self) -> bool:
        """Apply the earliest queued intent that was not withdrawn.

        Returns:
            True if an intent was applied (or rejected), False if the queue
            held nothing to apply.
        """
        with self._condition:
            pending = None
            while self._heap:
                candidate = heapq.heappop(self._heap)
                if candidate.future.set_running_or_notify_cancel():
                    pending = candidate
                    break
        if pending is None:
            return False

        try:
            delta = self.session.submit(pending.intent)
        except Exception as exc:
            pending.future.set_exception(exc)
        else:
            pending.future.set_result(delta)
        return True

    def drain(self) -> int:
        """Apply every queued intent.

        Returns:
            Number of intents applied or rejected.
        """
        processed = 0
        while self.process_next():
            processed += 1
        return processed

    # =========================================================================
    # Background consumer
    # =========================================================================

    def start(self) -> None:
        """Start the background consumer thread."""
        with self._condition:
            if self._running:
                return
            self._running = True
        self._worker = threading.Thread(
            target=self._run,
            name=f"intent-queue-{self.session.session_id}",
            daemon=True,
        )
        self._worker.start()
        logger.debug("Intent queue started", session_id=self.session.session_id)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the consumer after the intent it is applying, if any."""
        with self._condition:
            self._running = False
            self._condition.notify_all()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None
        logger.debug("Intent queue stopped", session_id=self.session.session_id)

    def _run(self) -> None:
        while True:
            with self._condition:
                while self._running and not self._heap:
                    self._condition.wait()
                if not self._running:
                    return
            self.process_next()

    def __enter__(self) -> IntentQueue:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


__all__ = [
    "PendingIntent",
    "IntentQueue",
]
