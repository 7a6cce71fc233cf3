"""Priority queue of change batches across watch targets.

This module provides:
- QueueState: IDLE or DRAINING
- PriorityChangeQueue: Three FIFO buckets drained in strict priority order

Batches are processed by the registered consumers on a single drain thread:
- All HIGH batches of a pass run before any MEDIUM, all MEDIUM before LOW
- Within one priority, batches keep arrival order
- A consumer that raises is logged and skipped; the pass continues

Usage:
    queue = PriorityChangeQueue()
    unsubscribe = queue.on_batch_processed(uploader)
    queue.enqueue(batch)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from gitmirror.core.errors import ConsumerError
from gitmirror.core.events import SyncEventKind, emit_event
from gitmirror.core.types import PRIORITY_ORDER, Priority

if TYPE_CHECKING:
    from gitmirror.client.sync.types import BatchConsumer, ChangeBatch

logger = logging.getLogger(__name__)

DEFAULT_RESCHEDULE_DELAY = 0.1  # seconds between drain passes

ErrorHook = Callable[[ConsumerError], None]


class QueueState(Enum):
    """Drain state of the queue."""

    IDLE = "idle"
    DRAINING = "draining"


class PriorityChangeQueue:
    """Thread-safe multi-priority queue of ChangeBatch objects.

    One lock guards the buckets and the state flag, so at most one drain
    thread runs at a time and every batch is handed to the consumers once.
    """

    def __init__(
        self,
        reschedule_delay: float = DEFAULT_RESCHEDULE_DELAY,
        on_error: ErrorHook | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            reschedule_delay: Pause before another pass when batches arrived
                during the previous one.
            on_error: Optional hook called with each ConsumerError.
        """
        self._reschedule_delay = reschedule_delay
        self._on_error = on_error

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._buckets: dict[Priority, list[ChangeBatch]] = {p: [] for p in PRIORITY_ORDER}
        self._consumers: list[BatchConsumer] = []
        self._state = QueueState.IDLE
        self._closed = False
        self._processed = 0
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> QueueState:
        """Current drain state."""
        with self._lock:
            return self._state

    @property
    def processed_count(self) -> int:
        """Number of batches handed to the consumers so far."""
        with self._lock:
            return self._processed

    @property
    def is_closed(self) -> bool:
        """Check if the queue refuses new batches."""
        return self._closed

    def pending(self) -> dict[Priority, int]:
        """Get the number of waiting batches per priority."""
        with self._lock:
            return {priority: len(bucket) for priority, bucket in self._buckets.items()}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._buckets.values())

    def on_batch_processed(self, consumer: BatchConsumer) -> Callable[[], None]:
        """Register a consumer called once per drained batch.

        Consumers run sequentially, in registration order.

        Args:
            consumer: Callable taking a ChangeBatch.

        Returns:
            Function that unregisters the consumer.
        """
        with self._lock:
            self._consumers.append(consumer)

        def unsubscribe() -> None:
            with self._lock:
                if consumer in self._consumers:
                    self._consumers.remove(consumer)

        return unsubscribe

    def enqueue(self, batch: ChangeBatch) -> bool:
        """Add a batch to its priority bucket and make sure a drain runs.

        Args:
            batch: Batch to enqueue.

        Returns:
            True if the batch was accepted, False if it is empty or the
            queue is closed.
        """
        if not batch.files:
            logger.debug("Dropping empty batch from %s", batch.target_id)
            return False

        with self._lock:
            if self._closed:
                logger.warning("Queue closed, dropping batch from %s", batch.target_id)
                return False

            self._buckets[batch.priority].append(batch)
            start_drain = self._state is QueueState.IDLE
            if start_drain:
                self._state = QueueState.DRAINING

        logger.info(
            "Queued %d file(s) from %s at %s priority",
            len(batch.files),
            batch.target_id,
            batch.priority.value,
        )
        emit_event(
            SyncEventKind.BATCH_ENQUEUED,
            target_id=batch.target_id,
            priority=batch.priority.value,
            files=len(batch.files),
        )

        if start_drain:
            self._thread = threading.Thread(target=self._drain, name="gitmirror-drain", daemon=True)
            self._thread.start()
        return True

    def _drain(self) -> None:
        """Run drain passes until the buckets stay empty."""
        while True:
            self._drain_pass()

            with self._lock:
                if not any(self._buckets.values()):
                    self._state = QueueState.IDLE
                    self._idle.notify_all()
                    return

            time.sleep(self._reschedule_delay)

    def _drain_pass(self) -> None:
        """Process one snapshot of every bucket, highest priority first."""
        for priority in PRIORITY_ORDER:
            with self._lock:
                batches = self._buckets[priority]
                self._buckets[priority] = []
                consumers = list(self._consumers)

            for batch in batches:
                self._dispatch(batch, consumers)

    def _dispatch(self, batch: ChangeBatch, consumers: list[BatchConsumer]) -> None:
        """Hand one batch to every consumer, isolating their failures."""
        for consumer in consumers:
            try:
                consumer(batch)
            except Exception as e:
                error = ConsumerError(consumer, batch.target_id, e)
                logger.error("%s", error, exc_info=e)
                if self._on_error is not None:
                    try:
                        self._on_error(error)
                    except Exception as hook_error:
                        logger.error("Queue error hook failed: %s", hook_error)

        with self._lock:
            self._processed += 1

        emit_event(
            SyncEventKind.BATCH_DRAINED,
            target_id=batch.target_id,
            priority=batch.priority.value,
            files=len(batch.files),
            waited=round(time.time() - batch.enqueued_at, 3),
        )

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the queue is empty and no drain is running.

        Args:
            timeout: Maximum seconds to wait (None = forever).

        Returns:
            True if the queue went idle, False on timeout.
        """
        with self._lock:
            return self._idle.wait_for(
                lambda: self._state is QueueState.IDLE and not any(self._buckets.values()),
                timeout=timeout,
            )

    def close(self, timeout: float | None = 10.0) -> bool:
        """Refuse new batches and wait for the running drain to finish.

        Returns:
            True if the queue drained within the timeout.
        """
        with self._lock:
            self._closed = True
        drained = self.wait_idle(timeout)
        if not drained:
            logger.warning("Queue still draining after %.1fs", timeout or 0.0)
        return drained
