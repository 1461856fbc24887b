"""Debounced auto-save of store snapshots.

Every store mutation (re)schedules a save ``delay`` seconds later, so a
burst of changes results in a single write. ``force_save`` bypasses the
timer and always writes the latest state. Scheduling goes through a
``Scheduler`` so tests can advance time by hand.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from budgetbook.domain.errors import PersistenceError
from budgetbook.domain.store import TransactionStore
from budgetbook.logging_setup import get_logger
from budgetbook.storage.base import SnapshotStore

logger = get_logger("budgetbook.autosave")

AUTO_SAVE_DELAY = 1.0


class ScheduledCall(ABC):
    """Handle for a callback scheduled on a Scheduler."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Runs callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        pass


class _TimerCall(ScheduledCall):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return _TimerCall(timer)


class _ManualCall(ScheduledCall):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler driven by an explicit clock; nothing runs until ``advance``."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self._calls: list[_ManualCall] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = _ManualCall(self.now + delay, callback)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> int:
        return sum(1 for call in self._calls if not call.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every call that became due.

        Returns:
            Number of callbacks run
        """
        self.now += seconds
        ran = 0
        while True:
            due = sorted(
                (c for c in self._calls if not c.cancelled and c.due <= self.now),
                key=lambda c: c.due,
            )
            if not due:
                break
            call = due[0]
            self._calls.remove(call)
            call.callback()
            ran += 1
        self._calls = [c for c in self._calls if not c.cancelled]
        return ran


class AutoSaver:
    """Saves store snapshots through a SnapshotStore after mutations settle.

    Auto-save failures are logged and kept in ``last_error``; they never
    propagate into the code that mutated the store. The in-memory store stays
    authoritative and the next successful save catches up.
    """

    def __init__(
        self,
        store: TransactionStore,
        gateway: SnapshotStore,
        scheduler: Optional[Scheduler] = None,
        delay: float = AUTO_SAVE_DELAY,
    ):
        self.store = store
        self.gateway = gateway
        self.scheduler = scheduler or ThreadingScheduler()
        self.delay = delay
        self._lock = threading.RLock()
        self._handle: Optional[ScheduledCall] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._dirty = False
        self.last_error: Optional[PersistenceError] = None

    def start(self) -> "AutoSaver":
        """Subscribe to store mutations."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.on_change)
        return self

    def stop(self) -> None:
        """Unsubscribe and drop any scheduled save (dirty state is kept)."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._cancel_pending()

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def on_change(self, event: str = "") -> None:
        """Mark the store dirty and restart the debounce timer."""
        with self._lock:
            self._dirty = True
            self._cancel_pending()
            self._handle = self.scheduler.call_later(self.delay, self._run_scheduled)
        logger.debug("Store changed (%s); save scheduled in %.1fs", event, self.delay)

    def _run_scheduled(self) -> None:
        with self._lock:
            self._handle = None
        try:
            self.force_save()
        except PersistenceError as e:
            logger.error("Auto-save failed: %s", e, exc_info=True)

    def force_save(self) -> None:
        """Save the current snapshot now, cancelling any scheduled save.

        Raises:
            PersistenceError: If the write fails; the store is unaffected and
                stays dirty
        """
        with self._lock:
            self._cancel_pending()
            snapshot = self.store.snapshot()
            try:
                self.gateway.save(snapshot)
            except PersistenceError as e:
                self.last_error = e
                raise
            self._dirty = False
            self.last_error = None

    def discard(self) -> None:
        """Forget unsaved changes and drop any scheduled save."""
        with self._lock:
            self._cancel_pending()
            self._dirty = False

    def flush(self) -> None:
        """Save if there are unsaved changes."""
        if self._dirty:
            self.force_save()
