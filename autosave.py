import logging
import threading

import config
from ledger import PersistenceError

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """
    Debounced persistence for a PortfolioStore.

    Every ledger change cancels the pending save and schedules a new one
    `delay` seconds out, so a burst of edits is written once. A failed
    save sets the store status to "error" and is not retried; the next
    edit schedules a fresh attempt.
    """

    def __init__(self, store, backend, delay: float = None, timer_factory=threading.Timer):
        self.store = store
        self.backend = backend
        self.delay = config.AUTOSAVE_DEBOUNCE_SECONDS if delay is None else delay
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()
        self._unsubscribe = store.subscribe(self._on_change)

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _on_change(self, store, persist=True):
        if not persist:
            return
        store.mark_dirty()
        self.schedule()

    def schedule(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> bool:
        """Save now, dropping any pending timer. Returns True on success."""
        self.cancel()
        return self._save()

    def close(self):
        self.cancel()
        self._unsubscribe()

    def _fire(self):
        with self._lock:
            self._timer = None
        self._save()

    def _save(self) -> bool:
        state = self.store.read()
        self.store.mark_saving()
        try:
            self.backend.save(state)
        except PersistenceError as e:
            logger.error("Autosave failed: %s", e)
            self.store.mark_error()
            return False
        except Exception:
            logger.exception("Autosave failed unexpectedly")
            self.store.mark_error()
            return False

        # An edit during the save leaves the store dirty with its own save queued
        if self.store.save_status == "saving":
            self.store.mark_saved()
        logger.info("Ledger saved")
        return True
