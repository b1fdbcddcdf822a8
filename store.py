import logging
import time
from typing import Callable, Optional

from ledger import RawLedgerState, set_client_movement, set_day_final
from portfolio_engine import Snapshot, build_snapshot_from_state

logger = logging.getLogger(__name__)

SAVE_STATUSES = ("idle", "dirty", "saving", "success", "error")


class PortfolioStore:
    """
    Owner of the raw ledger.

    The snapshot is derived, never stored: every mutation replaces the raw
    state and rebuilds the snapshot synchronously before listeners run.
    Single mutator; listeners are called on the mutating thread.
    """

    def __init__(self, state: RawLedgerState = None, clients: list = None, days: list = None):
        self._state = state or RawLedgerState()
        self._clients = list(clients) if clients is not None else None
        self._days = days
        self._listeners = []
        self.save_status = "idle"
        self.last_saved_at: Optional[float] = None
        self._snapshot = self._rebuild()

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def read(self) -> RawLedgerState:
        return self._state

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def clients(self) -> list:
        if self._clients is not None:
            return list(self._clients)
        return sorted(self._state.movements_by_client)

    # ------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------

    def mutate(self, fn: Callable[[RawLedgerState], RawLedgerState]) -> Snapshot:
        new_state = fn(self._state)
        if not isinstance(new_state, RawLedgerState):
            raise TypeError("mutate() callback must return a RawLedgerState")

        self._state = new_state
        self._snapshot = self._rebuild()
        self._notify()
        return self._snapshot

    def set_day_final(self, iso: str, value: Optional[float]) -> Snapshot:
        logger.debug("final %s -> %s", iso, value)
        return self.mutate(lambda s: set_day_final(s, iso, value))

    def set_client_movement(self, client_id: str, iso: str, field_name: str, value: Optional[float]) -> Snapshot:
        logger.debug("%s %s %s -> %s", client_id, iso, field_name, value)
        return self.mutate(lambda s: set_client_movement(s, client_id, iso, field_name, value))

    def set_clients(self, clients: list) -> Snapshot:
        """Replace the roster and rebuild. The raw ledger is untouched."""
        self._clients = list(clients)
        self._snapshot = self._rebuild()
        self._notify(persist=False)
        return self._snapshot

    # ------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        """
        Register `listener(store, persist)` for change notifications.
        `persist` is False when only derived data changed.
        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, persist: bool = True):
        for listener in list(self._listeners):
            listener(self, persist)

    # ------------------------------------------------------------
    # Save status
    # ------------------------------------------------------------

    def mark_dirty(self):
        self.save_status = "dirty"

    def mark_saving(self):
        self.save_status = "saving"

    def mark_saved(self):
        self.save_status = "success"
        self.last_saved_at = time.time()

    def mark_error(self):
        self.save_status = "error"

    def _rebuild(self) -> Snapshot:
        return build_snapshot_from_state(self._state, clients=self._clients, days=self._days)
