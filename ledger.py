import math
from dataclasses import dataclass, field, replace
from typing import Optional

# ============================================================
# ERRORS
# ============================================================


class LedgerError(Exception):
    """Base class for ledger, store and persistence failures."""


class InvalidMovementField(LedgerError, ValueError):
    """Raised when a movement field other than increment/decrement is edited."""


class PersistenceError(LedgerError):
    """Raised by a storage backend when a fetch or save fails."""


MOVEMENT_FIELDS = ("increment", "decrement")


def is_missing(value) -> bool:
    """True for 'no data' (None or NaN). Zero is data."""
    return value is None or (isinstance(value, float) and math.isnan(value))


# ============================================================
# RAW STATE
# ============================================================


@dataclass(frozen=True)
class Movement:
    increment: Optional[float] = None
    decrement: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.increment is None and self.decrement is None

    @property
    def net(self) -> float:
        return (self.increment or 0.0) - (self.decrement or 0.0)

    def to_dict(self) -> dict:
        out = {}
        if self.increment is not None:
            out["increment"] = self.increment
        if self.decrement is not None:
            out["decrement"] = self.decrement
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> "Movement":
        raw = raw or {}
        increment = raw.get("increment")
        decrement = raw.get("decrement")
        return cls(
            increment=None if is_missing(increment) else float(increment),
            decrement=None if is_missing(decrement) else float(decrement),
        )


@dataclass(frozen=True)
class RawLedgerState:
    """
    The only persisted data:
      - final_by_day: ISO date -> recorded portfolio closing balance
      - movements_by_client: client id -> ISO date -> Movement

    Instances are treated as immutable: the helpers below return new
    states and never edit the dictionaries of an existing one.
    """

    final_by_day: dict = field(default_factory=dict)
    movements_by_client: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "finalByDay": dict(self.final_by_day),
            "movementsByClient": {
                client_id: {iso: mv.to_dict() for iso, mv in days.items()}
                for client_id, days in self.movements_by_client.items()
            },
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "RawLedgerState":
        """
        Hydrate from the stored document. Missing finals are dropped and
        movement records with neither field set are pruned.
        """
        raw = raw or {}
        finals = {}
        for iso, value in (raw.get("finalByDay") or {}).items():
            if is_missing(value):
                continue
            finals[iso] = float(value)

        movements = {}
        for client_id, days in (raw.get("movementsByClient") or {}).items():
            client_days = {}
            for iso, mv_raw in (days or {}).items():
                mv = Movement.from_dict(mv_raw)
                if not mv.is_empty:
                    client_days[iso] = mv
            if client_days:
                movements[client_id] = client_days

        return cls(final_by_day=finals, movements_by_client=movements)


# ============================================================
# MUTATION BOUNDARY
# ============================================================


def set_day_final(state: RawLedgerState, iso: str, value: Optional[float]) -> RawLedgerState:
    """Record (or clear, when value is None/NaN) the closing balance for a day."""
    finals = dict(state.final_by_day)
    if is_missing(value):
        finals.pop(iso, None)
    else:
        finals[iso] = float(value)
    return replace(state, final_by_day=finals)


def set_client_movement(
    state: RawLedgerState,
    client_id: str,
    iso: str,
    field_name: str,
    value: Optional[float],
) -> RawLedgerState:
    """
    Set or clear one side of a client's movement for a day.

    A movement left with neither side set is removed, and a client left
    without movements is removed from the map. A recorded 0 is kept.
    """
    if field_name not in MOVEMENT_FIELDS:
        raise InvalidMovementField(f"Unknown movement field: {field_name!r}")

    movements = dict(state.movements_by_client)
    client_days = dict(movements.get(client_id, {}))
    current = client_days.get(iso, Movement())

    new_value = None if is_missing(value) else float(value)
    updated = replace(current, **{field_name: new_value})

    if updated.is_empty:
        client_days.pop(iso, None)
    else:
        client_days[iso] = updated

    if client_days:
        movements[client_id] = client_days
    else:
        movements.pop(client_id, None)

    return replace(state, movements_by_client=movements)


def last_recorded_final_day(final_by_day: dict) -> Optional[str]:
    recorded = [iso for iso, value in final_by_day.items() if not is_missing(value)]
    return max(recorded) if recorded else None
