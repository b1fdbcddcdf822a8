from dataclasses import dataclass, field
from typing import Optional

from calendar_days import CalendarDay, build_calendar_days
from ledger import Movement, RawLedgerState, is_missing, last_recorded_final_day

# ============================================================
# DERIVED ROWS
# ============================================================


@dataclass
class DailyRow:
    iso: str
    label: str
    weekday: str
    is_weekend: bool
    increments: Optional[float] = None
    decrements: Optional[float] = None
    initial: Optional[float] = None
    final: Optional[float] = None
    profit: Optional[float] = None
    profit_pct: Optional[float] = None
    cumulative_profit: Optional[float] = None


@dataclass
class ClientDayRow:
    iso: str
    label: str
    weekday: str
    is_weekend: bool
    increment: Optional[float] = None
    decrement: Optional[float] = None
    base_balance: Optional[float] = None
    profit: Optional[float] = None
    profit_pct: Optional[float] = None
    cumulative_profit: Optional[float] = None
    final_balance: Optional[float] = None
    share_pct: Optional[float] = None
    share_amount: Optional[float] = None


@dataclass
class Totals:
    assets: Optional[float] = None
    ytd_profit: Optional[float] = None
    ytd_return_pct: Optional[float] = None


@dataclass
class Snapshot:
    daily_rows: list = field(default_factory=list)
    day_index: dict = field(default_factory=dict)
    client_rows_by_id: dict = field(default_factory=dict)
    totals: Totals = field(default_factory=Totals)


def _calendar_fields(day: CalendarDay) -> dict:
    return {
        "iso": day.iso,
        "label": day.label,
        "weekday": day.weekday,
        "is_weekend": day.is_weekend,
    }


def _client_movement(movements_by_client: dict, client_id: str, iso: str) -> Optional[Movement]:
    mv = (movements_by_client.get(client_id) or {}).get(iso)
    if mv is None:
        return None
    if isinstance(mv, dict):
        mv = Movement.from_dict(mv)
    return None if mv.is_empty else mv


def _first_movement_day(movements_by_client: dict, client_id: str) -> Optional[str]:
    days = [
        iso
        for iso in (movements_by_client.get(client_id) or {})
        if _client_movement(movements_by_client, client_id, iso) is not None
    ]
    return min(days) if days else None


def sum_movements(movements_by_client: dict, clients: list, iso: str):
    """
    Aggregate client flows for one day.

    Returns (increments, decrements, net, has_movements). A side is None
    when no client recorded it, so an all-absent day is not a zero day.
    """
    increment_total = 0.0
    decrement_total = 0.0
    has_increment = False
    has_decrement = False

    for client_id in clients:
        mv = _client_movement(movements_by_client, client_id, iso)
        if mv is None:
            continue
        if mv.increment is not None:
            increment_total += mv.increment
            has_increment = True
        if mv.decrement is not None:
            decrement_total += mv.decrement
            has_decrement = True

    return (
        increment_total if has_increment else None,
        decrement_total if has_decrement else None,
        increment_total - decrement_total,
        has_increment or has_decrement,
    )


# ============================================================
# SNAPSHOT BUILDER
# ============================================================


def build_snapshot(
    final_by_day: dict,
    movements_by_client: dict,
    clients: list = None,
    days: list = None,
) -> Snapshot:
    """
    Replay the raw ledger over the calendar and derive every row.

    Portfolio level, per day:
      - initial = previous close (or 0) + net client flows
      - effective close = recorded close, else the previous close
      - profit = effective close - initial; the displayed `final` is the
        recorded close only

    Client level, per day (two passes):
      1. base = running balance + own flows; positive bases form the pool
      2. each positive base receives effective close * base / pool; other
         clients get a zero share, so their balance closes at 0

    Days after the last recorded close are not reconciled yet: every
    derived value on them is None and the running state is not advanced.
    A client has no derived values before its first movement.

    Pure: the same inputs always give an equal Snapshot.
    """
    if days is None:
        days = build_calendar_days()
    if clients is None:
        clients = sorted(movements_by_client)

    horizon = last_recorded_final_day(final_by_day)

    snapshot = Snapshot()
    client_balances = {}
    client_cumulative = {}
    first_movement = {}
    for client_id in clients:
        snapshot.client_rows_by_id[client_id] = []
        client_balances[client_id] = 0.0
        client_cumulative[client_id] = 0.0
        first_movement[client_id] = _first_movement_day(movements_by_client, client_id)

    previous_final = None
    cumulative_profit = 0.0
    first_initial = None

    for day in days:
        calendar = _calendar_fields(day)
        beyond_horizon = horizon is not None and day.iso > horizon

        if beyond_horizon:
            row = DailyRow(**calendar)
            snapshot.daily_rows.append(row)
            snapshot.day_index[day.iso] = row
            for client_id in clients:
                mv = _client_movement(movements_by_client, client_id, day.iso)
                snapshot.client_rows_by_id[client_id].append(
                    ClientDayRow(
                        **calendar,
                        increment=mv.increment if mv else None,
                        decrement=mv.decrement if mv else None,
                    )
                )
            continue

        # ----- Portfolio level -----
        increments, decrements, net, _ = sum_movements(
            movements_by_client, clients, day.iso
        )
        initial = (previous_final or 0.0) + net
        if first_initial is None and initial != 0:
            first_initial = initial

        recorded_final = final_by_day.get(day.iso)
        if is_missing(recorded_final):
            recorded_final = None
        effective_final = recorded_final if recorded_final is not None else previous_final

        profit = effective_final - initial if effective_final is not None else None
        profit_pct = profit / initial if profit is not None and initial != 0 else None
        if profit is not None:
            cumulative_profit += profit

        row = DailyRow(
            **calendar,
            increments=increments,
            decrements=decrements,
            initial=initial,
            final=recorded_final,
            profit=profit,
            profit_pct=profit_pct,
            cumulative_profit=cumulative_profit,
        )
        snapshot.daily_rows.append(row)
        snapshot.day_index[day.iso] = row

        # ----- Client level: pass 1 (base balances and pool) -----
        bases = {}
        total_base = 0.0
        for client_id in clients:
            mv = _client_movement(movements_by_client, client_id, day.iso)
            base = client_balances[client_id] + (mv.net if mv else 0.0)
            bases[client_id] = base
            if base > 0:
                total_base += base

        allocate = effective_final is not None and total_base > 0

        # ----- Client level: pass 2 (allocation) -----
        for client_id in clients:
            mv = _client_movement(movements_by_client, client_id, day.iso)
            client_row = ClientDayRow(
                **calendar,
                increment=mv.increment if mv else None,
                decrement=mv.decrement if mv else None,
            )
            snapshot.client_rows_by_id[client_id].append(client_row)

            started = first_movement[client_id]
            if started is None or day.iso < started:
                continue

            base = bases[client_id]
            final_balance = base
            if allocate:
                # Non-positive bases are outside the pool and are reset to 0
                weight = base / total_base if base > 0 else 0.0
                share_amount = effective_final * weight
                client_profit = share_amount - base
                client_cumulative[client_id] += client_profit
                final_balance = share_amount

                client_row.profit = client_profit
                client_row.profit_pct = client_profit / base if base != 0 else None
                client_row.share_pct = weight
                client_row.share_amount = share_amount

            client_row.base_balance = base
            client_row.final_balance = final_balance
            client_row.cumulative_profit = client_cumulative[client_id]
            client_balances[client_id] = final_balance

        if effective_final is not None:
            previous_final = effective_final

    snapshot.totals = Totals(
        assets=previous_final,
        ytd_profit=cumulative_profit,
        ytd_return_pct=cumulative_profit / first_initial if first_initial else None,
    )
    return snapshot


def build_snapshot_from_state(state: RawLedgerState, clients: list = None, days: list = None) -> Snapshot:
    return build_snapshot(state.final_by_day, state.movements_by_client, clients=clients, days=days)
