from dataclasses import dataclass, field

import numpy as np
import pandas as pd

# ============================================================
# CONFIG / CONSTANTS
# ============================================================
INSUFFICIENT_DATA = "insufficient data"

TWR_EXPLANATION = (
    "Time-weighted return measures the investment's own performance with the "
    "effect of deposits and withdrawals removed. The period is split into "
    "daily sub-periods, each sub-period return is measured on the balance "
    "after that day's flows, and the (1 + r) factors are multiplied together."
)


@dataclass
class TWRPeriod:
    iso: str
    label: str
    start_value: float
    end_value: float
    flow: float
    period_return: float


@dataclass
class TWRResult:
    twr: float
    periods: list = field(default_factory=list)
    explanation: str = INSUFFICIENT_DATA


@dataclass
class MonthlyTWR:
    month: str
    twr: float
    periods: list = field(default_factory=list)


# ------------------------------------------------------------
# Row access
# ------------------------------------------------------------

def _field(row, *names):
    """First non-None value among `names`, for dict rows and row objects."""
    for name in names:
        if isinstance(row, dict):
            value = row.get(name)
        else:
            value = getattr(row, name, None)
        if value is not None:
            return value
    return None


def _start_value(row):
    return _field(row, "base_balance", "initial")


def _end_value(row):
    return _field(row, "final_balance", "final")


def _flow(row) -> float:
    increment = _field(row, "increment", "increments") or 0.0
    decrement = _field(row, "decrement", "decrements") or 0.0
    return float(increment) - float(decrement)


# ------------------------------------------------------------
# Time-weighted return
# ------------------------------------------------------------

def calculate_twr(rows) -> TWRResult:
    """
    Chain-linked TWR over daily rows.

    Accepts client rows (base_balance -> final_balance) or portfolio rows
    (initial -> final). The start value of a row already includes that
    day's flow, so each sub-period return is simply

        r_i = (end_i - start_i) / start_i

    and TWR = prod(1 + r_i) - 1. Rows without both values, or with a
    start value <= 0, cannot produce a return and are skipped.
    """
    valid_rows = []
    for r in rows:
        start = _start_value(r)
        end = _end_value(r)
        if start is None or end is None or start <= 0:
            continue
        valid_rows.append(r)

    if not valid_rows:
        return TWRResult(twr=0.0, periods=[], explanation=INSUFFICIENT_DATA)

    periods = []
    factors = []
    for r in valid_rows:
        start_value = float(_start_value(r))
        end_value = float(_end_value(r))
        period_return = (end_value - start_value) / start_value

        periods.append(
            TWRPeriod(
                iso=_field(r, "iso"),
                label=_field(r, "label") or "",
                start_value=start_value,
                end_value=end_value,
                flow=_flow(r),
                period_return=period_return,
            )
        )
        factors.append(1.0 + period_return)

    twr_val = float(np.prod(factors) - 1.0)
    return TWRResult(twr=twr_val, periods=periods, explanation=TWR_EXPLANATION)


def calculate_monthly_twr(rows, month: str) -> TWRResult:
    """TWR restricted to one calendar month (`month` as YYYY-MM)."""
    return calculate_twr([r for r in rows if str(_field(r, "iso")).startswith(month)])


def calculate_all_months_twr(rows) -> list[MonthlyTWR]:
    """
    Independent TWR for every calendar month present in `rows`.

    Each month is chain-linked on its own days only; this is not a running
    year-to-date figure.
    """
    by_month = {}
    for r in rows:
        month = str(_field(r, "iso"))[:7]
        by_month.setdefault(month, []).append(r)

    results = []
    for month in sorted(by_month):
        result = calculate_twr(by_month[month])
        results.append(MonthlyTWR(month=month, twr=result.twr, periods=result.periods))
    return results


def twr_growth_curve(result: TWRResult) -> pd.Series:
    """Growth of 1 after each valid sub-period, indexed by date."""
    if not result.periods:
        return pd.Series(dtype=float)

    factors = [1.0 + p.period_return for p in result.periods]
    index = pd.to_datetime([p.iso for p in result.periods])
    return pd.Series(np.cumprod(factors), index=index, name="growth").sort_index()


# ------------------------------------------------------------
# Drawdown
# ------------------------------------------------------------

def compute_drawdown_series(curve):
    """
    Drawdown of a growth-of-1 curve in %, its worst point in %, and the
    days from that trough back to the previous peak.
    """
    if curve.empty:
        return pd.Series(dtype=float), 0.0, 0

    peak = curve.cummax()
    drawdown_pct = (curve / peak - 1.0) * 100.0
    worst = float(drawdown_pct.min())
    if worst == 0.0:
        return drawdown_pct, 0.0, 0

    trough = drawdown_pct.idxmin()
    after = drawdown_pct[drawdown_pct.index > trough]
    back_at_peak = after[after >= 0].index

    # Unrecovered drawdowns count up to the last day of the curve
    end = back_at_peak[0] if len(back_at_peak) else curve.index.max()
    return drawdown_pct, worst, (end - trough).days
