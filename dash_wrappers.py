import logging
from dataclasses import asdict, fields

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from autosave import AutosaveScheduler
from calendar_days import build_calendar_days, find_focus_date
from clients import ClientRoster
from config import GLOBAL_PALETTE, RISK_FREE_RATE, TRADING_DAYS
import config
from data_loader import get_backend
from financial_math import (
    calculate_all_months_twr,
    calculate_twr,
    compute_drawdown_series,
    twr_growth_curve,
)
from ledger import PersistenceError, RawLedgerState, is_missing
from portfolio_engine import ClientDayRow, DailyRow
from report_formatting import parse_amount
from store import PortfolioStore

logger = logging.getLogger(__name__)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# ============================================================
# GLOBAL DATA CACHE (Server-Side)
# ============================================================
_DATA_CACHE = None


def get_data():
    """Retrieve the app-wide store, initializing if necessary."""
    global _DATA_CACHE
    if _DATA_CACHE is None:
        _DATA_CACHE = init_data()
    return _DATA_CACHE


def init_data(backend=None, roster=None, days=None):
    """
    Hydrate the store from storage and attach debounced autosave.
    A failed fetch is logged and the app starts from an empty ledger.
    """
    global _DATA_CACHE
    backend = backend or get_backend()
    roster = roster or ClientRoster()
    days = days or build_calendar_days()

    try:
        state = backend.fetch()
    except PersistenceError as e:
        logger.error("Initial ledger fetch failed, starting empty: %s", e)
        state = RawLedgerState()

    store = PortfolioStore(state, clients=roster.ids, days=days)
    autosave = AutosaveScheduler(store, backend)
    logger.info(
        "Ledger loaded from %s: %d closes, %d clients with movements",
        backend.describe(),
        len(state.final_by_day),
        len(state.movements_by_client),
    )

    _DATA_CACHE = {
        "store": store,
        "roster": roster,
        "backend": backend,
        "autosave": autosave,
        "days": days,
    }
    return _DATA_CACHE


def reset_data():
    """Drop the cache, writing any pending edit first."""
    global _DATA_CACHE
    if _DATA_CACHE is not None:
        autosave = _DATA_CACHE["autosave"]
        if autosave.pending:
            autosave.flush()
        autosave.close()
    _DATA_CACHE = None


# ============================================================
# ROW HELPERS
# ============================================================

def _frame(rows, row_type) -> pd.DataFrame:
    columns = [f.name for f in fields(row_type)]
    df = pd.DataFrame([asdict(r) for r in rows], columns=columns)
    numeric = [c for c in columns if c not in ("iso", "label", "weekday", "is_weekend")]
    df[numeric] = df[numeric].astype(float)
    df["date"] = pd.to_datetime(df["iso"])
    return df


def daily_rows_frame(snapshot) -> pd.DataFrame:
    """Daily rows as a DataFrame; undefined values become NaN."""
    return _frame(snapshot.daily_rows, DailyRow)


def client_rows_frame(snapshot, client_id) -> pd.DataFrame:
    return _frame(snapshot.client_rows_by_id.get(client_id, []), ClientDayRow)


def year_rows(rows, year=None):
    year = year or config.START_YEAR
    prefix = f"{year}-"
    return [r for r in rows if r.iso.startswith(prefix)]


def grid_rows(rows) -> list[dict]:
    """Rows for AgGrid: plain dicts, None kept so cells render blank."""
    return [asdict(r) for r in rows]


def parse_cell_changes(event) -> list[tuple]:
    """
    Normalize an AgGrid `cellValueChanged` payload (a dict in older
    dash-ag-grid releases, a list of dicts in newer ones) into
    (iso, column, value) tuples. Values are parsed as amounts; blank
    cells become None.
    """
    if not event:
        return []
    events = event if isinstance(event, list) else [event]

    changes = []
    for e in events:
        iso = (e.get("data") or {}).get("iso")
        col = e.get("colId")
        if not iso or not col:
            continue
        changes.append((iso, col, parse_amount(e.get("value"))))
    return changes


# ============================================================
# FOCUS DATES
# ============================================================

def get_focus_date(store, year=None):
    """Last day of `year` with a recorded close, else today clamped into range."""
    year = year or config.START_YEAR
    prefix = f"{year}-"
    recorded = [
        iso for iso, value in store.read().final_by_day.items()
        if not is_missing(value) and iso.startswith(prefix)
    ]
    if recorded:
        return max(recorded)
    return find_focus_date()


def get_client_focus_date(rows):
    """Last day the client has a movement entry."""
    for r in reversed(rows):
        if r.increment is not None or r.decrement is not None:
            return r.iso
    if rows:
        return find_focus_date()
    return build_calendar_days()[0].iso


# ============================================================
# CLIENT ANALYTICS
# ============================================================

def get_monthly_summary(rows) -> list[dict]:
    """
    Profit and simple return per month for one client.

    The month's base is its first positive base balance; failing that the
    previous month's last positive final balance; failing that the month's
    last final balance minus the month's profit (floored at 1).
    """
    by_month = {}
    for r in rows:
        month = r.iso[:7]
        entry = by_month.setdefault(month, {"profit": 0.0, "base_start": None, "final_end": None})
        if r.profit is not None:
            entry["profit"] += r.profit
        if entry["base_start"] is None and r.base_balance is not None and r.base_balance > 0:
            entry["base_start"] = r.base_balance
        if r.final_balance is not None and r.final_balance > 0:
            entry["final_end"] = r.final_balance

    months = sorted(by_month)
    summary = []
    for i, month in enumerate(months):
        entry = by_month[month]
        profit = entry["profit"]
        final_end = entry["final_end"]
        base = entry["base_start"]

        if not base and i > 0:
            base = by_month[months[i - 1]]["final_end"]
        if not base and final_end is not None and final_end > 0:
            base = max(1.0, final_end - profit)

        summary.append({
            "month": month,
            "label": f"{MONTH_NAMES[int(month[5:7]) - 1]} {month[:4]}",
            "profit": profit,
            "return_pct": profit / base if base else 0.0,
            "base_start": base,
            "final_end": final_end,
        })
    return summary


def get_balance_evolution(monthly) -> list[dict]:
    """Month-end balance, carrying the last known balance over empty months."""
    running = None
    evolution = []
    for m in monthly:
        if m["final_end"] is not None:
            running = m["final_end"]
        evolution.append({"month": m["month"], "label": m["label"], "balance": running})
    return evolution


def get_movement_details(rows) -> list[dict]:
    details = []
    for r in rows:
        if not (r.increment or r.decrement):
            continue
        details.append({
            "iso": r.iso,
            "label": r.label,
            "increment": r.increment or 0.0,
            "decrement": r.decrement or 0.0,
            "net": (r.increment or 0.0) - (r.decrement or 0.0),
        })
    return details


def get_client_stats(rows, total_assets=None) -> dict:
    """KPIs for the client panel, taken from the latest row with data."""
    last = None
    for r in reversed(rows):
        if r.final_balance is not None or r.base_balance is not None or r.cumulative_profit is not None:
            last = r
            break

    if last is None:
        estimated_balance = 0.0
    elif last.final_balance is not None:
        estimated_balance = last.final_balance
    else:
        estimated_balance = last.base_balance or 0.0

    last_month = last.iso[:7] if last else None
    month_rows = [r for r in rows if last_month and r.iso.startswith(last_month)]
    monthly_profit = sum(r.profit or 0.0 for r in month_rows)

    finals_in_month = [r.final_balance for r in month_rows if r.final_balance is not None and r.final_balance > 0]
    bases_in_month = [r.base_balance for r in month_rows if r.base_balance is not None and r.base_balance > 0]
    prev_finals = [
        r.final_balance for r in rows
        if last_month and r.iso < f"{last_month}-01" and r.final_balance is not None and r.final_balance > 0
    ]

    if bases_in_month:
        month_start = bases_in_month[0]
    elif prev_finals:
        month_start = prev_finals[-1]
    elif finals_in_month:
        month_start = finals_in_month[0]
    else:
        month_start = 0.0

    return {
        "estimated_balance": estimated_balance,
        "total_profit": (last.cumulative_profit if last else None) or 0.0,
        "daily_profit": (last.profit if last else None) or 0.0,
        "profit_pct": (last.profit_pct if last else None) or 0.0,
        "participation": (last.share_pct if last else None) or 0.0,
        "capital_in": sum(r.increment or 0.0 for r in rows),
        "capital_out": sum(r.decrement or 0.0 for r in rows),
        "last_month": last_month,
        "monthly_profit": monthly_profit,
        "monthly_return": monthly_profit / month_start if month_start else 0.0,
        "proportion": estimated_balance / total_assets if total_assets else 0.0,
    }


def get_client_report(snapshot, roster, client_id, year=None) -> dict:
    """Everything the client report page shows, for one client and year."""
    rows = year_rows(snapshot.client_rows_by_id.get(client_id, []), year)

    capital_in = sum(r.increment or 0.0 for r in rows)
    capital_out = sum(r.decrement or 0.0 for r in rows)

    balance = 0.0
    for r in reversed(rows):
        if r.final_balance is not None and r.final_balance > 0:
            balance = r.final_balance
            break
    else:
        for r in reversed(rows):
            if r.base_balance is not None and r.base_balance > 0:
                balance = r.base_balance
                break

    total_profit = balance + capital_out - capital_in
    monthly = get_monthly_summary(rows)

    movements = []
    for r in rows:
        if r.increment and r.increment > 0:
            movements.append({"iso": r.iso, "type": "increment", "amount": r.increment, "balance": r.final_balance or 0.0})
        if r.decrement and r.decrement > 0:
            movements.append({"iso": r.iso, "type": "decrement", "amount": r.decrement, "balance": r.final_balance or 0.0})

    with_data = [m for m in monthly if m["profit"] != 0 or m["return_pct"] != 0 or m["final_end"]]
    last_month = with_data[-1] if with_data else None

    return {
        "client_id": client_id,
        "client_name": roster.name_of(client_id),
        "capital_in": capital_in,
        "capital_out": capital_out,
        "balance": balance,
        "total_profit": total_profit,
        "return_pct": total_profit / capital_in if capital_in > 0 else 0.0,
        "monthly": monthly,
        "evolution": get_balance_evolution(monthly),
        "movements": movements,
        "last_month_profit": last_month["profit"] if last_month else 0.0,
        "last_month_return": last_month["return_pct"] if last_month else 0.0,
        "twr_ytd": calculate_twr(rows).twr,
        "twr_monthly": calculate_all_months_twr(rows),
    }


# ============================================================
# PORTFOLIO METRICS
# ============================================================

def calculate_efficiency_metrics(twr_series):
    """
    Annualized volatility, Sharpe and Sortino from a growth-of-1 curve.
    Uses RISK_FREE_RATE from config.
    """
    empty = {"volatility": None, "sharpe": None, "sortino": None}
    if twr_series.empty or len(twr_series) < 2:
        return empty

    daily_rets = twr_series.pct_change().dropna()
    if len(daily_rets) < 2:
        return empty

    rf_daily = (1 + RISK_FREE_RATE) ** (1 / TRADING_DAYS) - 1
    excess_rets = daily_rets - rf_daily
    mean_excess = excess_rets.mean() * TRADING_DAYS

    volatility = daily_rets.std() * np.sqrt(TRADING_DAYS)
    sharpe = mean_excess / volatility if volatility > 0 else None

    downside_rets = excess_rets[excess_rets < 0]
    if downside_rets.empty:
        sortino = None
    else:
        downside_dev = np.sqrt((downside_rets ** 2).mean()) * np.sqrt(TRADING_DAYS)
        sortino = mean_excess / downside_dev if downside_dev > 0 else None

    return {
        "volatility": float(volatility),
        "sharpe": None if sharpe is None else float(sharpe),
        "sortino": None if sortino is None else float(sortino),
    }


def get_snapshot_metrics(snapshot, year=None) -> dict:
    """Top-level KPIs for the overview page."""
    rows = year_rows(snapshot.daily_rows, year)
    twr = calculate_twr(rows)
    curve = twr_growth_curve(twr)
    _, max_dd, recovery_days = compute_drawdown_series(curve)
    eff = calculate_efficiency_metrics(curve)

    return {
        "assets": snapshot.totals.assets,
        "ytd_profit": snapshot.totals.ytd_profit,
        "ytd_return_pct": snapshot.totals.ytd_return_pct,
        "twr_ytd": twr.twr,
        "max_drawdown": max_dd / 100.0,
        "recovery_days": recovery_days,
        **eff,
    }


# ============================================================
# CHARTS
# ============================================================

def _hex_to_rgba(hex_code, alpha=0.2):
    """Helper to convert hex to rgba string."""
    hex_code = hex_code.lstrip('#')
    return f"rgba({int(hex_code[0:2], 16)}, {int(hex_code[2:4], 16)}, {int(hex_code[4:6], 16)}, {alpha})"


def _template(theme):
    return "plotly_white" if theme == "light" else "plotly_dark"


def get_balance_chart(snapshot, year=None, theme="light"):
    """Recorded closes (line) and cumulative profit (area)."""
    df = daily_rows_frame(snapshot)
    if year:
        df = df[df["iso"].str.startswith(f"{year}-")]
    closes = df.dropna(subset=["final"])
    if closes.empty:
        return go.Figure()

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=closes["date"],
        y=closes["final"],
        mode='lines+markers',
        name='Closing Balance',
        line=dict(color=GLOBAL_PALETTE[0], width=2),
        hovertemplate="<b>Close</b>: %{y:,.2f}<extra></extra>"
    ))
    profit = df.dropna(subset=["cumulative_profit"])
    fig.add_trace(go.Scatter(
        x=profit["date"],
        y=profit["cumulative_profit"],
        mode='lines',
        fill='tozeroy',
        name='Cumulative Profit',
        yaxis="y2",
        line=dict(color=GLOBAL_PALETTE[4], width=1),
        fillcolor=_hex_to_rgba(GLOBAL_PALETTE[4], 0.2),
        hovertemplate="<b>Cumulative Profit</b>: %{y:,.2f}<extra></extra>"
    ))
    fig.update_layout(
        yaxis_title="Balance",
        yaxis2=dict(title="Profit", overlaying="y", side="right", showgrid=False),
        template=_template(theme),
        margin=dict(l=40, r=40, t=40, b=40),
        hovermode="x unified"
    )
    return fig


def get_monthly_twr_chart(monthly_twr, theme="light"):
    """Bar per month of independent monthly TWR."""
    if not monthly_twr:
        return go.Figure()

    labels = [m.month for m in monthly_twr]
    values = np.array([m.twr * 100.0 for m in monthly_twr])

    fig = go.Figure(go.Bar(
        x=labels,
        y=values,
        marker_color=np.where(values >= 0, GLOBAL_PALETTE[4], GLOBAL_PALETTE[2]),
        hovertemplate="<b>%{x}</b>: %{y:.2f}%<extra></extra>"
    ))
    fig.update_layout(
        yaxis_title="TWR (%)",
        template=_template(theme),
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def get_drawdown_chart(rows, theme="light"):
    """Underwater chart from the TWR growth curve of `rows`."""
    curve = twr_growth_curve(calculate_twr(rows))
    if curve.empty:
        return go.Figure()

    drawdown_series, max_dd, _ = compute_drawdown_series(curve)

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=drawdown_series.index,
        y=drawdown_series.values,
        mode='lines',
        fill='tozeroy',
        name='Drawdown',
        line=dict(color=GLOBAL_PALETTE[2], width=1),
        fillcolor=_hex_to_rgba(GLOBAL_PALETTE[2], 0.3),
        hovertemplate="<b>Drawdown</b>: %{y:.2f}%<extra></extra>"
    ))
    if max_dd < 0:
        fig.add_annotation(
            x=drawdown_series.idxmin(), y=max_dd,
            text=f"Max Drawdown: {max_dd:.2f}%",
            showarrow=True,
            arrowhead=1,
            yshift=-10
        )
    fig.update_layout(
        yaxis_title="Drawdown (%)",
        template=_template(theme),
        margin=dict(l=40, r=40, t=40, b=40),
        hovermode="x unified",
        yaxis=dict(autorange="reversed")
    )
    return fig


def get_client_profit_chart(monthly, theme="light"):
    """Monthly profit bars with the month's simple return on hover."""
    if not monthly:
        return go.Figure()

    profits = np.array([m["profit"] for m in monthly])
    fig = go.Figure(go.Bar(
        x=[m["label"] for m in monthly],
        y=profits,
        customdata=[m["return_pct"] * 100.0 for m in monthly],
        marker_color=np.where(profits >= 0, GLOBAL_PALETTE[4], GLOBAL_PALETTE[2]),
        hovertemplate="<b>%{x}</b>: %{y:,.2f} (%{customdata:.2f}%)<extra></extra>"
    ))
    fig.update_layout(
        yaxis_title="Profit",
        template=_template(theme),
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def get_evolution_chart(evolution, theme="light"):
    """Month-end balance line."""
    points = [e for e in evolution if e["balance"] is not None]
    if not points:
        return go.Figure()

    fig = go.Figure(go.Scatter(
        x=[e["label"] for e in points],
        y=[e["balance"] for e in points],
        mode='lines+markers',
        line=dict(color=GLOBAL_PALETTE[8], width=2, shape="spline"),
        fill='tozeroy',
        fillcolor=_hex_to_rgba(GLOBAL_PALETTE[8], 0.15),
        hovertemplate="<b>%{x}</b>: %{y:,.2f}<extra></extra>"
    ))
    fig.update_layout(
        yaxis_title="Balance",
        template=_template(theme),
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig
