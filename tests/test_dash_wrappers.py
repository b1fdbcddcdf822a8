import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

import dash_wrappers as dw
from clients import ClientRoster, default_clients
from ledger import Movement, RawLedgerState
from portfolio_engine import ClientDayRow, build_snapshot

D1, D2, D3 = "2026-01-01", "2026-01-02", "2026-01-03"


def _crow(iso, **values):
    return ClientDayRow(iso=iso, label=iso, weekday="", is_weekend=False, **values)


@pytest.fixture()
def ledger_state():
    return RawLedgerState(
        final_by_day={D1: 1000.0, D2: 1100.0},
        movements_by_client={"client-001": {D1: Movement(increment=1000.0)}},
    )


@pytest.fixture()
def snapshot(ledger_state, days):
    return build_snapshot(
        ledger_state.final_by_day,
        ledger_state.movements_by_client,
        clients=["client-001", "client-002"],
        days=days,
    )


@pytest.fixture()
def roster(tmp_path):
    return ClientRoster(default_clients(2), path=str(tmp_path / "clients.json"))


@pytest.fixture()
def app_data(ledger_state, roster, days, memory_backend):
    backend = memory_backend(ledger_state)
    data = dw.init_data(backend=backend, roster=roster, days=days)
    yield data
    dw.reset_data()


class TestInitData:
    def test_hydrates_store(self, app_data, ledger_state):
        assert dw.get_data() is app_data
        assert app_data["store"].read() == ledger_state
        assert app_data["store"].clients == ["client-001", "client-002"]
        assert app_data["store"].snapshot.totals.assets == pytest.approx(1100.0)

    def test_failed_fetch_starts_empty(self, roster, days, memory_backend):
        data = dw.init_data(backend=memory_backend(fail=True), roster=roster, days=days)
        try:
            assert data["store"].read() == RawLedgerState()
        finally:
            dw.reset_data()

    def test_reset_flushes_pending_edit(self, app_data):
        app_data["store"].set_day_final(D3, 1200.0)
        assert app_data["autosave"].pending
        dw.reset_data()
        assert app_data["backend"].saved[-1].final_by_day[D3] == 1200.0


class TestFrames:
    def test_daily_frame(self, snapshot, days):
        df = dw.daily_rows_frame(snapshot)
        assert len(df) == len(days)
        assert pd.api.types.is_datetime64_any_dtype(df["date"])
        assert df.loc[1, "profit"] == pytest.approx(100.0)
        assert np.isnan(df.loc[5, "initial"])

    def test_client_frame(self, snapshot):
        df = dw.client_rows_frame(snapshot, "client-001")
        assert df.loc[1, "final_balance"] == pytest.approx(1100.0)

    def test_unknown_client_frame_is_empty(self, snapshot):
        assert dw.client_rows_frame(snapshot, "client-404").empty

    def test_grid_rows_keep_none(self, snapshot):
        rows = dw.grid_rows(snapshot.daily_rows[:3])
        assert rows[0]["iso"] == D1
        assert rows[2]["final"] is None

    def test_year_rows(self, snapshot):
        assert len(dw.year_rows(snapshot.daily_rows, 2026)) == len(snapshot.daily_rows)
        assert dw.year_rows(snapshot.daily_rows, 2027) == []


class TestCellChanges:
    def test_single_event(self):
        event = {"data": {"iso": D1}, "colId": "final", "value": "1.234,50"}
        assert dw.parse_cell_changes(event) == [(D1, "final", 1234.5)]

    def test_event_list_and_blank(self):
        events = [
            {"data": {"iso": D1}, "colId": "increment", "value": 100},
            {"data": {"iso": D2}, "colId": "decrement", "value": ""},
            {"data": {}, "colId": "final", "value": 1},
        ]
        assert dw.parse_cell_changes(events) == [(D1, "increment", 100.0), (D2, "decrement", None)]

    def test_empty(self):
        assert dw.parse_cell_changes(None) == []


class TestFocusDates:
    def test_last_recorded_close(self, app_data):
        assert dw.get_focus_date(app_data["store"], 2026) == D2

    def test_client_last_movement(self, snapshot):
        assert dw.get_client_focus_date(snapshot.client_rows_by_id["client-001"]) == D1


class TestMonthlySummary:
    def test_base_from_month(self):
        rows = [_crow("2026-01-05", base_balance=1000.0, final_balance=1100.0, profit=100.0)]
        summary = dw.get_monthly_summary(rows)
        assert summary[0]["label"] == "Jan 2026"
        assert summary[0]["return_pct"] == pytest.approx(0.10)

    def test_base_falls_back_to_previous_month(self):
        rows = [
            _crow("2026-01-05", base_balance=1000.0, final_balance=1100.0, profit=100.0),
            _crow("2026-02-03", base_balance=-5.0, final_balance=1210.0, profit=110.0),
        ]
        feb = dw.get_monthly_summary(rows)[1]
        assert feb["base_start"] == pytest.approx(1100.0)
        assert feb["return_pct"] == pytest.approx(0.10)

    def test_base_falls_back_to_final_minus_profit(self):
        rows = [_crow("2026-03-10", final_balance=500.0, profit=50.0)]
        march = dw.get_monthly_summary(rows)[0]
        assert march["base_start"] == pytest.approx(450.0)

    def test_no_data_month(self):
        march = dw.get_monthly_summary([_crow("2026-03-10")])[0]
        assert march["profit"] == 0.0
        assert march["return_pct"] == 0.0

    def test_balance_evolution_carries_forward(self):
        monthly = [
            {"month": "2026-01", "label": "Jan 2026", "final_end": 100.0},
            {"month": "2026-02", "label": "Feb 2026", "final_end": None},
        ]
        assert [e["balance"] for e in dw.get_balance_evolution(monthly)] == [100.0, 100.0]


class TestClientAnalytics:
    def test_stats(self, snapshot):
        rows = snapshot.client_rows_by_id["client-001"]
        stats = dw.get_client_stats(rows, snapshot.totals.assets)
        assert stats["estimated_balance"] == pytest.approx(1100.0)
        assert stats["total_profit"] == pytest.approx(100.0)
        assert stats["participation"] == pytest.approx(1.0)
        assert stats["capital_in"] == pytest.approx(1000.0)
        assert stats["capital_out"] == 0.0
        assert stats["monthly_profit"] == pytest.approx(100.0)
        assert stats["monthly_return"] == pytest.approx(0.10)
        assert stats["proportion"] == pytest.approx(1.0)

    def test_stats_for_dormant_client(self, snapshot):
        stats = dw.get_client_stats(snapshot.client_rows_by_id["client-002"], snapshot.totals.assets)
        assert stats["estimated_balance"] == 0.0
        assert stats["last_month"] is None

    def test_movement_details(self, snapshot):
        details = dw.get_movement_details(snapshot.client_rows_by_id["client-001"])
        assert details == [{"iso": D1, "label": "01 Jan", "increment": 1000.0, "decrement": 0.0, "net": 1000.0}]

    def test_report(self, snapshot, roster):
        report = dw.get_client_report(snapshot, roster, "client-001", 2026)
        assert report["client_name"] == "Client 001"
        assert report["capital_in"] == pytest.approx(1000.0)
        assert report["balance"] == pytest.approx(1100.0)
        assert report["total_profit"] == pytest.approx(100.0)
        assert report["return_pct"] == pytest.approx(0.10)
        assert report["twr_ytd"] == pytest.approx(0.10)
        assert [m.month for m in report["twr_monthly"]] == ["2026-01"]
        assert report["movements"] == [{"iso": D1, "type": "increment", "amount": 1000.0, "balance": 1000.0}]
        assert report["last_month_profit"] == pytest.approx(100.0)


class TestMetricsAndCharts:
    def test_efficiency_needs_history(self):
        short = pd.Series([1.0], index=pd.to_datetime([D1]))
        assert dw.calculate_efficiency_metrics(short) == {"volatility": None, "sharpe": None, "sortino": None}

    def test_efficiency_values(self):
        curve = pd.Series(
            [1.0, 1.01, 0.99, 1.02, 1.03],
            index=pd.date_range("2026-01-01", periods=5),
        )
        metrics = dw.calculate_efficiency_metrics(curve)
        assert metrics["volatility"] > 0
        assert metrics["sharpe"] is not None
        assert metrics["sortino"] is not None

    def test_snapshot_metrics(self, snapshot):
        metrics = dw.get_snapshot_metrics(snapshot, 2026)
        assert metrics["assets"] == pytest.approx(1100.0)
        assert metrics["ytd_profit"] == pytest.approx(100.0)
        assert metrics["twr_ytd"] == pytest.approx(0.10)
        assert metrics["max_drawdown"] == 0.0

    def test_charts_build(self, snapshot, roster):
        report = dw.get_client_report(snapshot, roster, "client-001", 2026)
        rows = dw.year_rows(snapshot.daily_rows, 2026)
        figures = [
            dw.get_balance_chart(snapshot, 2026, "dark"),
            dw.get_monthly_twr_chart(report["twr_monthly"], "light"),
            dw.get_drawdown_chart(rows),
            dw.get_client_profit_chart(report["monthly"]),
            dw.get_evolution_chart(report["evolution"]),
        ]
        assert all(isinstance(f, go.Figure) for f in figures)
        assert len(figures[0].data) == 2

    def test_empty_charts(self, days):
        empty = build_snapshot({}, {}, days=days)
        assert len(dw.get_balance_chart(empty, 2026).data) == 0
        assert len(dw.get_monthly_twr_chart([]).data) == 0
