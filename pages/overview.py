from dash import dcc, html, callback, Input, Output
import dash_bootstrap_components as dbc
import dash_wrappers as dw
from financial_math import calculate_all_months_twr
from report_formatting import fmt_pct_clean, fmt_money_clean
from components.kpi_card import create_kpi_card


def _signed(value):
    return None if value is None else value >= 0


layout = html.Div([
    # KPI Row
    dbc.Row([
        dbc.Col(html.Div(id='kpi-assets-card', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='kpi-profit-card', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='kpi-return-card', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='kpi-twr-card', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='kpi-sharpe-card', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='kpi-drawdown-card', style={'height': '100%'}), width=2),
    ], className="mb-4 g-2"),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Closing Balance & Cumulative Profit", className="card-title p-2"),
            dcc.Graph(id='overview-balance-chart')
        ]), width=12, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Monthly TWR", className="card-title p-2"),
            dcc.Graph(id='overview-monthly-twr-chart')
        ]), width=6, className="mb-4"),
        dbc.Col(dbc.Card([
            html.H5("Drawdown", className="card-title p-2"),
            dcc.Graph(id='overview-drawdown-chart')
        ]), width=6, className="mb-4"),
    ]),
])


@callback(
    [Output('kpi-assets-card', 'children'),
     Output('kpi-profit-card', 'children'),
     Output('kpi-return-card', 'children'),
     Output('kpi-twr-card', 'children'),
     Output('kpi-sharpe-card', 'children'),
     Output('kpi-drawdown-card', 'children'),
     Output('overview-balance-chart', 'figure'),
     Output('overview-monthly-twr-chart', 'figure'),
     Output('overview-drawdown-chart', 'figure')],
    [Input('data-signal', 'data'),
     Input('theme-store', 'data'),
     Input('year-store', 'data')]
)
def update_overview(signal, theme, year):
    snapshot = dw.get_data()["store"].snapshot
    metrics = dw.get_snapshot_metrics(snapshot, year)
    rows = dw.year_rows(snapshot.daily_rows, year)

    sharpe = metrics["sharpe"]
    vol = metrics["volatility"]

    cards = (
        create_kpi_card("Assets", fmt_money_clean(metrics["assets"])),
        create_kpi_card("Profit (YTD)", fmt_money_clean(metrics["ytd_profit"]), is_positive=_signed(metrics["ytd_profit"])),
        create_kpi_card("Return (YTD)", fmt_pct_clean(metrics["ytd_return_pct"]), is_positive=_signed(metrics["ytd_return_pct"])),
        create_kpi_card("TWR (YTD)", fmt_pct_clean(metrics["twr_ytd"]), subtext="Flow-neutral", is_positive=_signed(metrics["twr_ytd"])),
        create_kpi_card(
            "Sharpe Ratio",
            "N/A" if sharpe is None else f"{sharpe:.2f}",
            subtext=None if vol is None else f"Vol {fmt_pct_clean(vol)}",
        ),
        create_kpi_card(
            "Max Drawdown",
            fmt_pct_clean(metrics["max_drawdown"]),
            subtext=f"{metrics['recovery_days']} days to recover" if metrics["recovery_days"] else None,
        ),
    )

    return (
        *cards,
        dw.get_balance_chart(snapshot, year, theme),
        dw.get_monthly_twr_chart(calculate_all_months_twr(rows), theme),
        dw.get_drawdown_chart(rows, theme),
    )
