from dash import dcc, html, callback, Input, Output, State
import dash_bootstrap_components as dbc
import dash_ag_grid as dag
import dash_wrappers as dw
from report_formatting import fmt_pct_clean, fmt_money_clean
from components.kpi_card import create_kpi_card
from pages.ledger import MONEY_FORMAT, PCT_FORMAT

layout = html.Div([
    dbc.Row([
        dbc.Col([
            dbc.Label("Client"),
            dcc.Dropdown(id="report-client-select", clearable=False, className="text-dark"),
        ], width=4, className="mb-3"),
        dbc.Col(html.H4(id="report-title", className="mt-4"), width=8),
    ]),

    dbc.Row([
        dbc.Col(html.Div(id='report-kpi-in', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='report-kpi-out', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='report-kpi-balance', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='report-kpi-profit', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='report-kpi-return', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='report-kpi-twr', style={'height': '100%'}), width=2),
    ], className="mb-4 g-2"),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Balance Evolution", className="card-title p-2"),
            dcc.Graph(id='report-evolution-chart')
        ]), width=7, className="mb-4"),
        dbc.Col(dbc.Card([
            html.H5("Monthly Results", className="card-title p-2"),
            dag.AgGrid(
                id="report-monthly-grid",
                columnDefs=[
                    {"field": "label", "headerName": "Month"},
                    {"field": "profit", "headerName": "Profit", "valueFormatter": MONEY_FORMAT, "type": "rightAligned"},
                    {"field": "return_pct", "headerName": "Return", "valueFormatter": PCT_FORMAT, "type": "rightAligned"},
                    {"field": "twr", "headerName": "TWR", "valueFormatter": PCT_FORMAT, "type": "rightAligned"},
                ],
                rowData=[],
                defaultColDef={"flex": 1, "resizable": True},
                className="ag-theme-alpine-dark",
                style={"height": "420px"},
            )
        ]), width=5, className="mb-4"),
    ]),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Movements", className="card-title p-2"),
            dag.AgGrid(
                id="report-movements-grid",
                columnDefs=[
                    {"field": "iso", "headerName": "Date"},
                    {"field": "type", "headerName": "Type"},
                    {"field": "amount", "headerName": "Amount", "valueFormatter": MONEY_FORMAT, "type": "rightAligned"},
                    {"field": "balance", "headerName": "Balance After", "valueFormatter": MONEY_FORMAT, "type": "rightAligned"},
                ],
                rowData=[],
                defaultColDef={"flex": 1, "resizable": True},
                className="ag-theme-alpine-dark",
                style={"height": "320px"},
            )
        ]), width=12, className="mb-4"),
    ]),
])


@callback(
    [Output('report-client-select', 'options'),
     Output('report-client-select', 'value')],
    [Input('data-signal', 'data')],
    [State('report-client-select', 'value')]
)
def update_report_options(signal, current):
    roster = dw.get_data()["roster"]
    options = [{"label": f"{c.name} ({c.id})", "value": c.id} for c in roster.clients]
    ids = roster.ids
    value = current if current in ids else (ids[0] if ids else None)
    return options, value


@callback(
    [Output('report-title', 'children'),
     Output('report-kpi-in', 'children'),
     Output('report-kpi-out', 'children'),
     Output('report-kpi-balance', 'children'),
     Output('report-kpi-profit', 'children'),
     Output('report-kpi-return', 'children'),
     Output('report-kpi-twr', 'children'),
     Output('report-evolution-chart', 'figure'),
     Output('report-monthly-grid', 'rowData'),
     Output('report-movements-grid', 'rowData')],
    [Input('report-client-select', 'value'),
     Input('data-signal', 'data'),
     Input('theme-store', 'data'),
     Input('year-store', 'data')]
)
def update_report(client_id, signal, theme, year):
    data = dw.get_data()
    report = dw.get_client_report(data["store"].snapshot, data["roster"], client_id, year)

    twr_by_month = {m.month: m.twr for m in report["twr_monthly"]}
    monthly_rows = [
        {**m, "twr": twr_by_month.get(m["month"])}
        for m in report["monthly"]
    ]

    last_month_text = (
        f"Last month {fmt_money_clean(report['last_month_profit'])} "
        f"({fmt_pct_clean(report['last_month_return'])})"
    )

    return (
        f"{report['client_name']} · {year or ''}",
        create_kpi_card("Capital In", fmt_money_clean(report["capital_in"])),
        create_kpi_card("Capital Out", fmt_money_clean(report["capital_out"])),
        create_kpi_card("Balance", fmt_money_clean(report["balance"])),
        create_kpi_card("Total Profit", fmt_money_clean(report["total_profit"]),
                        subtext=last_month_text, is_positive=report["total_profit"] >= 0),
        create_kpi_card("Return", fmt_pct_clean(report["return_pct"]),
                        subtext="On capital in", is_positive=report["return_pct"] >= 0),
        create_kpi_card("TWR (YTD)", fmt_pct_clean(report["twr_ytd"]),
                        subtext="Flow-neutral", is_positive=report["twr_ytd"] >= 0),
        dw.get_evolution_chart(report["evolution"], theme),
        monthly_rows,
        report["movements"],
    )
