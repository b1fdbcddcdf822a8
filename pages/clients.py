import dash
from dash import dcc, html, callback, Input, Output, State
import dash_bootstrap_components as dbc
import dash_ag_grid as dag
import dash_wrappers as dw
from datetime import datetime
from ledger import MOVEMENT_FIELDS
from report_formatting import fmt_pct_clean, fmt_money_clean
from components.kpi_card import create_kpi_card
from pages.ledger import MONEY_FORMAT, PCT_FORMAT

CLIENT_COLUMNS = [
    ("label", "Day", None),
    ("increment", "Increment", MONEY_FORMAT),
    ("decrement", "Decrement", MONEY_FORMAT),
    ("base_balance", "Base Balance", MONEY_FORMAT),
    ("share_pct", "Share", PCT_FORMAT),
    ("final_balance", "Final Balance", MONEY_FORMAT),
    ("profit", "Profit", MONEY_FORMAT),
    ("profit_pct", "Profit %", PCT_FORMAT),
    ("cumulative_profit", "Cumulative Profit", MONEY_FORMAT),
]


def _column_defs():
    defs = []
    for field, header, formatter in CLIENT_COLUMNS:
        col_def = {"field": field, "headerName": header}
        if formatter:
            col_def["valueFormatter"] = formatter
            col_def["type"] = "rightAligned"
        if field in MOVEMENT_FIELDS:
            col_def["editable"] = True
            col_def["cellStyle"] = {"fontWeight": "600"}
        if field == "label":
            col_def["pinned"] = "left"
            col_def["maxWidth"] = 110
        defs.append(col_def)
    return defs


layout = html.Div([
    dbc.Row([
        dbc.Col([
            dbc.Label("Client"),
            dcc.Dropdown(id="client-select", clearable=False, className="text-dark"),
        ], width=4, className="mb-3"),
    ]),

    dbc.Row([
        dbc.Col(html.Div(id='client-kpi-balance', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='client-kpi-profit', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='client-kpi-month', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='client-kpi-share', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='client-kpi-in', style={'height': '100%'}), width=2),
        dbc.Col(html.Div(id='client-kpi-out', style={'height': '100%'}), width=2),
    ], className="mb-4 g-2"),

    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Daily Movements", className="card-title p-2"),
            dag.AgGrid(
                id="client-grid",
                columnDefs=_column_defs(),
                rowData=[],
                defaultColDef={"flex": 1, "minWidth": 100, "resizable": True},
                getRowId="params.data.iso",
                className="ag-theme-alpine-dark",
                style={"height": "60vh"},
                dashGridOptions={"singleClickEdit": True},
            )
        ]), width=8, className="mb-4"),
        dbc.Col(dbc.Card([
            html.H5("Monthly Profit", className="card-title p-2"),
            dcc.Graph(id='client-profit-chart')
        ]), width=4, className="mb-4"),
    ]),
])


@callback(
    [Output('client-select', 'options'),
     Output('client-select', 'value')],
    [Input('data-signal', 'data')],
    [State('client-select', 'value')]
)
def update_client_options(signal, current):
    roster = dw.get_data()["roster"]
    options = [{"label": f"{c.name} ({c.id})", "value": c.id} for c in roster.clients]
    ids = roster.ids
    value = current if current in ids else (ids[0] if ids else None)
    return options, value


@callback(
    [Output('client-kpi-balance', 'children'),
     Output('client-kpi-profit', 'children'),
     Output('client-kpi-month', 'children'),
     Output('client-kpi-share', 'children'),
     Output('client-kpi-in', 'children'),
     Output('client-kpi-out', 'children'),
     Output('client-grid', 'rowData'),
     Output('client-grid', 'scrollTo'),
     Output('client-profit-chart', 'figure')],
    [Input('client-select', 'value'),
     Input('data-signal', 'data'),
     Input('theme-store', 'data'),
     Input('year-store', 'data')]
)
def update_client_panel(client_id, signal, theme, year):
    data = dw.get_data()
    snapshot = data["store"].snapshot
    rows = dw.year_rows(snapshot.client_rows_by_id.get(client_id, []), year)
    stats = dw.get_client_stats(rows, snapshot.totals.assets)
    monthly = dw.get_monthly_summary(rows)

    cards = (
        create_kpi_card("Balance", fmt_money_clean(stats["estimated_balance"]),
                        subtext=f"{fmt_pct_clean(stats['proportion'])} of assets"),
        create_kpi_card("Total Profit", fmt_money_clean(stats["total_profit"]),
                        is_positive=stats["total_profit"] >= 0),
        create_kpi_card("Month Profit", fmt_money_clean(stats["monthly_profit"]),
                        subtext=fmt_pct_clean(stats["monthly_return"]),
                        is_positive=stats["monthly_profit"] >= 0),
        create_kpi_card("Participation", fmt_pct_clean(stats["participation"])),
        create_kpi_card("Capital In", fmt_money_clean(stats["capital_in"])),
        create_kpi_card("Capital Out", fmt_money_clean(stats["capital_out"])),
    )

    focus = dw.get_client_focus_date(rows)
    return (
        *cards,
        dw.grid_rows(rows),
        {"rowId": focus, "rowPosition": "middle"},
        dw.get_client_profit_chart(monthly, theme),
    )


@callback(
    Output('data-signal', 'data', allow_duplicate=True),
    Input('client-grid', 'cellValueChanged'),
    State('client-select', 'value'),
    prevent_initial_call=True
)
def edit_movement(changed, client_id):
    changes = [c for c in dw.parse_cell_changes(changed) if c[1] in MOVEMENT_FIELDS]
    if not client_id or not changes:
        return dash.no_update

    store = dw.get_data()["store"]
    for iso, field, value in changes:
        store.set_client_movement(client_id, iso, field, value)
    return datetime.now().isoformat()
