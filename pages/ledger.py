import dash
from dash import html, callback, Input, Output
import dash_bootstrap_components as dbc
import dash_ag_grid as dag
import dash_wrappers as dw
from datetime import datetime

MONEY_FORMAT = {"function": "params.value == null ? '' : d3.format(',.2f')(params.value)"}
PCT_FORMAT = {"function": "params.value == null ? '' : d3.format('.2%')(params.value)"}

COLUMNS = [
    ("label", "Day", None),
    ("weekday", "", None),
    ("increments", "Increments", MONEY_FORMAT),
    ("decrements", "Decrements", MONEY_FORMAT),
    ("initial", "Initial", MONEY_FORMAT),
    ("final", "Final (close)", MONEY_FORMAT),
    ("profit", "Profit", MONEY_FORMAT),
    ("profit_pct", "Profit %", PCT_FORMAT),
    ("cumulative_profit", "Cumulative Profit", MONEY_FORMAT),
]


def _column_defs():
    defs = []
    for field, header, formatter in COLUMNS:
        col_def = {"field": field, "headerName": header}
        if formatter:
            col_def["valueFormatter"] = formatter
            col_def["type"] = "rightAligned"
        if field == "final":
            col_def["editable"] = True
            col_def["cellStyle"] = {"fontWeight": "600"}
        if field in ("label", "weekday"):
            col_def["pinned"] = "left"
            col_def["maxWidth"] = 110
        defs.append(col_def)
    return defs


layout = html.Div([
    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Daily Ledger", className="card-title p-2"),
            html.P(
                "Enter the portfolio's closing balance in the Final column. "
                "Days after the last recorded close stay blank.",
                className="text-muted small px-2"
            ),
            dag.AgGrid(
                id="ledger-grid",
                columnDefs=_column_defs(),
                rowData=[],
                defaultColDef={"flex": 1, "minWidth": 100, "resizable": True},
                getRowId="params.data.iso",
                rowClassRules={"text-muted": "params.data.is_weekend"},
                className="ag-theme-alpine-dark",
                style={"height": "70vh"},
                dashGridOptions={"singleClickEdit": True},
            )
        ]), width=12, className="mb-4"),
    ]),
])


@callback(
    [Output('ledger-grid', 'rowData'),
     Output('ledger-grid', 'scrollTo')],
    [Input('data-signal', 'data'),
     Input('year-store', 'data')]
)
def update_ledger(signal, year):
    store = dw.get_data()["store"]
    rows = dw.year_rows(store.snapshot.daily_rows, year)
    focus = dw.get_focus_date(store, year)
    return dw.grid_rows(rows), {"rowId": focus, "rowPosition": "middle"}


@callback(
    Output('data-signal', 'data', allow_duplicate=True),
    Input('ledger-grid', 'cellValueChanged'),
    prevent_initial_call=True
)
def edit_final(changed):
    changes = [c for c in dw.parse_cell_changes(changed) if c[1] == "final"]
    if not changes:
        return dash.no_update

    store = dw.get_data()["store"]
    for iso, _, value in changes:
        store.set_day_final(iso, value)
    return datetime.now().isoformat()
