import dash
from dash import dcc, html, callback, Input, Output, State
import dash_bootstrap_components as dbc
import dash_wrappers as dw
from datetime import datetime

layout = html.Div([
    dbc.Row([
        dbc.Col(dbc.Card([
            html.H5("Clients", className="card-title p-2"),
            html.Div([
                html.P("Add or remove clients. Removing a client keeps their movements in the ledger."),

                dbc.InputGroup([
                    dbc.Input(id="settings-client-name", placeholder="Client name (optional)"),
                    dbc.Button("Add Client", id="btn-add-client", color="primary"),
                ], className="mb-3"),

                dbc.InputGroup([
                    dcc.Dropdown(id="settings-remove-select", placeholder="Select client",
                                 className="text-dark", style={"flex": 1}),
                    dbc.Button("Remove", id="btn-remove-client", color="danger"),
                ], className="mb-3"),

                html.Div(id='roster-status', className="text-muted")
            ], className="p-3")
        ]), width=6),

        dbc.Col(dbc.Card([
            html.H5("Storage", className="card-title p-2"),
            html.Div([
                html.P(id="settings-storage-label"),
                html.P("Edits are saved automatically shortly after you stop typing.", className="text-muted small"),
                dbc.Button("Save Now", id="btn-save-now", color="secondary", className="mb-2"),
                html.Div(id='save-now-status', className="text-muted")
            ], className="p-3")
        ]), width=6),
    ]),
])


@callback(
    [Output('settings-remove-select', 'options'),
     Output('settings-storage-label', 'children')],
    [Input('data-signal', 'data')]
)
def update_settings(signal):
    data = dw.get_data()
    options = [{"label": f"{c.name} ({c.id})", "value": c.id} for c in data["roster"].clients]
    return options, f"Storage: {data['backend'].describe()}"


@callback(
    [Output('data-signal', 'data', allow_duplicate=True),
     Output('roster-status', 'children'),
     Output('settings-client-name', 'value')],
    [Input('btn-add-client', 'n_clicks'),
     Input('btn-remove-client', 'n_clicks')],
    [State('settings-client-name', 'value'),
     State('settings-remove-select', 'value')],
    prevent_initial_call=True
)
def update_roster(add_clicks, remove_clicks, name, remove_id):
    ctx = dash.callback_context
    if not ctx.triggered:
        return dash.no_update, "", dash.no_update

    data = dw.get_data()
    roster = data["roster"]
    triggered_id = ctx.triggered_id

    if triggered_id == "btn-add-client":
        profile = roster.add(name)
        msg = f"Added {profile.name} ({profile.id})"
    elif triggered_id == "btn-remove-client":
        if not remove_id:
            return dash.no_update, "Select a client to remove.", dash.no_update
        if not roster.remove(remove_id):
            return dash.no_update, f"{remove_id} not found.", dash.no_update
        msg = f"Removed {remove_id}"
    else:
        return dash.no_update, "", dash.no_update

    data["store"].set_clients(roster.ids)
    return datetime.now().isoformat(), msg, ""


@callback(
    Output('save-now-status', 'children'),
    Input('btn-save-now', 'n_clicks'),
    prevent_initial_call=True
)
def save_now(n):
    if dw.get_data()["autosave"].flush():
        return f"Saved at {datetime.now().strftime('%H:%M:%S')}"
    return "Save failed. Check the server log."
