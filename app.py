import logging

import dash
from dash import dcc, html, Input, Output, State
import dash_bootstrap_components as dbc
from datetime import datetime

import config

# Import wrappers
import dash_wrappers as dw

# Import Components
from components.save_status_badge import create_save_status_badge

# Import Pages
from pages import overview, ledger, clients, reports, settings

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize App
app = dash.Dash(
    __name__,
    external_stylesheets=[dbc.themes.CYBORG],
    suppress_callback_exceptions=True,
    title="Portfolio Ledger"
)

# Initialize Data Cache
dw.get_data()
logger.info("Initial data load complete.")

YEARS = list(range(config.START_YEAR, config.END_YEAR + 1))

# Sidebar Component
sidebar = html.Div(
    [
        html.H3("LEDGER", className="display-6"),
        html.P("Daily Portfolio Ledger", className="lead"),
        html.Div(id="save-status-container", className="mb-2"),
        html.Hr(),

        dbc.Nav(
            [
                dbc.NavLink("Overview", href="/", active="exact"),
                dbc.NavLink("Daily Ledger", href="/ledger", active="exact"),
                dbc.NavLink("Clients", href="/clients", active="exact"),
                dbc.NavLink("Reports", href="/reports", active="exact"),
                dbc.NavLink("Settings", href="/settings", active="exact"),
            ],
            vertical=True,
            pills=True,
        ),

        html.Hr(),

        # Controls
        html.Div([
            dbc.Label("Theme"),
            dbc.Switch(id="theme-switch", label="Dark Mode", value=True, className="mb-2"),

            dbc.Label("Year"),
            dcc.Dropdown(
                id="year-dropdown",
                options=[{"label": str(y), "value": y} for y in YEARS],
                value=YEARS[0],
                clearable=False,
                className="mb-2 text-dark"
            ),
        ]),
    ],
    id="sidebar",
    className="sidebar",
)

# Content Container
content = html.Div(id="page-content", className="content")

# Main Layout
app.layout = html.Div(
    [
        dcc.Location(id="url"),

        # Stores for Global State
        dcc.Store(id="data-signal", data=datetime.now().isoformat()),
        dcc.Store(id="theme-store", data="dark"),
        dcc.Store(id="year-store", data=YEARS[0]),

        # Save status polling
        dcc.Interval(id="save-status-interval", interval=2000),

        # Toggle Button
        html.Button(
            "☰",
            id="btn-sidebar-toggle",
            className="btn btn-secondary",
            style={
                "position": "fixed",
                "top": "10px",
                "left": "10px",
                "zIndex": 1100,
                "borderRadius": "50%",
                "width": "40px",
                "height": "40px",
                "display": "flex",
                "alignItems": "center",
                "justifyContent": "center",
                "fontSize": "1.2rem",
                "paddingBottom": "4px"
            }
        ),

        sidebar,
        content,
    ],
    id="main-container",
    **{"data-theme": "dark"}
)

# Validation Layout (Required for multi-page apps with global callbacks)
app.validation_layout = html.Div([
    app.layout,
    overview.layout,
    ledger.layout,
    clients.layout,
    reports.layout,
    settings.layout,
])

# ============================================================
# CALLBACKS
# ============================================================

# 1. Router
@app.callback(Output("page-content", "children"), [Input("url", "pathname")])
def render_page_content(pathname):
    if pathname == "/":
        return overview.layout
    elif pathname == "/ledger":
        return ledger.layout
    elif pathname == "/clients":
        return clients.layout
    elif pathname == "/reports":
        return reports.layout
    elif pathname == "/settings":
        return settings.layout
    return dbc.Container(
        [
            html.H1("404: Not found", className="text-danger"),
            html.Hr(),
            html.P(f"The pathname {pathname} was not recognised..."),
        ],
        className="py-3"
    )

# 2. Global State Updates
@app.callback(
    [Output("theme-store", "data"),
     Output("main-container", "data-theme"),
     Output("year-store", "data")],
    [Input("theme-switch", "value"),
     Input("year-dropdown", "value")]
)
def update_global_state(is_dark, year):
    theme = "dark" if is_dark else "light"
    return theme, theme, year

# 3. Save Status Badge
@app.callback(
    Output("save-status-container", "children"),
    [Input("save-status-interval", "n_intervals"),
     Input("data-signal", "data")]
)
def update_save_status(n, signal):
    data = dw.get_data()
    store = data["store"]
    return create_save_status_badge(store.save_status, store.last_saved_at, data["backend"].describe())

# 4. Sidebar Toggle Logic
@app.callback(
    [Output("sidebar", "className"),
     Output("page-content", "className")],
    [Input("btn-sidebar-toggle", "n_clicks")],
    [State("sidebar", "className"),
     State("page-content", "className")]
)
def toggle_sidebar(n, sidebar_class, content_class):
    if n:
        if "hidden" in sidebar_class:
            return sidebar_class.replace(" hidden", ""), content_class.replace(" expanded", "")
        else:
            return sidebar_class + " hidden", content_class + " expanded"
    return sidebar_class, content_class

if __name__ == "__main__":
    app.run(debug=True)
