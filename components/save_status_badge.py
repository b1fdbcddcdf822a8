from datetime import datetime

import dash_bootstrap_components as dbc
from dash import html

STATUS_STYLES = {
    "idle": ("Up to date", "secondary", "No edits since the ledger was loaded."),
    "dirty": ("Unsaved", "warning", "Edits are waiting to be written to storage."),
    "saving": ("Saving…", "info", "Writing the ledger to storage."),
    "success": ("Saved", "success", "All edits are stored."),
    "error": ("Save failed", "danger", "The last save failed. The next edit will try again."),
}


def create_save_status_badge(save_status, last_saved_at=None, backend_label=None):
    """
    Badge for the store's persistence status.
    save_status: one of idle | dirty | saving | success | error
    """
    label, color, header = STATUS_STYLES.get(save_status, STATUS_STYLES["idle"])

    lines = [header]
    if backend_label:
        lines.append(f"Storage: {backend_label}")
    if last_saved_at:
        lines.append(f"Last saved: {datetime.fromtimestamp(last_saved_at).strftime('%Y-%m-%d %H:%M:%S')}")

    tooltip_content = html.Div(
        [html.P(lines[0], className="mb-2 fw-bold")] + [html.P(line, className="mb-0 small") for line in lines[1:]],
        style={"textAlign": "left", "padding": "5px"}
    )

    badge = dbc.Badge(
        label,
        color=color,
        pill=True,
        id="save-status-badge",
        style={"cursor": "pointer", "fontSize": "0.8rem"}
    )

    return html.Div([
        badge,
        dbc.Tooltip(
            tooltip_content,
            target="save-status-badge",
            placement="bottom",
        )
    ], style={"display": "inline-block", "marginLeft": "10px"})
