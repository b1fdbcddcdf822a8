import dash_bootstrap_components as dbc
from dash import html


def create_kpi_card(title, value, subtext=None, is_positive=None):
    """
    KPI card: title, headline value, optional subtext.
    `is_positive` colours the card and adds an arrow; None keeps it neutral.
    """
    subtext_arrow = ""
    subtext_color = "#6c757d"  # Gray default
    main_arrow_span = None

    if is_positive is not None:
        if is_positive:
            color = "#28a745"  # Green
            symbol = "▲"
        else:
            color = "#dc3545"  # Red
            symbol = "▼"

        if subtext:
            subtext_arrow = f"{symbol} "
            subtext_color = color

        main_arrow_span = html.Span(
            f"{symbol} ",
            style={
                'color': color,
                'fontSize': '1.2rem',
                'marginRight': '4px',
                'verticalAlign': 'middle'
            }
        )

    h4_content = [main_arrow_span, value] if main_arrow_span else value

    card_content = [
        html.Div(title, className="text-muted small mb-1", style={'fontSize': '0.75rem', 'fontWeight': '500'}),
        html.H4(h4_content, className="mb-1", style={'fontWeight': '600', 'fontSize': '1.4rem'}),
        # Placeholder keeps card heights equal when there is no subtext
        html.Div(
            f"{subtext_arrow}{subtext}" if subtext else " ",
            style={
                'fontSize': '0.8rem',
                'fontWeight': '500',
                'color': subtext_color if subtext else 'transparent'
            }
        ),
    ]

    return dbc.Card(
        dbc.CardBody(card_content, className="p-2"),
        className="shadow-sm",
        style={
            'borderLeft': f'4px solid {subtext_color if is_positive is not None else "#4C6A92"}',
            'height': '100%'
        }
    )
