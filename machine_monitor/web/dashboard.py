from __future__ import annotations

from typing import List

import dash
import dash_bootstrap_components as dbc
import plotly.graph_objs as go
from dash import Dash, Input, Output, dcc, html

from ..core.models import ALERT_CRITICAL, FEATURES, RISK_HIGH, RISK_MEDIUM
from ..core.scoring import score
from ..core.store import MonitorStore

# ───────────────────────────── styling ──────────────────────────────
COLORS = {
    "bg_dark": "#0f1115",
    "bg_panel": "#1a1d24",
    "border": "#2c313c",
    "text_primary": "#f1f3f5",
    "text_secondary": "#9aa3ad",
    "healthy": "#2fbf71",
    "warning": "#f5a524",
    "faulty": "#e5484d",
    "accent": "#3e9bff",
}

RISK_COLORS = {RISK_HIGH: COLORS["faulty"], RISK_MEDIUM: COLORS["warning"]}

SENSOR_LABELS = {
    "vibration": "Vibration (g)",
    "temperature": "Temperature (°C)",
    "current": "Current (A)",
    "sound": "Sound (dB)",
}

PANEL_STYLE = {
    "backgroundColor": COLORS["bg_panel"],
    "padding": "16px",
    "borderRadius": "10px",
    "border": f"1px solid {COLORS['border']}",
    "marginBottom": "20px",
}

TREND_POINTS = 120


def _stat_card(title: str, value_id: str, color: str) -> dbc.Col:
    return dbc.Col([
        html.Div([
            html.H4(title, style={"color": COLORS["text_secondary"], "fontSize": "0.9rem"}),
            html.Div(id=value_id, children="0",
                     style={"color": color, "fontSize": "1.8rem", "fontWeight": "bold"}),
        ], style={**PANEL_STYLE, "textAlign": "center"})
    ], width=3)


class DashboardApp:
    """Live fleet view; every callback reads from the shared store."""

    def __init__(self, store: MonitorStore, app: Dash, refresh_ms: int = 3000) -> None:
        self.store = store
        self.app = app
        self.refresh_ms = refresh_ms
        self._layout()
        self._callbacks()

    def _layout(self) -> None:
        self.app.layout = html.Div([
            html.H1("Machine Fault Monitor",
                    style={"color": COLORS["text_primary"], "fontWeight": "800", "marginBottom": "4px"}),
            html.P("Synthetic sensor stream • rule-based fault risk • recent alerts",
                   style={"color": COLORS["text_secondary"], "marginBottom": "24px"}),

            dbc.Row([
                _stat_card("Machines", "count-total", COLORS["text_primary"]),
                _stat_card("Healthy", "count-healthy", COLORS["healthy"]),
                _stat_card("Warning", "count-warning", COLORS["warning"]),
                _stat_card("Faulty", "count-faulty", COLORS["faulty"]),
            ]),

            html.Div([
                html.H3("CURRENT PREDICTION", style={"color": COLORS["accent"], "fontSize": "1.1rem"}),
                html.Div(id="prediction-text", style={"color": COLORS["text_primary"], "fontSize": "1.2rem"}),
            ], style=PANEL_STYLE),

            html.Div([
                html.Div([
                    html.H3("SENSOR TREND", style={"color": COLORS["accent"], "fontSize": "1.1rem"}),
                    dcc.Dropdown(
                        id="sensor-select",
                        options=[{"label": SENSOR_LABELS[f], "value": f} for f in FEATURES],
                        value="vibration",
                        clearable=False,
                        style={"width": "260px", "color": "#111"},
                    ),
                ], style={"display": "flex", "justifyContent": "space-between", "alignItems": "center"}),
                dcc.Graph(id="sensor-graph", config={"displayModeBar": False}),
            ], style=PANEL_STYLE),

            html.Div([
                html.H3("RECENT ALERTS", style={"color": COLORS["accent"], "fontSize": "1.1rem"}),
                html.Div(id="alert-list"),
            ], style=PANEL_STYLE),

            dcc.Interval(id="tick", interval=self.refresh_ms, n_intervals=0),
        ], style={"backgroundColor": COLORS["bg_dark"], "minHeight": "100vh", "padding": "24px"})

    def _callbacks(self) -> None:
        @self.app.callback(
            Output("count-total", "children"),
            Output("count-healthy", "children"),
            Output("count-warning", "children"),
            Output("count-faulty", "children"),
            Input("tick", "n_intervals"),
        )
        def update_counts(_: int):
            c = self.store.machines.counts()
            return str(c["total"]), str(c["healthy"]), str(c["warning"]), str(c["faulty"])

        @self.app.callback(Output("prediction-text", "children"), Input("tick", "n_intervals"))
        def update_prediction(_: int):
            latest = self.store.readings.latest()
            if latest is None:
                return "Waiting for data..."
            p = score(latest, self.store.training)
            color = RISK_COLORS.get(p.risk, COLORS["healthy"])
            return [
                html.Span(f"{p.risk} risk", style={"color": color, "fontWeight": "bold"}),
                html.Span(f" • {p.probability}% failure probability • time to failure {p.time_to_failure}",
                          style={"color": COLORS["text_secondary"]}),
            ]

        @self.app.callback(
            Output("sensor-graph", "figure"),
            Input("tick", "n_intervals"),
            Input("sensor-select", "value"),
        )
        def update_graph(_: int, sensor: str):
            readings = self.store.readings.read(TREND_POINTS)
            fig = go.Figure()
            fig.add_trace(go.Scatter(
                x=[r.timestamp for r in readings],
                y=[getattr(r, sensor) for r in readings],
                mode="lines",
                line={"color": COLORS["accent"], "width": 2},
                name=SENSOR_LABELS[sensor],
            ))
            fig.update_layout(
                template="plotly_dark",
                paper_bgcolor=COLORS["bg_panel"],
                plot_bgcolor=COLORS["bg_panel"],
                margin={"l": 40, "r": 10, "t": 10, "b": 30},
                height=320,
                yaxis={"title": SENSOR_LABELS[sensor]},
                uirevision=sensor,
            )
            return fig

        @self.app.callback(Output("alert-list", "children"), Input("tick", "n_intervals"))
        def update_alerts(_: int):
            alerts = self.store.recent_alerts(5)
            if not alerts:
                return html.Div("No alerts", style={"color": COLORS["text_secondary"]})
            rows: List[html.Div] = []
            for a in alerts:
                d = a.to_dict()
                color = COLORS["faulty"] if a.type == ALERT_CRITICAL else COLORS["warning"]
                rows.append(html.Div([
                    html.Span(d["type"].upper(), style={"color": color, "fontWeight": "bold", "width": "90px",
                                                        "display": "inline-block"}),
                    html.Span(d["machine"], style={"color": COLORS["text_primary"], "marginRight": "12px"}),
                    html.Span(d["message"], style={"color": COLORS["text_secondary"]}),
                    html.Span(d["time"], style={"color": COLORS["text_secondary"], "float": "right"}),
                ], style={"padding": "6px 0", "borderBottom": f"1px solid {COLORS['border']}"}))
            return rows


def mount_dashboard(server, store: MonitorStore, base_path: str = "/", refresh_ms: int = 3000) -> Dash:
    """Mount the dashboard onto the API's Flask server under a base path."""
    dash_app: Dash = dash.Dash(
        __name__,
        server=server,
        url_base_pathname=base_path,
        external_stylesheets=[dbc.themes.DARKLY],
        title="Machine Fault Monitor",
    )
    DashboardApp(store, app=dash_app, refresh_ms=refresh_ms)
    return dash_app
