"""Dash front-end for Trait Explorer.

Run with:
    python dash_app.py

Opens at http://127.0.0.1:8050
"""

from __future__ import annotations

import os
import uuid
from typing import Any, Dict, List, Optional, Tuple

import dash
from dash import Input, Output, State, dcc, html
import plotly.graph_objects as go

from trait_explorer import config, logger
from trait_explorer.graph_engine import build_tree_figure, render_curve
from trait_explorer.pipeline import load_dataset
from trait_explorer.session import (
    DataDefaults,
    Mode,
    SessionState,
    effective_slope,
    reset,
    set_mode,
    sigmoid_params,
    update_param,
)
from trait_explorer.verbal_descriptions import describe_curve, describe_mode_change, equation_latex

_SLIDER_IDS: Dict[str, str] = {
    "start": "slider-start",
    "end": "slider-end",
    "slope": "slider-slope",
    "shift": "slider-shift",
    "slope_factor": "slider-slope-factor",
}
_PARAM_BY_SLIDER_ID = {slider_id: name for name, slider_id in _SLIDER_IDS.items()}
_SLIDER_MARKS: Dict[str, Dict[float, str]] = {
    "start": {0.0: "0", 0.5: "0.5", 1.0: "1"},
    "end": {0.0: "0", 0.5: "0.5", 1.0: "1"},
    "slope": {0.0: "0", 25.0: "25", 50.0: "50", 75.0: "75", 100.0: "100"},
    "shift": {-2.0: "-2", 0.0: "0", 2.0: "2", 4.0: "4", 6.0: "6", 8.0: "8", 10.0: "10"},
    "slope_factor": {0.5: "0.5", 2.5: "2.5", 5.0: "5", 7.5: "7.5", 10.0: "10"},
}
_SLIDER_TITLES: Dict[str, str] = {
    "start": "Frequency as the trait goes to -infinity.",
    "end": "Frequency as the trait goes to +infinity.",
    "slope": "Steepness of the transition. 0 gives a flat line.",
    "shift": "Trait value at the inflection point. Pinned to the root estimate while constrained.",
    "slope_factor": "Multiplier applied to the slope while constrained.",
}

DATASET = load_dataset(config.TREE_PATH, config.TRAITS_PATH)
_NODE_TRAITS = DATASET.node_traits
_TREE_FIGURE = build_tree_figure(DATASET.annotated)


def _get_session_id(session_data: Optional[Dict[str, Any]]) -> str:
    if isinstance(session_data, dict):
        raw = session_data.get("session_id")
        if isinstance(raw, str) and raw:
            return raw
    return "unknown"


def _resolve_uirevision_value(ui_store: Optional[Dict[str, Any]]) -> str:
    nonce = config.DEFAULT_UI_NONCE
    if isinstance(ui_store, dict):
        raw = ui_store.get("uirevision_nonce")
        if raw is not None:
            nonce = str(raw)
    return f"{config.UI_BASE_TOKEN}{nonce}"


def _bump_uirevision_store(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    base = dict(data) if isinstance(data, dict) else {}
    raw = base.get("uirevision_nonce", config.DEFAULT_UI_NONCE)
    try:
        nonce_int = int(raw)
    except (TypeError, ValueError):
        try:
            nonce_int = int(float(raw))
        except (TypeError, ValueError):
            nonce_int = int(config.DEFAULT_UI_NONCE)
    base["uirevision_nonce"] = str(nonce_int + 1)
    return base


def _apply_control_event(
    state: SessionState,
    trigger_id: Optional[str],
    value: Any,
    defaults: DataDefaults,
) -> Tuple[SessionState, Optional[Dict[str, Any]]]:
    """Fold one UI event into the state; returns the new state and the event fields to log."""
    if trigger_id == "radio-mode":
        new_state = set_mode(state, value, defaults)
        return new_state, {
            "event": "mode_change",
            "param_name": "mode",
            "old_value": state.mode.value,
            "new_value": new_state.mode.value,
            "source": "radio",
        }
    if trigger_id == "btn-reset":
        return reset(), {"event": "reset", "source": "button"}
    name = _PARAM_BY_SLIDER_ID.get(trigger_id or "")
    if name is None:
        return state, None
    new_state = update_param(state, name, value)
    old_value = getattr(state, name)
    new_value = getattr(new_state, name)
    if logger.normalized_equal(old_value, new_value):
        return new_state, None
    return new_state, {
        "event": "param_change",
        "param_name": name,
        "old_value": old_value,
        "new_value": new_value,
        "source": "slider",
    }


def _slider_bounds(name: str, value: float) -> Tuple[float, float]:
    cfg = config.PARAM_BOUNDS[name]
    return min(cfg["min"], value), max(cfg["max"], value)


def _format_readout(value: float) -> str:
    return logger.format_value_preview(float(value))


_INITIAL_STATE = SessionState()
_INITIAL_FIGURE = render_curve(
    _INITIAL_STATE,
    _NODE_TRAITS,
    uirevision=f"{config.UI_BASE_TOKEN}{config.DEFAULT_UI_NONCE}",
)


app = dash.Dash(__name__, title="Trait Explorer")
server = app.server


def _param_control_row(name: str) -> html.Div:
    cfg = config.PARAM_BOUNDS[name]
    slider_id = _SLIDER_IDS[name]
    return html.Div(
        [
            html.Div(
                [
                    html.Label(config.PARAM_LABELS[name], htmlFor=slider_id, style={"fontWeight": 600}),
                    html.Span(
                        _format_readout(config.DEFAULT_PARAMS[name]),
                        id=f"readout-{slider_id}",
                        className="numeric-readout",
                        style={"marginLeft": "auto", "fontFamily": "monospace"},
                    ),
                ],
                style={"display": "flex", "alignItems": "center"},
            ),
            html.Div(
                dcc.Slider(
                    id=slider_id,
                    min=cfg["min"],
                    max=cfg["max"],
                    step=cfg["step"],
                    value=config.DEFAULT_PARAMS[name],
                    marks=_SLIDER_MARKS[name],
                    updatemode="drag",
                    disabled=name == "slope_factor",
                    tooltip={"placement": "bottom", "always_visible": False},
                ),
                title=_SLIDER_TITLES[name],
                style={"marginTop": "8px"},
            ),
        ],
        style={"marginBottom": "24px"},
    )


def _serve_layout() -> html.Div:
    controls_column = html.Div(
        [
            html.H2("Controls"),
            html.Label("Mode", htmlFor="radio-mode", style={"fontWeight": 600}),
            dcc.RadioItems(
                id="radio-mode",
                options=[
                    {"label": "Free", "value": config.MODE_FREE},
                    {"label": "Constrained (slope = 1/sd, shift = root)", "value": config.MODE_CONSTRAINED},
                ],
                value=config.DEFAULT_MODE,
                labelStyle={"display": "block", "marginTop": "4px"},
                inputStyle={"marginRight": "6px"},
            ),
            html.Div(
                "",
                id="mode-notice",
                role="status",
                **{"aria-live": "polite"},
                style={"fontSize": "0.9rem", "color": "#555555", "minHeight": "1.2em", "margin": "8px 0 16px"},
            ),
            _param_control_row("start"),
            _param_control_row("end"),
            _param_control_row("slope"),
            _param_control_row("shift"),
            _param_control_row("slope_factor"),
            html.Div(
                [
                    html.Span("Effective slope: ", style={"fontWeight": 600}),
                    html.Span(_format_readout(effective_slope(_INITIAL_STATE)), id="readout-effective-slope"),
                ]
            ),
            html.Button(
                "Reset view & params",
                id="btn-reset",
                n_clicks=0,
                style={"marginTop": "16px"},
                title="Reset parameters, mode and view",
            ),
            html.P(
                f"{len(DATASET.traits)} species with mass, {len(DATASET.estimates)} ancestral estimates. "
                f"sd = {DATASET.defaults.trait_std:.3f}, root estimate = {DATASET.defaults.shift:.3f}.",
                style={"fontSize": "0.85rem", "color": "#555555", "marginTop": "24px"},
            ),
        ],
        style={"flex": "1", "minWidth": "300px"},
    )
    graph_column = html.Div(
        [
            html.H2("Logistic curve"),
            dcc.Graph(id="graph-curve", figure=_INITIAL_FIGURE, config={"displaylogo": False}),
            dcc.Markdown(
                f"$${equation_latex(sigmoid_params(_INITIAL_STATE))}$$",
                id="equation-view",
                mathjax=True,
                style={"fontSize": "1.1rem"},
            ),
            html.Div(
                describe_curve(sigmoid_params(_INITIAL_STATE)),
                id="verbal-description",
                role="status",
                **{"aria-live": "polite"},
                style={"fontSize": "0.95rem", "color": "#444444"},
            ),
        ],
        style={"flex": "2", "minWidth": "0"},
    )
    tree_section = html.Div(
        [
            html.H2("Tree"),
            dcc.Graph(id="graph-tree", figure=_TREE_FIGURE, config={"displaylogo": False}),
        ],
        style={"padding": "0 32px"},
    )
    log_section = html.Div(
        [
            html.H2("Session log"),
            dcc.Markdown("Recent logs will appear here.", id="log-display", style={"fontSize": "0.9rem"}),
            html.Div(
                [
                    html.Button("Download JSONL", id="btn-download-jsonl", n_clicks=0),
                    html.Button("Download CSV", id="btn-download-csv", n_clicks=0, style={"marginLeft": "8px"}),
                    dcc.Download(id="download-jsonl"),
                    dcc.Download(id="download-csv"),
                ],
                style={"marginTop": "16px"},
            ),
        ],
        style={"padding": "0 32px 32px"},
    )
    return html.Div(
        [
            dcc.Store(id="store-session", data={"session_id": uuid.uuid4().hex}),
            dcc.Store(id="store-ui", data={"uirevision_nonce": config.DEFAULT_UI_NONCE}),
            dcc.Store(id="store-params", data=_INITIAL_STATE.to_dict()),
            dcc.Store(id="store-events", data=[]),
            html.Div(
                [controls_column, graph_column],
                style={"display": "flex", "gap": "32px", "alignItems": "flex-start", "padding": "32px"},
            ),
            tree_section,
            log_section,
        ]
    )


app.layout = _serve_layout


@app.callback(
    [
        Output("store-params", "data"),
        Output("store-events", "data", allow_duplicate=True),
        Output("store-ui", "data"),
        Output("radio-mode", "value"),
        Output("slider-start", "value"),
        Output("slider-end", "value"),
        Output("slider-slope", "value"),
        Output("slider-shift", "value"),
        Output("slider-slope-factor", "value"),
    ],
    [
        Input("radio-mode", "value"),
        Input("slider-start", "value"),
        Input("slider-end", "value"),
        Input("slider-slope", "value"),
        Input("slider-shift", "value"),
        Input("slider-slope-factor", "value"),
        Input("btn-reset", "n_clicks"),
    ],
    [
        State("store-params", "data"),
        State("store-events", "data"),
        State("store-session", "data"),
        State("store-ui", "data"),
    ],
    prevent_initial_call=True,
)
def _handle_control_change(
    mode_value,
    start_value,
    end_value,
    slope_value,
    shift_value,
    factor_value,
    reset_clicks,
    params_data,
    events_data,
    session_data,
    ui_store_data,
):
    trigger_id = dash.ctx.triggered_id
    values = {
        "radio-mode": mode_value,
        "slider-start": start_value,
        "slider-end": end_value,
        "slider-slope": slope_value,
        "slider-shift": shift_value,
        "slider-slope-factor": factor_value,
        "btn-reset": reset_clicks,
    }
    old_state = SessionState.from_dict(params_data)
    new_state, log_event = _apply_control_event(old_state, trigger_id, values.get(trigger_id), DATASET.defaults)
    if log_event is None and new_state == old_state:
        return (dash.no_update,) * 9

    ui_update = _bump_uirevision_store(ui_store_data) if trigger_id == "btn-reset" else dash.no_update
    events_update = dash.no_update
    if log_event is not None:
        record = logger.build_record(
            _get_session_id(session_data),
            new_state,
            uirevision=_resolve_uirevision_value(ui_store_data),
            **log_event,
        )
        events_update = logger.append_record(events_data, record)

    # echo the state back into every control; the echo itself is a no-op event
    return (
        new_state.to_dict(),
        events_update,
        ui_update,
        new_state.mode.value,
        new_state.start,
        new_state.end,
        new_state.slope,
        new_state.shift,
        new_state.slope_factor,
    )


@app.callback(
    [
        Output("slider-shift", "disabled"),
        Output("slider-shift", "min"),
        Output("slider-shift", "max"),
        Output("slider-slope", "min"),
        Output("slider-slope", "max"),
        Output("slider-slope-factor", "disabled"),
    ],
    Input("store-params", "data"),
)
def _sync_control_bounds(params_data):
    state = SessionState.from_dict(params_data)
    constrained = state.mode is Mode.CONSTRAINED
    shift_min, shift_max = _slider_bounds("shift", state.shift)
    slope_min, slope_max = _slider_bounds("slope", state.slope)
    return constrained, shift_min, shift_max, slope_min, slope_max, not constrained


@app.callback(
    [
        Output("graph-curve", "figure"),
        Output("equation-view", "children"),
        Output("verbal-description", "children"),
        Output("readout-slider-start", "children"),
        Output("readout-slider-end", "children"),
        Output("readout-slider-slope", "children"),
        Output("readout-slider-shift", "children"),
        Output("readout-slider-slope-factor", "children"),
        Output("readout-effective-slope", "children"),
    ],
    Input("store-params", "data"),
    State("store-ui", "data"),
)
def _render_curve(params_data, ui_store_data) -> Tuple[go.Figure, str, str, str, str, str, str, str, str]:
    state = SessionState.from_dict(params_data)
    params = sigmoid_params(state)
    fig = render_curve(state, _NODE_TRAITS, uirevision=_resolve_uirevision_value(ui_store_data))
    return (
        fig,
        f"$${equation_latex(params)}$$",
        describe_curve(params),
        _format_readout(state.start),
        _format_readout(state.end),
        _format_readout(state.slope),
        _format_readout(state.shift),
        _format_readout(state.slope_factor),
        _format_readout(params.slope),
    )


@app.callback(
    Output("mode-notice", "children"),
    Input("store-events", "data"),
    prevent_initial_call=True,
)
def _render_mode_notice(events_data):
    if not isinstance(events_data, list) or not events_data:
        return dash.no_update
    last = events_data[-1]
    if not isinstance(last, dict) or last.get("event") != "mode_change":
        return dash.no_update
    return describe_mode_change(last.get("old_value"), last.get("new_value"))


@app.callback(
    [
        Output("download-jsonl", "data"),
        Output("store-events", "data", allow_duplicate=True),
    ],
    Input("btn-download-jsonl", "n_clicks"),
    [
        State("store-events", "data"),
        State("store-params", "data"),
        State("store-session", "data"),
        State("store-ui", "data"),
    ],
    prevent_initial_call=True,
)
def _handle_download_jsonl(n_clicks, events_data, params_data, session_data, ui_store_data):
    return _export_events("jsonl", n_clicks, events_data, params_data, session_data, ui_store_data)


@app.callback(
    [
        Output("download-csv", "data"),
        Output("store-events", "data", allow_duplicate=True),
    ],
    Input("btn-download-csv", "n_clicks"),
    [
        State("store-events", "data"),
        State("store-params", "data"),
        State("store-session", "data"),
        State("store-ui", "data"),
    ],
    prevent_initial_call=True,
)
def _handle_download_csv(n_clicks, events_data, params_data, session_data, ui_store_data):
    return _export_events("csv", n_clicks, events_data, params_data, session_data, ui_store_data)


def _export_events(export_type: str, n_clicks, events_data, params_data, session_data, ui_store_data):
    if not n_clicks:
        return dash.no_update, dash.no_update
    records: List[Dict[str, Any]] = events_data if isinstance(events_data, list) else []
    session_id = _get_session_id(session_data)
    record = logger.build_record(
        session_id,
        SessionState.from_dict(params_data),
        event="export",
        source="button",
        uirevision=_resolve_uirevision_value(ui_store_data),
        extras={"export_type": export_type},
    )
    records = logger.append_record(records, record)
    if export_type == "csv":
        content = logger.build_csv_content(records)
    else:
        content = logger.build_jsonl_content(records)
    filename = f"session_{session_id}.{export_type}"
    return dcc.send_string(content, filename=filename), records


@app.callback(
    Output("log-display", "children"),
    Input("store-events", "data"),
)
def _render_log_display(events_data):
    lines = logger.preview_lines(events_data)
    if not lines:
        return "Recent logs will appear here."
    return "\n".join(["Recent logs:", *[f"- {line}" for line in reversed(lines)]])


if __name__ == "__main__":
    app.run(debug=True, port=int(os.environ.get("PORT", 8050)))
