"""Streamlit UI components."""

import streamlit as st
import streamlit_shadcn_ui as ui

from . import config


def param_key(name):
    return f"param_{name}"


def param_slider(name, *, on_change, disabled=False):
    cfg = config.PARAM_BOUNDS[name]
    value = float(st.session_state[param_key(name)])
    # slider bounds are soft: widen them so data-derived values stay selectable
    return st.slider(
        config.PARAM_LABELS[name],
        min_value=min(cfg["min"], value),
        max_value=max(cfg["max"], value),
        step=cfg["step"],
        key=param_key(name),
        on_change=on_change,
        args=(name,),
        disabled=disabled,
    )


def mode_selector(*, on_change):
    return st.radio(
        "Mode",
        options=[config.MODE_FREE, config.MODE_CONSTRAINED],
        key=param_key("mode"),
        on_change=on_change,
        horizontal=True,
    )


def readonly_card(title, value, description, key):
    ui.metric_card(title=title, content=f"{value:.3f}", description=description, key=key)
