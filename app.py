import uuid

import streamlit as st

from trait_explorer import config, logger
from trait_explorer.graph_engine import build_tree_figure, render_curve
from trait_explorer.pipeline import load_dataset
from trait_explorer.session import (
    PARAM_NAMES,
    Mode,
    SessionState,
    effective_slope,
    set_mode,
    sigmoid_params,
    update_param,
)
from trait_explorer.ui_components import mode_selector, param_key, param_slider, readonly_card
from trait_explorer.verbal_descriptions import describe_curve, describe_mode_change, equation_latex

st.set_page_config(page_title="Trait Explorer - body mass on the tree", layout="wide")

st.title("Trait Explorer")
st.caption("Ancestral body mass mapped through a logistic curve (left) and painted on the tree (right).")


@st.cache_resource
def _load_dataset():
    return load_dataset(config.TREE_PATH, config.TRAITS_PATH)


dataset = _load_dataset()

if "session_id" not in st.session_state:
    st.session_state["session_id"] = uuid.uuid4().hex
if "sigmoid_state" not in st.session_state:
    st.session_state["sigmoid_state"] = SessionState()
if "event_log" not in st.session_state:
    st.session_state["event_log"] = []
if "mode_notice" not in st.session_state:
    st.session_state["mode_notice"] = ""


def _log(event, **kwargs):
    record = logger.build_record(
        st.session_state["session_id"],
        st.session_state["sigmoid_state"],
        event=event,
        **kwargs,
    )
    st.session_state["event_log"] = logger.append_record(st.session_state["event_log"], record)
    return record


def _sync_widgets(state):
    for name in PARAM_NAMES:
        st.session_state[param_key(name)] = float(getattr(state, name))
    st.session_state[param_key("mode")] = state.mode.value


def _on_param_change(name):
    old_state = st.session_state["sigmoid_state"]
    new_value = st.session_state.get(param_key(name))
    new_state = update_param(old_state, name, new_value)
    if logger.normalized_equal(getattr(old_state, name), getattr(new_state, name)):
        return
    st.session_state["sigmoid_state"] = new_state
    _log(
        "param_change",
        param_name=name,
        old_value=getattr(old_state, name),
        new_value=getattr(new_state, name),
        source="slider",
    )


def _on_mode_change():
    old_state = st.session_state["sigmoid_state"]
    new_state = set_mode(old_state, st.session_state.get(param_key("mode")), dataset.defaults)
    st.session_state["sigmoid_state"] = new_state
    st.session_state["mode_notice"] = describe_mode_change(old_state.mode.value, new_state.mode.value)
    _log("mode_change", param_name="mode", old_value=old_state.mode.value, new_value=new_state.mode.value, source="radio")


def _on_reset():
    st.session_state["sigmoid_state"] = SessionState()
    st.session_state["mode_notice"] = ""
    _log("reset", source="button")


_sync_widgets(st.session_state["sigmoid_state"])
state = st.session_state["sigmoid_state"]
constrained = state.mode is Mode.CONSTRAINED

left_col, right_col = st.columns([1, 2], gap="large")

with left_col:
    st.header("Controls")
    mode_selector(on_change=_on_mode_change)
    if st.session_state.get("mode_notice"):
        st.info(st.session_state["mode_notice"])

    st.subheader("Logistic parameters")
    param_slider("start", on_change=_on_param_change)
    param_slider("end", on_change=_on_param_change)
    param_slider("slope", on_change=_on_param_change)
    if constrained:
        readonly_card("Shift (root estimate)", state.shift, "Pinned while constrained", key="card-shift")
        param_slider("slope_factor", on_change=_on_param_change)
        readonly_card("Effective slope", effective_slope(state), "slope x slope factor", key="card-effective-slope")
    else:
        param_slider("shift", on_change=_on_param_change)

    st.button("Reset params", on_click=_on_reset, use_container_width=True)

    st.subheader("Data")
    st.write(
        f"{len(dataset.traits)} species with mass, {len(dataset.estimates)} ancestral estimates, "
        f"sd = {dataset.defaults.trait_std:.3f}, root = {dataset.defaults.shift:.3f}"
    )

with right_col:
    st.header("Logistic curve")
    uirevision = f"{config.UI_BASE_TOKEN}{config.DEFAULT_UI_NONCE}"
    st.plotly_chart(
        render_curve(state, dataset.node_traits, uirevision=uirevision),
        use_container_width=True,
        config={"displaylogo": False},
    )
    params = sigmoid_params(state)
    st.latex(equation_latex(params))
    st.write(describe_curve(params))

st.divider()

st.header("Tree")
st.plotly_chart(build_tree_figure(dataset.annotated), use_container_width=True, config={"displaylogo": False})

st.divider()

st.header("Session log")
lines = logger.preview_lines(st.session_state["event_log"])
if lines:
    for line in reversed(lines):
        st.write(f"- {line}")
else:
    st.caption("Recent logs will appear here.")

records = st.session_state["event_log"]
dl_left, dl_right = st.columns(2)
with dl_left:
    st.download_button(
        "Download JSONL",
        data=logger.build_jsonl_content(records) or "",
        file_name=f"session_{st.session_state['session_id']}.jsonl",
        disabled=not records,
    )
with dl_right:
    st.download_button(
        "Download CSV",
        data=logger.build_csv_content(records) or "",
        file_name=f"session_{st.session_state['session_id']}.csv",
        disabled=not records,
    )
