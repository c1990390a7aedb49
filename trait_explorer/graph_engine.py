from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import plotly.graph_objects as go
from plotly.colors import sample_colorscale
from scipy.stats import gaussian_kde

from . import config
from .annotation import AnnotatedTree
from .session import SessionState, sigmoid_params
from .sigmoid import SigmoidParams, logistic


@dataclass
class CurveData:
    params: SigmoidParams
    xs: np.ndarray
    ys: np.ndarray
    point_xs: np.ndarray
    point_ys: np.ndarray


def generate_x_samples(x_min: float, x_max: float, step: float) -> np.ndarray:
    count = int(round((x_max - x_min) / step)) + 1
    if count < 2:
        return np.array([x_min])
    return np.linspace(x_min, x_max, count)


def finite_values(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return arr[np.isfinite(arr)]


def curve_domain(shift: float, traits: Sequence[float], *, padding: float = config.CURVE_PADDING) -> Tuple[float, float]:
    finite = finite_values(traits)
    anchors = [shift] if math.isfinite(shift) else []
    lo = min([*anchors, *finite.tolist()], default=0.0)
    hi = max([*anchors, *finite.tolist()], default=0.0)
    return lo - padding, hi + padding


def compute_curve(state: SessionState, traits: Sequence[float]) -> CurveData:
    params = sigmoid_params(state)
    x_min, x_max = curve_domain(params.shift, traits)
    xs = generate_x_samples(x_min, x_max, config.CURVE_STEP)
    point_xs = np.asarray(traits, dtype=float)
    return CurveData(
        params=params,
        xs=xs,
        ys=logistic(xs, params),
        point_xs=point_xs,
        point_ys=logistic(point_xs, params),
    )


def density_curve(traits: Sequence[float], xs: np.ndarray) -> Optional[np.ndarray]:
    finite = finite_values(traits)
    if np.unique(finite).size < 2:
        return None
    return gaussian_kde(finite)(xs)


def curve_traces(curve: CurveData, density: Optional[np.ndarray]) -> List[go.Scatter]:
    traces: List[go.Scatter] = []
    if density is not None:
        traces.append(
            go.Scatter(
                x=curve.xs,
                y=density,
                mode="lines",
                name="Trait density",
                line=dict(config.DENSITY_LINE_STYLE),
                fill="tozeroy",
                fillcolor=config.FIGURE_COLORS["density"],
                yaxis="y2",
                hoverinfo="skip",
            )
        )
    traces.append(
        go.Scatter(
            x=curve.xs,
            y=curve.ys,
            mode="lines",
            name="Logistic curve",
            line=dict(config.CURVE_LINE_STYLE),
            hovertemplate="x=%{x:.2f}<br>f(x)=%{y:.3f}<extra></extra>",
        )
    )
    traces.append(
        go.Scatter(
            x=curve.point_xs,
            y=curve.point_ys,
            mode="markers",
            name="Nodes",
            marker=dict(config.POINT_MARKER_STYLE),
            hovertemplate="trait=%{x:.3f}<br>f=%{y:.3f}<extra></extra>",
        )
    )
    return traces


def build_curve_figure(curve: CurveData, density: Optional[np.ndarray] = None, *, uirevision: str = config.UI_BASE_TOKEN) -> go.Figure:
    fig = go.Figure(data=curve_traces(curve, density))
    shapes = []
    if math.isfinite(curve.params.shift):
        shapes.append(
            dict(
                type="line",
                xref="x",
                yref="paper",
                x0=curve.params.shift,
                x1=curve.params.shift,
                y0=0,
                y1=1,
                line=dict(config.SHIFT_LINE_STYLE),
            )
        )
    fig.update_layout(
        height=480,
        margin=dict(l=48, r=16, t=32, b=40),
        xaxis=dict(
            title=config.TRAIT_UNITS,
            showgrid=True,
            zeroline=True,
            zerolinecolor=config.AXIS_LINE_STYLE["zerolinecolor"],
        ),
        yaxis=dict(
            title="Frequency",
            range=list(config.Y_RANGE),
            showgrid=True,
        ),
        yaxis2=dict(
            overlaying="y",
            side="right",
            visible=False,
            rangemode="tozero",
        ),
        showlegend=True,
        legend=dict(orientation="h", y=-0.2),
        uirevision=uirevision,
        shapes=shapes,
    )
    return fig


def render_curve(state: SessionState, traits: Sequence[float], *, uirevision: str = config.UI_BASE_TOKEN) -> go.Figure:
    curve = compute_curve(state, traits)
    return build_curve_figure(curve, density_curve(traits, curve.xs), uirevision=uirevision)


# ── Circular tree ────────────────────────────────────────────────────────


def circular_layout(tree: AnnotatedTree) -> Dict[int, Tuple[float, float]]:
    """Map node id to (radius, angle in degrees)."""
    n_leaves = len(tree.leaf_order)
    angles: Dict[int, float] = {
        node_id: 360.0 * i / max(n_leaves, 1) for i, node_id in enumerate(tree.leaf_order)
    }

    # internal ids are assigned in preorder, so descending ids visit children first
    internal_ids = sorted((node.node_id for node in tree if not node.is_leaf), reverse=True)
    for node_id in internal_ids:
        vals = [angles[child] for child in tree[node_id].children]
        angles[node_id] = sum(vals) / len(vals)
    return {node.node_id: (node.depth, angles[node.node_id]) for node in tree}


def trait_colors(values: Sequence[float], vmin: float, vmax: float) -> List[str]:
    span = vmax - vmin
    colors = []
    for value in values:
        if not math.isfinite(value):
            colors.append(config.FIGURE_COLORS["missing"])
            continue
        pos = (value - vmin) / span if span > 0 else 0.5
        colors.append(sample_colorscale(config.TREE_COLORSCALE, [min(max(pos, 0.0), 1.0)])[0])
    return colors


def _arc(radius: float, theta0: float, theta1: float) -> Tuple[List[float], List[float]]:
    thetas = np.linspace(theta0, theta1, config.TREE_ARC_SAMPLES).tolist()
    return [radius] * len(thetas), thetas


def tree_traces(tree: AnnotatedTree) -> List[go.Scatterpolar]:
    layout = circular_layout(tree)
    finite = finite_values(tree.trait_values())
    vmin = float(finite.min()) if finite.size else 0.0
    vmax = float(finite.max()) if finite.size else 1.0
    traces: List[go.Scatterpolar] = []

    for node in tree:
        if node.is_leaf:
            continue
        radius, _ = layout[node.node_id]
        child_thetas = [layout[child][1] for child in node.children]
        (color,) = trait_colors([node.trait.value], vmin, vmax)
        rs, thetas = _arc(radius, min(child_thetas), max(child_thetas))
        traces.append(
            go.Scatterpolar(
                r=rs,
                theta=thetas,
                mode="lines",
                line=dict(color=color, width=config.TREE_BRANCH_WIDTH),
                hoverinfo="skip",
                showlegend=False,
            )
        )
        for child in node.children:
            child_r, child_theta = layout[child]
            (child_color,) = trait_colors([tree[child].trait.value], vmin, vmax)
            traces.append(
                go.Scatterpolar(
                    r=[radius, child_r],
                    theta=[child_theta, child_theta],
                    mode="lines",
                    line=dict(color=child_color, width=config.TREE_BRANCH_WIDTH),
                    hoverinfo="skip",
                    showlegend=False,
                )
            )

    present = [node for node in tree if not node.trait.is_missing]
    traces.append(
        go.Scatterpolar(
            r=[layout[node.node_id][0] for node in present],
            theta=[layout[node.node_id][1] for node in present],
            mode="markers",
            name="Nodes",
            text=[node.display_label or f"node {node.node_id}" for node in present],
            customdata=[node.trait.value for node in present],
            marker=dict(
                size=config.TREE_MARKER_SIZE,
                color=[node.trait.value for node in present],
                colorscale=config.TREE_COLORSCALE,
                cmin=vmin,
                cmax=vmax,
                showscale=True,
                colorbar=dict(title=dict(text=config.TRAIT_UNITS)),
            ),
            hovertemplate="%{text}<br>trait=%{customdata:.3f}<extra></extra>",
            showlegend=False,
        )
    )
    missing = tree.missing()
    if missing:
        traces.append(
            go.Scatterpolar(
                r=[layout[node.node_id][0] for node in missing],
                theta=[layout[node.node_id][1] for node in missing],
                mode="markers",
                name="Missing",
                text=[node.display_label or f"node {node.node_id}" for node in missing],
                marker=dict(size=config.TREE_MARKER_SIZE, color=config.FIGURE_COLORS["missing"]),
                hovertemplate="%{text}<br>trait=NA<extra></extra>",
                showlegend=False,
            )
        )

    max_depth = max((r for r, _ in layout.values()), default=0.0) or 1.0
    leaves = tree.leaves()
    traces.append(
        go.Scatterpolar(
            r=[max_depth * (1 + config.TREE_LABEL_OFFSET)] * len(leaves),
            theta=[layout[leaf.node_id][1] for leaf in leaves],
            mode="text",
            text=[leaf.display_label for leaf in leaves],
            textposition=[
                "middle right" if (layout[leaf.node_id][1] % 360) <= 90 or (layout[leaf.node_id][1] % 360) >= 270 else "middle left"
                for leaf in leaves
            ],
            textfont=dict(size=10),
            hoverinfo="skip",
            showlegend=False,
        )
    )
    return traces


def build_tree_figure(tree: AnnotatedTree) -> go.Figure:
    fig = go.Figure(data=tree_traces(tree))
    fig.update_layout(
        height=640,
        margin=dict(l=80, r=80, t=40, b=40),
        polar=dict(
            radialaxis=dict(visible=False),
            angularaxis=dict(visible=False, direction="counterclockwise", rotation=0),
        ),
        showlegend=False,
    )
    return fig
