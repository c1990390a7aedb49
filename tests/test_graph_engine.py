"""Tests for curve computation and figure building."""

from __future__ import annotations

import io
import math

import numpy as np
import pytest
from Bio import Phylo

from trait_explorer import config
from trait_explorer.ancestral import index_nodes, reconstruct_ancestral_states
from trait_explorer.annotation import annotate_tree
from trait_explorer.graph_engine import (
    build_curve_figure,
    build_tree_figure,
    circular_layout,
    compute_curve,
    curve_domain,
    density_curve,
    render_curve,
    trait_colors,
)
from trait_explorer.session import Mode, SessionState


# ── Helpers ──────────────────────────────────────────────────────────

def _annotated(newick: str, traits: dict):
    tree = Phylo.read(io.StringIO(newick), "newick")
    index = index_nodes(tree)
    estimates = reconstruct_ancestral_states(tree, traits, index=index)
    return annotate_tree(tree, traits, estimates, index=index)


class TestCurveDomain:
    def test_shift_beyond_traits(self):
        assert curve_domain(5.0, [1.0, 2.0]) == pytest.approx((-2.0, 8.0))

    def test_shift_inside_traits(self):
        assert curve_domain(1.5, [1.0, 2.0]) == pytest.approx((-2.0, 5.0))

    def test_shift_below_traits(self):
        assert curve_domain(-1.0, [1.0, 2.0]) == pytest.approx((-4.0, 5.0))

    def test_non_finite_traits_ignored(self):
        assert curve_domain(0.0, [1.0, -math.inf, math.nan]) == pytest.approx((-3.0, 4.0))


class TestComputeCurve:
    def test_grid_step_and_extent(self):
        curve = compute_curve(SessionState(shift=5.0), [1.0, 2.0])
        assert curve.xs[0] == pytest.approx(-2.0)
        assert curve.xs[-1] == pytest.approx(8.0)
        assert len(curve.xs) == 1001
        assert np.allclose(np.diff(curve.xs), config.CURVE_STEP)

    def test_points_follow_traits(self):
        traits = [0.5, 1.1, 3.0]
        curve = compute_curve(SessionState(start=0.9, end=0.1, slope=2.0, shift=1.1), traits)
        assert list(curve.point_xs) == traits
        assert curve.point_ys[1] == pytest.approx(0.5)

    def test_constrained_uses_effective_slope(self):
        state = SessionState(slope=2.0, slope_factor=3.0, mode=Mode.CONSTRAINED)
        assert compute_curve(state, [1.0]).params.slope == pytest.approx(6.0)

    def test_zero_slope_flat(self):
        curve = compute_curve(SessionState(start=0.2, end=0.6, slope=0.0, shift=1.0), [0.0, 2.0])
        assert np.allclose(curve.ys, 0.4)


class TestDensity:
    def test_needs_two_distinct_values(self):
        xs = np.linspace(0.0, 1.0, 11)
        assert density_curve([1.0, 1.0], xs) is None
        assert density_curve([math.nan], xs) is None

    def test_shape_and_positive(self):
        xs = np.linspace(-1.0, 5.0, 61)
        density = density_curve([1.0, 2.0, 2.5, 3.0], xs)
        assert density.shape == xs.shape
        assert np.all(density >= 0)


class TestCurveFigure:
    def test_traces_and_axes(self):
        fig = render_curve(SessionState(), [1.0, 2.0, 3.5])
        assert [trace.name for trace in fig.data] == ["Trait density", "Logistic curve", "Nodes"]
        assert list(fig.layout.yaxis.range) == config.Y_RANGE
        assert fig.data[0].yaxis == "y2"
        assert fig.layout.yaxis2.overlaying == "y"

    def test_without_density(self):
        fig = build_curve_figure(compute_curve(SessionState(), [1.0]))
        assert [trace.name for trace in fig.data] == ["Logistic curve", "Nodes"]

    def test_shift_marker(self):
        fig = render_curve(SessionState(shift=2.5), [1.0, 2.0])
        assert fig.layout.shapes[0].x0 == pytest.approx(2.5)


class TestTreeFigure:
    def test_circular_layout(self):
        tree = _annotated("((A:1,B:1):1,(C:1,D:1):1);", {"A": 1.0, "B": 2.0, "C": 3.0, "D": 4.0})
        layout = circular_layout(tree)
        assert layout[1] == pytest.approx((2.0, 0.0))
        assert layout[2] == pytest.approx((2.0, 90.0))
        assert layout[6] == pytest.approx((1.0, 45.0))
        assert layout[tree.root_id][0] == 0.0

    def test_colorbar_and_labels(self):
        tree = _annotated("((Mus_musculus:1,Rattus_norvegicus:1):1,Homo_sapiens:2);", {
            "Mus_musculus": 1.3,
            "Rattus_norvegicus": 2.5,
            "Homo_sapiens": 4.8,
        })
        fig = build_tree_figure(tree)
        scaled = [trace for trace in fig.data if trace.marker is not None and trace.marker.showscale]
        assert len(scaled) == 1
        assert scaled[0].marker.colorbar.title.text == config.TRAIT_UNITS
        labels = [trace for trace in fig.data if trace.mode == "text"][0]
        assert list(labels.text) == ["Mus musculus", "Rattus norvegicus", "Homo sapiens"]

    def test_missing_nodes_drawn_grey(self):
        tree = _annotated("((A:1,B:1):1,C:2);", {"A": 1.0, "B": 3.0})
        fig = build_tree_figure(tree)
        assert any(trace.name == "Missing" for trace in fig.data)

    def test_trait_colors(self):
        colors = trait_colors([0.0, 1.0, math.nan], 0.0, 1.0)
        assert colors[2] == config.FIGURE_COLORS["missing"]
        assert colors[0] != colors[1]
