"""Tests for Brownian-motion ancestral state reconstruction."""

from __future__ import annotations

import io

import numpy as np
import pytest
from Bio import Phylo

from trait_explorer.ancestral import index_nodes, reconstruct_ancestral_states, shared_path_matrix


# ── Helpers ──────────────────────────────────────────────────────────

def _tree(newick: str):
    return Phylo.read(io.StringIO(newick), "newick")


def _node_for(index, *names):
    """Id of the smallest clade containing exactly ``names``."""
    wanted = set(names)
    for node_id in index.internals:
        leaves = {leaf.name for leaf in index.clades[node_id].get_terminals()}
        if leaves == wanted:
            return node_id
    raise LookupError(names)


class TestNodeIndex:
    def test_numbering(self):
        index = index_nodes(_tree("((A:1,B:1):1,(C:1,D:1):1);"))
        assert index.leaves == [1, 2, 3, 4]
        assert index.root_id == 5
        assert index.internals == [5, 6, 7]
        assert index.parents[5] is None
        assert index.parents[1] == 6
        assert index.parents[3] == 7

    def test_depth_ignores_root_branch(self):
        index = index_nodes(_tree("((A:1,B:2):3,C:4):9;"))
        assert index.depth(index.root_id) == 0.0
        assert index.depth(1) == pytest.approx(4.0)
        assert index.depth(2) == pytest.approx(5.0)

    def test_shared_path_matrix(self):
        index = index_nodes(_tree("((A:0.1,B:0.1):1.0,C:1.0);"))
        cov = shared_path_matrix(index, index.leaves)
        expected = np.array([[1.1, 1.0, 0.0], [1.0, 1.1, 0.0], [0.0, 0.0, 1.0]])
        assert np.allclose(cov, expected)


class TestReconstruction:
    def test_two_leaves_weighted_by_branch_length(self):
        estimates = reconstruct_ancestral_states(_tree("(A:1,B:3);"), {"A": 0.0, "B": 4.0})
        assert estimates.root_value == pytest.approx(1.0)

    def test_star_tree_root_is_mean(self):
        traits = {"A": 1.0, "B": 2.0, "C": 4.0, "D": 5.0}
        estimates = reconstruct_ancestral_states(_tree("(A:1,B:1,C:1,D:1);"), traits)
        assert estimates.root_value == pytest.approx(3.0)
        assert len(estimates) == 1

    def test_three_leaf_scenario(self):
        tree = _tree("((A:0.1,B:0.1):1.0,C:1.0);")
        estimates = reconstruct_ancestral_states(tree, {"A": 1.0, "B": 1.2, "C": 3.0})
        ab = estimates.values[_node_for(index_nodes(tree), "A", "B")]
        assert ab == pytest.approx(1.1, abs=0.1)
        assert ab < estimates.root_value < 3.0

    def test_every_internal_node_estimated(self):
        tree = _tree("(((A:1,B:1):1,C:2):1,(D:2,E:2):1);")
        traits = {"A": 1.0, "B": 1.5, "C": 2.0, "D": 4.0, "E": 4.5}
        index = index_nodes(tree)
        estimates = reconstruct_ancestral_states(tree, traits, index=index)
        assert set(estimates.values) == set(index.internals)
        assert estimates.root_id == index.root_id
        de = estimates.values[_node_for(index, "D", "E")]
        assert estimates.root_value < de < 4.5

    def test_estimates_stay_within_tip_range(self):
        tree = _tree("(((A:1,B:1):1,C:2):1,(D:2,E:2):1);")
        traits = {"A": 1.0, "B": 1.5, "C": 2.0, "D": 4.0, "E": 4.5}
        values = list(reconstruct_ancestral_states(tree, traits).values.values())
        assert min(values) >= 1.0
        assert max(values) <= 4.5

    def test_unobserved_leaf_does_not_condition(self):
        tree = _tree("((A:1,B:1):1,C:2);")
        estimates = reconstruct_ancestral_states(tree, {"A": 1.0, "B": 3.0})
        assert estimates.root_value == pytest.approx(2.0)
        assert estimates.values[_node_for(index_nodes(tree), "A", "B")] == pytest.approx(2.0)

    def test_zero_length_sister_tips(self):
        tree = _tree("((A:0,B:0):1,C:1);")
        estimates = reconstruct_ancestral_states(tree, {"A": 1.0, "B": 1.2, "C": 3.0})
        assert estimates.root_value == pytest.approx(2.05)
        assert estimates.values[_node_for(index_nodes(tree), "A", "B")] == pytest.approx(1.1)

    def test_missing_branch_lengths_count_as_zero(self):
        tree = _tree("((A,B):1,C:1);")
        estimates = reconstruct_ancestral_states(tree, {"A": 1.0, "B": 1.2, "C": 3.0})
        assert estimates.root_value == pytest.approx(2.05)

    def test_needs_two_observed_leaves(self):
        with pytest.raises(ValueError):
            reconstruct_ancestral_states(_tree("(A:1,B:1);"), {"A": 1.0})

    def test_accepts_series(self):
        import pandas as pd

        traits = pd.Series({"A": 0.0, "B": 4.0})
        assert reconstruct_ancestral_states(_tree("(A:1,B:3);"), traits).root_value == pytest.approx(1.0)
