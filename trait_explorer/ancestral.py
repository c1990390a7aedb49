"""Maximum-likelihood ancestral states for a continuous trait.

Under Brownian motion the ML estimate of every ancestral value is the
generalized least squares estimate over the tree's variance-covariance
structure. ``C[i, j]`` is the branch length shared by the root-to-node paths
of ``i`` and ``j``; the root state is the GLS mean of the observed tips and
each internal node is the conditional expectation given those tips::

    a     = (1' C_tt^-1 1)^-1 1' C_tt^-1 x
    y_int = a + C_it C_tt^-1 (x - a)

Node ids follow the usual phylogenetics numbering: leaves ``1..n`` in tip
order, internal nodes ``n+1..`` in preorder, so the root is ``n + 1``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import numpy as np
from Bio.Phylo.BaseTree import Clade, Tree


@dataclass
class NodeIndex:
    ids: Dict[Clade, int]
    clades: Dict[int, Clade]
    parents: Dict[int, Optional[int]]
    leaves: List[int]
    internals: List[int]
    root_id: int
    branch_lengths: Dict[int, float] = field(default_factory=dict)

    def depth(self, node_id: int) -> float:
        total = 0.0
        current: Optional[int] = node_id
        while current is not None and current != self.root_id:
            total += self.branch_lengths[current]
            current = self.parents[current]
        return total

    def ancestors(self, node_id: int) -> List[int]:
        """Path from ``node_id`` up to, but excluding, the root."""
        path: List[int] = []
        current: Optional[int] = node_id
        while current is not None and current != self.root_id:
            path.append(current)
            current = self.parents[current]
        return path

    def children(self, node_id: int) -> List[int]:
        return [self.ids[child] for child in self.clades[node_id].clades]


@dataclass
class AncestralEstimates:
    values: Dict[int, float]
    root_id: int

    @property
    def root_value(self) -> float:
        return self.values[self.root_id]

    def __len__(self) -> int:
        return len(self.values)


def index_nodes(tree: Tree) -> NodeIndex:
    ids: Dict[Clade, int] = {}
    leaves = tree.get_terminals()
    for i, leaf in enumerate(leaves, start=1):
        ids[leaf] = i
    next_id = len(leaves) + 1
    internals: List[int] = []
    for clade in tree.find_clades(order="preorder"):
        if clade.is_terminal():
            continue
        ids[clade] = next_id
        internals.append(next_id)
        next_id += 1

    parents: Dict[int, Optional[int]] = {ids[tree.root]: None}
    branch_lengths: Dict[int, float] = {}
    for clade in tree.find_clades(order="preorder"):
        for child in clade.clades:
            parents[ids[child]] = ids[clade]
        branch_lengths[ids[clade]] = float(clade.branch_length or 0.0)

    return NodeIndex(
        ids=ids,
        clades={node_id: clade for clade, node_id in ids.items()},
        parents=parents,
        leaves=[ids[leaf] for leaf in leaves],
        internals=internals,
        root_id=ids[tree.root],
        branch_lengths=branch_lengths,
    )


def shared_path_matrix(index: NodeIndex, node_ids: List[int]) -> np.ndarray:
    columns = {node_id: pos for pos, node_id in enumerate(sorted(index.clades))}
    membership = np.zeros((len(node_ids), len(columns)))
    for row, node_id in enumerate(node_ids):
        for ancestor in index.ancestors(node_id):
            membership[row, columns[ancestor]] = 1.0
    lengths = np.array([index.branch_lengths[node_id] for node_id in sorted(index.clades)])
    return (membership * lengths) @ membership.T


def reconstruct_ancestral_states(tree: Tree, traits: Mapping[str, float], index: Optional[NodeIndex] = None) -> AncestralEstimates:
    index = index or index_nodes(tree)
    observed = [
        node_id
        for node_id in index.leaves
        if index.clades[node_id].name in traits
    ]
    if len(observed) < 2:
        raise ValueError(f"ancestral reconstruction needs at least 2 leaves with traits, got {len(observed)}")

    x = np.array([float(traits[index.clades[node_id].name]) for node_id in observed])
    cov = shared_path_matrix(index, observed + index.internals)
    n_obs = len(observed)
    c_tt = cov[:n_obs, :n_obs]
    c_it = cov[n_obs:, :n_obs]

    # zero-length sister tips give identical rows, so C_tt can be singular
    c_inv = np.linalg.pinv(c_tt)
    ones = np.ones(n_obs)
    root = float(ones @ c_inv @ x) / float(ones @ c_inv @ ones)
    estimates = root + c_it @ c_inv @ (x - root)

    values = {node_id: float(value) for node_id, value in zip(index.internals, estimates)}
    # the root shares no path with any tip, so this is already `root`; pin it exactly
    values[index.root_id] = root
    return AncestralEstimates(values=values, root_id=index.root_id)
