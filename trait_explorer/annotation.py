"""Join leaf traits and ancestral estimates onto the tree's node set."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional

import numpy as np
import pandas as pd
from Bio.Phylo.BaseTree import Tree

from .ancestral import AncestralEstimates, NodeIndex, index_nodes

LEAF = "leaf"
INTERNAL = "internal"
MISSING = "missing"


@dataclass(frozen=True)
class NodeTrait:
    kind: str
    value: float = math.nan

    @classmethod
    def leaf(cls, value: float) -> "NodeTrait":
        return cls(LEAF, float(value))

    @classmethod
    def internal(cls, value: float) -> "NodeTrait":
        return cls(INTERNAL, float(value))

    @classmethod
    def missing(cls) -> "NodeTrait":
        return cls(MISSING)

    @property
    def is_missing(self) -> bool:
        return self.kind == MISSING


@dataclass(frozen=True)
class AnnotatedNode:
    node_id: int
    parent_id: Optional[int]
    label: Optional[str]
    branch_length: Optional[float]
    depth: float
    trait: NodeTrait
    children: tuple = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def display_label(self) -> str:
        return display_label(self.label)


class AnnotatedTree:
    """Read-only tree where every node carries exactly one trait state."""

    def __init__(self, nodes: Mapping[int, AnnotatedNode], root_id: int, leaf_order: List[int]):
        self._nodes = dict(nodes)
        self.root_id = root_id
        self.leaf_order = list(leaf_order)

    def __getitem__(self, node_id: int) -> AnnotatedNode:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[AnnotatedNode]:
        return iter(self._nodes[node_id] for node_id in sorted(self._nodes))

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> AnnotatedNode:
        return self._nodes[self.root_id]

    def leaves(self) -> List[AnnotatedNode]:
        return [self._nodes[node_id] for node_id in self.leaf_order]

    def missing(self) -> List[AnnotatedNode]:
        return [node for node in self if node.trait.is_missing]

    def trait_values(self) -> np.ndarray:
        return np.array([node.trait.value for node in self], dtype=float)

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "node": node.node_id,
                "parent": node.parent_id,
                "label": node.display_label,
                "branch_length": node.branch_length,
                "depth": node.depth,
                "kind": node.trait.kind,
                "trait": node.trait.value,
            }
            for node in self
        ]
        return pd.DataFrame(rows)


def display_label(label: Optional[str]) -> str:
    return (label or "").replace("_", " ")


def annotate_tree(
    tree: Tree,
    traits: Mapping[str, float],
    estimates: AncestralEstimates,
    index: Optional[NodeIndex] = None,
) -> AnnotatedTree:
    index = index or index_nodes(tree)
    nodes: Dict[int, AnnotatedNode] = {}
    for node_id, clade in index.clades.items():
        if clade.is_terminal():
            trait = NodeTrait.leaf(traits[clade.name]) if clade.name in traits else NodeTrait.missing()
        elif node_id in estimates.values:
            trait = NodeTrait.internal(estimates.values[node_id])
        else:
            trait = NodeTrait.missing()
        nodes[node_id] = AnnotatedNode(
            node_id=node_id,
            parent_id=index.parents[node_id],
            label=clade.name,
            branch_length=clade.branch_length,
            depth=index.depth(node_id),
            trait=trait,
            children=tuple(index.children(node_id)),
        )
    return AnnotatedTree(nodes, root_id=index.root_id, leaf_order=index.leaves)
