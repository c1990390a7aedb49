"""One-shot data preparation run at session start."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
from Bio.Phylo.BaseTree import Tree

from . import config
from .ancestral import AncestralEstimates, NodeIndex, index_nodes, reconstruct_ancestral_states
from .annotation import AnnotatedTree, annotate_tree
from .data_loader import filter_to_tree, leaf_trait_vector, load_trait_table, load_tree, log_transform
from .session import DataDefaults, derive_defaults


@dataclass
class Dataset:
    tree: Tree
    table: pd.DataFrame
    traits: pd.Series
    index: NodeIndex
    estimates: AncestralEstimates
    annotated: AnnotatedTree
    defaults: DataDefaults

    @property
    def node_traits(self) -> np.ndarray:
        return self.annotated.trait_values()


def build_dataset(tree: Tree, table: pd.DataFrame) -> Dataset:
    table = log_transform(filter_to_tree(table, tree))
    traits = leaf_trait_vector(table)
    index = index_nodes(tree)
    estimates = reconstruct_ancestral_states(tree, traits, index=index)
    annotated = annotate_tree(tree, traits, estimates, index=index)
    defaults = derive_defaults(annotated.trait_values(), estimates.root_value)
    return Dataset(
        tree=tree,
        table=table,
        traits=traits,
        index=index,
        estimates=estimates,
        annotated=annotated,
        defaults=defaults,
    )


def load_dataset(
    tree_path: Union[str, Path] = config.TREE_PATH,
    traits_path: Union[str, Path] = config.TRAITS_PATH,
    *,
    tree_format: Optional[str] = None,
    sep: Optional[str] = None,
) -> Dataset:
    return build_dataset(load_tree(tree_path, tree_format), load_trait_table(traits_path, sep=sep))
