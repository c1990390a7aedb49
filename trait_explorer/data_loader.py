"""Tree and trait-table loading."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
from Bio import Phylo
from Bio.Phylo.BaseTree import Tree

from . import config

PathLike = Union[str, Path]

_TREE_FORMATS = {
    ".nex": "nexus",
    ".nexus": "nexus",
    ".xml": "phyloxml",
    ".phyloxml": "phyloxml",
}


def infer_tree_format(path: PathLike) -> str:
    return _TREE_FORMATS.get(Path(path).suffix.lower(), "newick")


def load_tree(path: PathLike, fmt: Optional[str] = None) -> Tree:
    return Phylo.read(str(path), fmt or infer_tree_format(path))


def leaf_labels(tree: Tree) -> List[str]:
    return [leaf.name for leaf in tree.get_terminals() if leaf.name]


def load_trait_table(path: PathLike, sep: Optional[str] = None) -> pd.DataFrame:
    # sep=None lets the python engine sniff comma, tab or semicolon files
    table = pd.read_csv(path, sep=sep, engine="python")
    required = [config.SPECIES_COLUMN, config.MASS_COLUMN]
    missing = [col for col in required if col not in table.columns]
    if missing:
        raise ValueError(f"{path}: trait table is missing column(s) {', '.join(missing)}")
    table[config.SPECIES_COLUMN] = table[config.SPECIES_COLUMN].astype(str).str.strip()
    mass = pd.to_numeric(table[config.MASS_COLUMN], errors="coerce")
    bad = table.loc[mass.isna(), config.SPECIES_COLUMN].tolist()
    if bad:
        raise ValueError(f"{path}: blank or non-numeric mass for {', '.join(bad)}")
    table[config.MASS_COLUMN] = mass
    return table


def filter_to_tree(table: pd.DataFrame, tree: Tree) -> pd.DataFrame:
    """Keep only rows whose species is a leaf of ``tree``."""
    labels = set(leaf_labels(tree))
    mask = table[config.SPECIES_COLUMN].isin(labels)
    return table.loc[mask].reset_index(drop=True)


def log_transform(table: pd.DataFrame) -> pd.DataFrame:
    """Add the log10 mass column; zero or negative masses become -inf/nan."""
    out = table.copy()
    with np.errstate(divide="ignore", invalid="ignore"):
        out[config.LOG_MASS_COLUMN] = np.log10(out[config.MASS_COLUMN].to_numpy(dtype=float))
    return out


def leaf_trait_vector(table: pd.DataFrame) -> pd.Series:
    traits = table.set_index(config.SPECIES_COLUMN)[config.LOG_MASS_COLUMN]
    traits = traits[~traits.index.duplicated(keep="first")]
    traits.name = config.LOG_MASS_COLUMN
    return traits
