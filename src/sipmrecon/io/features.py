from __future__ import annotations
from pathlib import Path
from typing import Sequence

import numpy as np

from ..errors import SchemaMismatch
from ..physics.events import EVENT_TABLE
from .adapters import TableReader, open_table


def load_feature_matrix(reader: TableReader, columns: Sequence[str]) -> np.ndarray:
    """
    Materialize the selected columns as an (F, N) float64 matrix.

    Row i of the output is column columns[i]; the event axis keeps the
    stored row order. Every column is checked before anything is read.
    """
    available = set(reader.columns)
    missing = [c for c in columns if c not in available]
    if missing:
        raise SchemaMismatch(f"feature columns not in store: {missing}")

    n = reader.n_rows
    X = np.empty((len(columns), n), dtype=np.float64)
    for i, col in enumerate(columns):
        v = reader.read_column(col)
        if v.shape[0] != n:
            raise SchemaMismatch(f"column {col!r} has {v.shape[0]} rows, expected {n}")
        X[i] = v
    # immutable for the duration of inference
    X.flags.writeable = False
    return X


def load_features(path: str | Path, columns: Sequence[str], table: str = EVENT_TABLE) -> np.ndarray:
    with open_table(path, table) as reader:
        return load_feature_matrix(reader, columns)
