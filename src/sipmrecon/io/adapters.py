"""
sipmrecon.io.adapters

Read-only access to finished runs, whatever container they were written in.

- HDF5 stores written by sipmrecon (TableWriter layout, /tables/<name>).
- ROOT files written by the Geant4 analysis manager: one TTree per ntuple,
  e.g. 'PerEventCollectedData', one branch per column (read with uproot).

Both expose the same small surface used by the Feature Loader and the
comparison report:

    reader.columns          -> list[str]
    reader.n_rows           -> int
    reader.read_column(name) -> np.ndarray (row order as stored)

and raise SchemaMismatch for a missing table or column.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Protocol

import numpy as np

# Optional imports (guarded)
try:
    import uproot  # type: ignore
except Exception:  # pragma: no cover
    uproot = None  # type: ignore

from ..errors import SchemaMismatch
from .store import HDF5TableReader


class TableReader(Protocol):
    columns: List[str]
    n_rows: int

    def read_column(self, name: str, dtype=np.float64) -> np.ndarray: ...
    def close(self) -> None: ...


class ROOTTableReader:
    """
    Read one TTree of a ROOT file.

    Parameters
    ----------
    path : ROOT file
    table : tree name; a ';<cycle>' suffix is optional
    """

    def __init__(self, path: str | Path, table: str):
        if uproot is None:  # pragma: no cover
            raise RuntimeError("uproot is required for ROOTTableReader but is not installed.")
        self.path = str(path)
        self.table = table
        self._f = uproot.open(self.path)
        try:
            self._tree = self._f[table]
        except KeyError:
            self.close()
            raise SchemaMismatch(f"tree {table!r} not found in {self.path}") from None

    @property
    def columns(self) -> List[str]:
        return list(self._tree.keys())

    @property
    def n_rows(self) -> int:
        return int(self._tree.num_entries)

    def read_column(self, name: str, dtype=np.float64) -> np.ndarray:
        if name not in self._tree.keys():
            raise SchemaMismatch(f"branch {name!r} not in tree {self.table!r} of {self.path}")
        arr = self._tree[name].array(library="np")
        return np.asarray(arr, dtype=dtype)

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
            self._f = None

    def __enter__(self) -> "ROOTTableReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def open_table(path: str | Path, table: str):
    """Factory: pick the reader from the file suffix (.root -> uproot, else HDF5)."""
    p = Path(path)
    if p.suffix.lower() == ".root":
        return ROOTTableReader(p, table)
    return HDF5TableReader(p, table)
