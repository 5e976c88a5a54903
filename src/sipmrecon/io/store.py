from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence, Tuple
import h5py
import numpy as np
from datetime import datetime, timezone
from pathlib import Path

from ..errors import SchemaMismatch
from ..physics.histograms import H1, H2

FORMAT_VERSION = "1.0"
SOFTWARE = "sipm-recon 0.1.0"

# Layout:
#   /            attrs: format_version, created_utc, software, config_text
#   /tables/<table>/<column>   (N,) resizable, attrs["columns"] keeps column order
#   /histograms/<name>/counts  (+ edges / x_edges, y_edges)


def write_init(path: str | Path, config_text: str = "") -> h5py.File:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    f = h5py.File(str(path), "w")
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = SOFTWARE
    f.attrs["config_text"] = config_text
    return f


def _as_str(v) -> str:
    return v.decode() if isinstance(v, bytes) else str(v)


class TableWriter:
    """
    Append-only fixed-schema table inside an open HDF5 file.

    Rows are buffered in memory and written to the resizable column
    datasets by flush() (automatically every `chunk_rows` rows).
    """

    def __init__(
        self,
        f: h5py.File,
        name: str,
        columns: Sequence[Tuple[str, str]],
        *,
        chunk_rows: int = 4096,
    ):
        self.f = f
        self.name = name
        self.columns = [(str(c), np.dtype(t)) for c, t in columns]
        self.chunk_rows = int(chunk_rows)
        self._buf: List[Sequence[Any]] = []
        self._n_written = 0
        self.create_schema()

    def create_schema(self) -> None:
        grp = self.f.require_group("tables")
        if self.name in grp:
            del grp[self.name]
        g = grp.create_group(self.name)
        g.attrs["columns"] = np.array([c for c, _ in self.columns], dtype=h5py.string_dtype())
        for col, dt in self.columns:
            g.create_dataset(col, shape=(0,), maxshape=(None,), dtype=dt,
                             chunks=(max(1, self.chunk_rows),), compression="gzip")
        self.group = g

    def append_row(self, values: Sequence[Any]) -> None:
        if len(values) != len(self.columns):
            raise ValueError(
                f"Row for table {self.name!r} has {len(values)} values, "
                f"schema has {len(self.columns)} columns"
            )
        self._buf.append(tuple(values))
        if len(self._buf) >= self.chunk_rows:
            self.flush()

    def append_rows(self, block: np.ndarray) -> None:
        """Append a (rows, ncols) block."""
        block = np.asarray(block)
        if block.ndim != 2 or block.shape[1] != len(self.columns):
            raise ValueError(f"Block shape {block.shape} does not match {len(self.columns)} columns")
        for row in block:
            self.append_row(row)

    def flush(self) -> None:
        if not self._buf:
            return
        n_new = len(self._buf)
        start = self._n_written
        for j, (col, dt) in enumerate(self.columns):
            dset = self.group[col]
            dset.resize((start + n_new,))
            dset[start:start + n_new] = np.asarray([r[j] for r in self._buf], dtype=dt)
        self._n_written += n_new
        self._buf.clear()

    @property
    def n_rows(self) -> int:
        return self._n_written + len(self._buf)


def write_histograms(f: h5py.File, hists: Dict[str, H1 | H2]) -> None:
    grp = f.require_group("histograms")
    for name, h in hists.items():
        if name in grp:
            del grp[name]
        g = grp.create_group(name)
        g.attrs["title"] = h.title
        g.attrs["entries"] = h.entries
        g.attrs["overflow"] = h.overflow
        g.create_dataset("counts", data=h.counts, compression="gzip")
        if isinstance(h, H1):
            g.attrs["underflow"] = h.underflow
            g.create_dataset("edges", data=h.edges)
        else:
            g.create_dataset("x_edges", data=h.x_edges)
            g.create_dataset("y_edges", data=h.y_edges)


def read_histogram(path: str | Path, name: str) -> Dict[str, Any]:
    with h5py.File(str(path), "r") as f:
        if "histograms" not in f or name not in f["histograms"]:
            raise KeyError(f"{name} not found in /histograms of {path}")
        g = f["histograms"][name]
        out: Dict[str, Any] = {k: np.array(g[k]) for k in g.keys()}
        out.update({k: g.attrs[k] for k in g.attrs.keys()})
    return out


class HDF5TableReader:
    """
    Read-only access to one table of a store written by TableWriter.

    Usable as a context manager; read_column() keeps stored row order.
    """

    def __init__(self, path: str | Path, table: str):
        self.path = str(path)
        self.table = table
        self._f: Optional[h5py.File] = h5py.File(self.path, "r")
        tables = self._f.get("tables")
        if tables is None or table not in tables:
            self.close()
            raise SchemaMismatch(f"table {table!r} not found in {self.path}")
        self._g = tables[table]

    @property
    def columns(self) -> List[str]:
        return [_as_str(c) for c in self._g.attrs["columns"]]

    @property
    def n_rows(self) -> int:
        cols = self.columns
        return int(self._g[cols[0]].shape[0]) if cols else 0

    @property
    def attrs(self) -> Dict[str, Any]:
        return dict(self._g.attrs)

    @property
    def file_attrs(self) -> Dict[str, Any]:
        return dict(self._f.attrs)

    def read_column(self, name: str, dtype=np.float64) -> np.ndarray:
        if name not in self._g:
            raise SchemaMismatch(f"column {name!r} not in table {self.table!r} of {self.path}")
        return np.asarray(self._g[name][...], dtype=dtype)

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
            self._f = None

    def __enter__(self) -> "HDF5TableReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
