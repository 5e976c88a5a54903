from __future__ import annotations
from .schemas import Config
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310


def load_config(path: str | Path | None = None) -> Config:
    """Load a TOML config; no path means all defaults."""
    if path is None:
        return Config()
    p = Path(path)
    data = tomllib.loads(p.read_text())
    return Config(**data)


def snapshot_config_toml(path: str | Path | None) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    if path is None:
        return ""
    return Path(path).read_text()
