from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from ..config.schemas import HistogramsCfg


@dataclass
class H1:
    """Fixed-width 1D histogram with under/overflow, filled one value at a time. Non-finite values count as overflow."""
    name: str
    title: str
    nbins: int
    lo: float
    hi: float
    counts: np.ndarray = field(init=False)
    underflow: float = 0.0
    overflow: float = 0.0
    entries: int = 0

    def __post_init__(self) -> None:
        if self.nbins < 1 or not self.hi > self.lo:
            raise ValueError(f"Bad binning for {self.name}: nbins={self.nbins}, [{self.lo}, {self.hi})")
        self.counts = np.zeros(self.nbins, dtype=np.float64)

    @property
    def edges(self) -> np.ndarray:
        return np.linspace(self.lo, self.hi, self.nbins + 1)

    def fill(self, x: float, w: float = 1.0) -> None:
        self.entries += 1
        if not np.isfinite(x):
            self.overflow += w
        elif x < self.lo:
            self.underflow += w
        elif x >= self.hi:
            self.overflow += w
        else:
            i = int((x - self.lo) * self.nbins / (self.hi - self.lo))
            self.counts[min(i, self.nbins - 1)] += w


@dataclass
class H2:
    """Fixed-width 2D histogram; counts has shape (ny, nx). Out-of-range fills are counted as overflow."""
    name: str
    title: str
    nx: int
    x_lo: float
    x_hi: float
    ny: int
    y_lo: float
    y_hi: float
    counts: np.ndarray = field(init=False)
    overflow: float = 0.0
    entries: int = 0

    def __post_init__(self) -> None:
        if self.nx < 1 or self.ny < 1 or not (self.x_hi > self.x_lo and self.y_hi > self.y_lo):
            raise ValueError(f"Bad binning for {self.name}")
        self.counts = np.zeros((self.ny, self.nx), dtype=np.float64)

    @property
    def x_edges(self) -> np.ndarray:
        return np.linspace(self.x_lo, self.x_hi, self.nx + 1)

    @property
    def y_edges(self) -> np.ndarray:
        return np.linspace(self.y_lo, self.y_hi, self.ny + 1)

    def fill(self, x: float, y: float, w: float = 1.0) -> None:
        self.entries += 1
        # NaN fails both comparisons and lands here too
        if not (self.x_lo <= x < self.x_hi and self.y_lo <= y < self.y_hi):
            self.overflow += w
            return
        i = int((x - self.x_lo) * self.nx / (self.x_hi - self.x_lo))
        j = int((y - self.y_lo) * self.ny / (self.y_hi - self.y_lo))
        self.counts[min(j, self.ny - 1), min(i, self.nx - 1)] += w


@dataclass
class PhotonHistograms:
    """
    Run-global optical photon histograms:

      ScintOpticalPhotonsEnergy  (eV)
      ScintOpticalPhotonsTime    (ns)
      ScintOpticalPhotonsSpread  (mm, mm)
      OpticalPhotonsReflections<k>, one per SiPM
    """
    energy: H1
    time: H1
    spread: H2
    reflections: List[H1]

    @classmethod
    def from_cfg(cls, cfg: HistogramsCfg, n_channels: int) -> "PhotonHistograms":
        e, t, s, r = cfg.energy_eV, cfg.time_ns, cfg.spread_mm, cfg.reflections
        return cls(
            energy=H1("ScintOpticalPhotonsEnergy", "Scint Optical Photons Energy (eV)", e.nbins, e.lo, e.hi),
            time=H1("ScintOpticalPhotonsTime", "Scint Optical Photons Time (ns)", t.nbins, t.lo, t.hi),
            spread=H2(
                "ScintOpticalPhotonsSpread", "Scint Optical Photons Spread; X (mm); Y (mm)",
                s.nx, s.x_lo, s.x_hi, s.ny, s.y_lo, s.y_hi,
            ),
            reflections=[
                H1(f"OpticalPhotonsReflections{k}", "Optical Photons Reflections", r.nbins, r.lo, r.hi)
                for k in range(n_channels)
            ],
        )

    def all(self) -> Dict[str, H1 | H2]:
        out: Dict[str, H1 | H2] = {self.energy.name: self.energy, self.time.name: self.time,
                                   self.spread.name: self.spread}
        for h in self.reflections:
            out[h.name] = h
        return out
