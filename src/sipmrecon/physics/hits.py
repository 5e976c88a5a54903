from __future__ import annotations
from dataclasses import dataclass
from typing import Literal

import numpy as np

SCINTILLATION = "Scintillation"
CERENKOV = "Cerenkov"
OTHER = "Other"

ProcessKind = Literal["Scintillation", "Cerenkov", "Other"]


@dataclass(slots=True)
class HitRecord:
    """
    One optical photon detected on a SiPM (sensor layer).

    channel_id: SiPM index, expected in [0, C)
    process: creator process of the photon
    energy: photon energy [native, MeV]
    time: global time [native, ns]
    position: (3,) hit position [native, mm]
    n_reflections / n_reflections_at_coating: bounces before detection
    """
    channel_id: int
    process: str
    energy: float
    time: float
    position: np.ndarray  # shape (3,), dtype float
    n_reflections: int = 0
    n_reflections_at_coating: int = 0
