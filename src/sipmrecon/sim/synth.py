from __future__ import annotations
import math
from typing import Iterator, List

import numpy as np

from ..config.schemas import CollectionsCfg, SynthCfg
from ..physics.events import CollectionRegistry, EventHitData
from ..physics.hits import HitRecord, SCINTILLATION, CERENKOV
from ..physics import units

# plastic scintillator, roughly 2 MeV/cm for a MIP
DEDX_MEV_PER_MM = 0.2
PLATE_THICKNESS_MM = 10.0
SIPM_STANDOFF_MM = 10.0
DECAY_TIME_NS = 2.1


def sipm_grid(n_channels: int, half_mm: float) -> np.ndarray:
    """(C, 2) SiPM centers on a ceil(sqrt(C))-wide square grid, row-major."""
    side = int(math.ceil(math.sqrt(n_channels)))
    if side == 1:
        return np.zeros((n_channels, 2), dtype=np.float64)
    ticks = np.linspace(-half_mm, half_mm, side)
    xx, yy = np.meshgrid(ticks, ticks)
    return np.stack([xx.ravel(), yy.ravel()], axis=1)[:n_channels]


class SyntheticHitSource:
    """
    Toy muon events for exercising the aggregation stage.

    Each event: one muon crossing the plate at a uniform (x, y), energy
    deposit and path length hit maps keyed by track id, scintillation
    photons spread over the SiPM grid with inverse-square weights, and a
    few Cerenkov photons. With p_missing_map one of the three hit maps is
    dropped; with p_bad_channel a photon gets an out-of-range channel id.
    """

    def __init__(
        self,
        cfg: SynthCfg,
        n_channels: int,
        collections: CollectionsCfg | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.cfg = cfg
        self.n_channels = int(n_channels)
        self.names = collections or CollectionsCfg()
        self.rng = rng or np.random.default_rng(cfg.seed)
        self.registry = CollectionRegistry([
            self.names.sensor,
            self.names.scint_edep,
            self.names.scint_mu_path_length,
            self.names.coating_edep,
        ])
        self.sipm_xy = sipm_grid(self.n_channels, cfg.sensor_half_mm)

    def events(self) -> Iterator[EventHitData]:
        for i in range(self.cfg.n_events):
            yield self.make_event(i)

    def _photons(self, n: int, process: str, weights: np.ndarray, t0: float) -> List[HitRecord]:
        rng = self.rng
        if n == 0:
            return []
        ch = rng.choice(self.n_channels, size=n, p=weights)
        if self.cfg.p_bad_channel > 0:
            bad = rng.random(n) < self.cfg.p_bad_channel
            ch = np.where(bad, rng.choice([-1, self.n_channels], size=n), ch)

        e = rng.normal(2.95, 0.1, size=n) * units.eV
        t = (t0 + rng.exponential(DECAY_TIME_NS, size=n) + rng.uniform(0.0, 1.0, size=n)) * units.ns
        refl = rng.poisson(3.0, size=n)
        refl_coat = rng.binomial(refl, 0.3)

        hits = []
        for j in range(n):
            k = int(ch[j])
            xy = self.sipm_xy[k] if 0 <= k < self.n_channels else np.zeros(2)
            pos = np.array([xy[0], xy[1], PLATE_THICKNESS_MM], dtype=np.float64)
            pos[:2] += rng.normal(0.0, 3.0, size=2)
            hits.append(HitRecord(
                channel_id=k,
                process=process,
                energy=float(e[j]),
                time=float(t[j]),
                position=pos * units.mm,
                n_reflections=int(refl[j]),
                n_reflections_at_coating=int(refl_coat[j]),
            ))
        return hits

    def make_event(self, event_id: int) -> EventHitData:
        cfg, rng = self.cfg, self.rng

        xy = rng.uniform(-cfg.plate_half_mm, cfg.plate_half_mm, size=2)
        cos_theta = rng.uniform(0.8, 1.0)
        path = PLATE_THICKNESS_MM / cos_theta
        edep = path * DEDX_MEV_PER_MM
        t0 = rng.uniform(0.0, 1.0)

        local_in = np.array([xy[0], xy[1], 0.0]) * units.mm
        global_in = local_in + np.array([0.0, 0.0, 100.0]) * units.mm
        tan_theta = math.sqrt(1.0 - cos_theta ** 2) / cos_theta
        local_out = local_in + np.array([PLATE_THICKNESS_MM * tan_theta, 0.0, PLATE_THICKNESS_MM]) * units.mm
        primary_entries = [
            (local_in, global_in, t0 * units.ns),
            # a second crossing later in the event; first one wins
            (local_out, local_out + (global_in - local_in), (t0 + 0.05) * units.ns),
        ]

        d2 = np.sum((self.sipm_xy - xy) ** 2, axis=1)
        w = 1.0 / (d2 + SIPM_STANDOFF_MM ** 2)
        w /= w.sum()

        n_scint = rng.poisson(cfg.mean_scint_photons * path / PLATE_THICKNESS_MM)
        n_cer = rng.poisson(cfg.mean_cer_photons)
        hits = self._photons(n_scint, SCINTILLATION, w, t0) + self._photons(n_cer, CERENKOV, w, t0)
        rng.shuffle(hits)

        # track 1 is the muon, track 2 a delta electron
        maps = {
            self.names.scint_edep: {1: 0.9 * edep * units.MeV, 2: 0.1 * edep * units.MeV},
            self.names.scint_mu_path_length: {1: path * units.mm},
            self.names.coating_edep: {1: 0.01 * edep * units.MeV},
        }
        if cfg.p_missing_map > 0 and rng.random() < cfg.p_missing_map:
            maps[list(maps)[int(rng.integers(0, 3))]] = None

        named = {self.names.sensor: hits, **maps}
        return EventHitData.from_named(self.registry, event_id, named, primary_entries=primary_entries)
