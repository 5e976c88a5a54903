# src/sipmrecon/physics/binning.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from ..errors import INVALID_CHANNEL_ID
from .events import ChannelCounters
from .hits import HitRecord, SCINTILLATION, CERENKOV
from .histograms import PhotonHistograms
from . import units


@dataclass
class AggregationDiagnostics:
    events_seen: int = 0
    events_written: int = 0
    events_skipped: int = 0
    hits_seen: int = 0
    hits_dropped: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str, n: int = 1) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + n

    def as_dict(self) -> Dict[str, int]:
        out = {
            "events_seen": self.events_seen,
            "events_written": self.events_written,
            "events_skipped": self.events_skipped,
            "hits_seen": self.hits_seen,
            "hits_dropped": self.hits_dropped,
        }
        out.update({f"reason.{k}": v for k, v in self.reasons.items()})
        return out


class ChannelBinner:
    """
    Fold one event's SiPM hits into per-channel counters.

    Scintillation photons increment counters.scint and fill the global
    energy/time/spread/reflection histograms; Cerenkov photons increment
    counters.cer; any other process is ignored. Hits whose channel id is
    outside [0, C) are dropped before anything is touched.
    """

    def __init__(
        self,
        n_channels: int,
        histograms: Optional[PhotonHistograms] = None,
        diag: Optional[AggregationDiagnostics] = None,
    ):
        self.n_channels = int(n_channels)
        self.histograms = histograms
        self.diag = diag if diag is not None else AggregationDiagnostics()

    def bin_hits(self, hits: Iterable[HitRecord], counters: ChannelCounters) -> int:
        """Accumulate hits into counters; return the number of dropped hits."""
        dropped = 0
        for hit in hits:
            self.diag.hits_seen += 1
            ch = hit.channel_id
            if ch < 0 or ch >= self.n_channels:
                dropped += 1
                continue

            if hit.process == SCINTILLATION:
                counters.scint[ch] += 1
                if self.histograms is not None:
                    self._fill(hit, ch)
            elif hit.process == CERENKOV:
                counters.cer[ch] += 1

        if dropped:
            self.diag.hits_dropped += dropped
            self.diag.inc(INVALID_CHANNEL_ID, dropped)
        return dropped

    def _fill(self, hit: HitRecord, ch: int) -> None:
        h = self.histograms
        h.energy.fill(hit.energy / units.eV)
        h.time.fill(hit.time / units.ns)
        h.spread.fill(float(hit.position[0]) / units.mm, float(hit.position[1]) / units.mm)
        h.reflections[ch].fill(hit.n_reflections_at_coating)
