# src/sipmrecon/physics/events.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np

from .hits import HitRecord

EVENT_TABLE = "PerEventCollectedData"
SCINT_PREFIX = "ScintOPsCollected"
CER_PREFIX = "CerOPsCollected"


def event_columns(n_channels: int) -> List[Tuple[str, str]]:
    """
    Ordered (name, dtype) schema of the per-event table for C channels:

    EventID, ScintOPsCollected0..C-1, CerOPsCollected0..C-1,
    ScintTotalEdep [eV], CoatingTotalEdep [eV], MuPathLength [mm],
    MuonHitX [mm], MuonHitY [mm]
    """
    cols: List[Tuple[str, str]] = [("EventID", "i8")]
    cols += [(f"{SCINT_PREFIX}{i}", "i4") for i in range(n_channels)]
    cols += [(f"{CER_PREFIX}{i}", "i4") for i in range(n_channels)]
    cols += [
        ("ScintTotalEdep", "f8"),
        ("CoatingTotalEdep", "f8"),
        ("MuPathLength", "f8"),
        ("MuonHitX", "f8"),
        ("MuonHitY", "f8"),
    ]
    return cols


def scint_columns(n_channels: int, prefix: str = SCINT_PREFIX) -> List[str]:
    return [f"{prefix}{i}" for i in range(n_channels)]


@dataclass(slots=True)
class ChannelCounters:
    """Per-event photon counts per SiPM. Reset at every event start."""
    n_channels: int
    scint: np.ndarray = field(init=False)
    cer: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        self.scint = np.zeros(self.n_channels, dtype=np.int64)
        self.cer = np.zeros(self.n_channels, dtype=np.int64)

    def reset(self) -> None:
        self.scint[:] = 0
        self.cer[:] = 0


@dataclass(slots=True)
class PrimaryHitState:
    """
    Entry point of the primary particle for the current event.

    Positions stay at the origin and time at 0 until a hit is registered;
    an event without a registered primary therefore records (0, 0).
    """
    local_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    global_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    time: float = 0.0
    registered: bool = False

    def reset(self) -> None:
        self.local_position = np.zeros(3)
        self.global_position = np.zeros(3)
        self.time = 0.0
        self.registered = False


@dataclass(frozen=True, slots=True)
class EventRecord:
    """One persisted row of the per-event table (display units)."""
    event_id: int
    scint_counts: Tuple[int, ...]
    cer_counts: Tuple[int, ...]
    scint_edep_sum: float
    coating_edep_sum: float
    mu_path_length_sum: float
    muon_hit_x: float
    muon_hit_y: float

    def as_row(self) -> List[Any]:
        """Values in the order of event_columns()."""
        return [
            self.event_id,
            *self.scint_counts,
            *self.cer_counts,
            self.scint_edep_sum,
            self.coating_edep_sum,
            self.mu_path_length_sum,
            self.muon_hit_x,
            self.muon_hit_y,
        ]


# ---------------------------------------------------------------------------
# Hit source seam
# ---------------------------------------------------------------------------

class EventHits(Protocol):
    """What the aggregation stage needs from one simulated event."""
    event_id: int
    # (local_pos, global_pos, time) entries of the primary, in step order; may be empty
    primary_entries: Sequence[Tuple[Any, Any, float]]

    def get_hits(self, hcid: int) -> Optional[Sequence[HitRecord]]:
        """Hit collection by id, None if the event has no such collection."""

    def get_hit_map(self, hcid: int) -> Optional[Mapping[Any, float]]:
        """Scalar hit map (track/step key -> value), None if absent."""


class CollectionRegistry:
    """
    Name -> integer id lookup for hit collections.

    Unknown names resolve to -1, and an id of -1 never matches a collection.
    """

    def __init__(self, names: Sequence[str] = ()):
        self._ids: Dict[str, int] = {}
        for n in names:
            self.register(n)

    def register(self, name: str) -> int:
        if name not in self._ids:
            self._ids[name] = len(self._ids)
        return self._ids[name]

    def collection_id(self, name: str) -> int:
        return self._ids.get(name, -1)


@dataclass(frozen=True, slots=True)
class CollectionIds:
    """Collection ids resolved once per run."""
    sensor: int
    scint_edep: int
    scint_mu_path_length: int
    coating_edep: int


@dataclass(slots=True)
class EventHitData:
    """In-memory EventHits: collections keyed by id."""
    event_id: int
    collections: Dict[int, Any] = field(default_factory=dict)
    # (local_pos, global_pos, time) entries of the primary, in step order
    primary_entries: List[Tuple[Any, Any, float]] = field(default_factory=list)

    def get_hits(self, hcid: int) -> Optional[Sequence[HitRecord]]:
        return self.collections.get(hcid) if hcid >= 0 else None

    def get_hit_map(self, hcid: int) -> Optional[Mapping[Any, float]]:
        return self.collections.get(hcid) if hcid >= 0 else None

    @classmethod
    def from_named(
        cls,
        registry: CollectionRegistry,
        event_id: int,
        named: Mapping[str, Any],
        primary_entries: Sequence[Tuple[Any, Any, float]] = (),
    ) -> "EventHitData":
        """Build from {collection name: payload}; None payloads are left out."""
        cols = {}
        for name, payload in named.items():
            if payload is None:
                continue
            cols[registry.register(name)] = payload
        return cls(event_id=event_id, collections=cols, primary_entries=list(primary_entries))
