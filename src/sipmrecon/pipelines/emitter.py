from __future__ import annotations
from typing import Any, Mapping, Optional, Sequence

from ..errors import INCOMPLETE_EVENT_DATA
from ..io.store import TableWriter
from ..physics.binning import AggregationDiagnostics
from ..physics.events import ChannelCounters, EventRecord, PrimaryHitState
from ..physics.hits import HitRecord
from ..physics import units


def sum_hit_map(hm: Optional[Mapping[Any, float]]) -> float:
    """Sum of all values of a hit map; 0 for a missing or empty map."""
    if not hm:
        return 0.0
    total = 0.0
    for v in hm.values():
        total += float(v)
    return total


class EventRecordEmitter:
    """
    Turns the end-of-event state into one EventRecord and appends it to the
    per-event table. Events with any of the four collections missing are
    skipped without a row (counted as incomplete_event_data).
    """

    def __init__(self, table: TableWriter, diag: Optional[AggregationDiagnostics] = None):
        self.table = table
        self.diag = diag if diag is not None else AggregationDiagnostics()

    @staticmethod
    def build_record(
        event_id: int,
        counters: ChannelCounters,
        primary: PrimaryHitState,
        scint_edep: float,
        coating_edep: float,
        mu_path_length: float,
    ) -> EventRecord:
        return EventRecord(
            event_id=int(event_id),
            scint_counts=tuple(int(c) for c in counters.scint),
            cer_counts=tuple(int(c) for c in counters.cer),
            scint_edep_sum=scint_edep / units.eV,
            coating_edep_sum=coating_edep / units.eV,
            mu_path_length_sum=mu_path_length / units.mm,
            muon_hit_x=float(primary.local_position[0]) / units.mm,
            muon_hit_y=float(primary.local_position[1]) / units.mm,
        )

    def emit(
        self,
        event_id: int,
        counters: ChannelCounters,
        primary: PrimaryHitState,
        sensor_hits: Optional[Sequence[HitRecord]],
        scint_edep_map: Optional[Mapping[Any, float]],
        mu_path_length_map: Optional[Mapping[Any, float]],
        coating_edep_map: Optional[Mapping[Any, float]],
    ) -> Optional[EventRecord]:
        if sensor_hits is None or scint_edep_map is None or mu_path_length_map is None \
                or coating_edep_map is None:
            self.diag.events_skipped += 1
            self.diag.inc(INCOMPLETE_EVENT_DATA)
            return None

        rec = self.build_record(
            event_id,
            counters,
            primary,
            scint_edep=sum_hit_map(scint_edep_map),
            coating_edep=sum_hit_map(coating_edep_map),
            mu_path_length=sum_hit_map(mu_path_length_map),
        )
        self.table.append_row(rec.as_row())
        self.diag.events_written += 1
        return rec
