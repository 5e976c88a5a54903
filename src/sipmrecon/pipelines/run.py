from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

import h5py

from ..config.schemas import Config
from ..errors import RunStateError
from ..io.store import TableWriter, write_histograms, write_init
from ..physics.binning import AggregationDiagnostics, ChannelBinner
from ..physics.events import (
    EVENT_TABLE,
    ChannelCounters,
    CollectionIds,
    CollectionRegistry,
    EventHits,
    EventRecord,
    event_columns,
)
from ..physics.histograms import PhotonHistograms
from ..physics.primary import PrimaryHitRegistrar
from .emitter import EventRecordEmitter

UNOPENED = "unopened"
OPEN = "open"
CLOSED = "closed"


class RunController:
    """
    Owns one run: the event store, the run-global histograms and the
    per-event transient state.

        unopened --begin_run--> open --end_run--> closed

    One controller is one run and one worker. Concurrent workers each need
    their own controller (and output file).
    """

    def __init__(self, cfg: Config, output_path: str | Path, *, config_text: str = ""):
        self.cfg = cfg
        self.output_path = Path(output_path)
        self.config_text = config_text
        self.n_channels = cfg.run.n_channels
        self.state = UNOPENED

        self.diag = AggregationDiagnostics()
        self.counters = ChannelCounters(self.n_channels)
        self.registrar = PrimaryHitRegistrar()

        self.ids: Optional[CollectionIds] = None
        self.histograms: Optional[PhotonHistograms] = None
        self.binner: Optional[ChannelBinner] = None
        self.emitter: Optional[EventRecordEmitter] = None
        self._f: Optional[h5py.File] = None
        self._table: Optional[TableWriter] = None
        self._t0 = 0.0
        self.elapsed_s = 0.0

    def _require(self, state: str, op: str) -> None:
        if self.state != state:
            raise RunStateError(f"{op}() not allowed in state {self.state!r} (needs {state!r})")

    # ------------------------------------------------------------------ run

    def begin_run(self, registry: CollectionRegistry) -> None:
        self._require(UNOPENED, "begin_run")
        self._t0 = time.perf_counter()

        names = self.cfg.collections
        self.ids = CollectionIds(
            sensor=registry.collection_id(names.sensor),
            scint_edep=registry.collection_id(names.scint_edep),
            scint_mu_path_length=registry.collection_id(names.scint_mu_path_length),
            coating_edep=registry.collection_id(names.coating_edep),
        )

        self._f = write_init(self.output_path, self.config_text)
        self._f.attrs["n_channels"] = self.n_channels
        self._table = TableWriter(self._f, EVENT_TABLE, event_columns(self.n_channels))

        self.histograms = PhotonHistograms.from_cfg(self.cfg.histograms, self.n_channels)
        self.binner = ChannelBinner(self.n_channels, self.histograms, self.diag)
        self.emitter = EventRecordEmitter(self._table, self.diag)
        self.state = OPEN

        if self.cfg.run.diagnostics_level >= 1:
            print(f"[run] begin: C={self.n_channels} -> {self.output_path}")
        if self.cfg.run.diagnostics_level >= 2:
            print(f"[run] collection ids: {self.ids}")

    def end_run(self) -> AggregationDiagnostics:
        self._require(OPEN, "end_run")
        try:
            self._table.flush()
            write_histograms(self._f, self.histograms.all())
            self.elapsed_s = time.perf_counter() - self._t0
            self._f.attrs["run_elapsed_s"] = self.elapsed_s
            for k, v in self.diag.as_dict().items():
                self._f.attrs[f"diag.{k}"] = v
        finally:
            self._f.close()
            self._f = None
            self.state = CLOSED

        if self.cfg.run.diagnostics_level >= 1:
            d = self.diag
            print(f"[run] end: events seen={d.events_seen} written={d.events_written} "
                  f"skipped={d.events_skipped} dropped_hits={d.hits_dropped} "
                  f"({self.elapsed_s:.2f} s)")
        return self.diag

    # ---------------------------------------------------------------- event

    def begin_event(self) -> None:
        self._require(OPEN, "begin_event")
        self.counters.reset()
        self.registrar.reset()

    def register_primary_hit(self, local_pos, global_pos, time_ns: float) -> bool:
        self._require(OPEN, "register_primary_hit")
        return self.registrar.register_hit(local_pos, global_pos, time_ns)

    def end_event(self, event: Optional[EventHits]) -> Optional[EventRecord]:
        self._require(OPEN, "end_event")
        self.diag.events_seen += 1
        if event is None:
            # no hit collections at all for this event
            return self.emitter.emit(-1, self.counters, self.registrar.state, None, None, None, None)

        ids = self.ids
        hits = event.get_hits(ids.sensor)
        if hits is not None:
            self.binner.bin_hits(hits, self.counters)

        return self.emitter.emit(
            event.event_id,
            self.counters,
            self.registrar.state,
            hits,
            event.get_hit_map(ids.scint_edep),
            event.get_hit_map(ids.scint_mu_path_length),
            event.get_hit_map(ids.coating_edep),
        )

    # ------------------------------------------------------------- helpers

    def process_event(self, event: EventHits) -> Optional[EventRecord]:
        """begin_event, replay the event's primary entries, end_event."""
        self.begin_event()
        for local_pos, global_pos, t in event.primary_entries:
            self.register_primary_hit(local_pos, global_pos, t)
        return self.end_event(event)
