import numpy as np
import pytest

from sipmrecon.errors import RunStateError
from sipmrecon.io.store import HDF5TableReader, read_histogram
from sipmrecon.physics import units
from sipmrecon.physics.events import EVENT_TABLE, EventHitData, event_columns
from sipmrecon.pipelines.run import RunController


def _named(cfg, hits, edep, path, coat):
    c = cfg.collections
    return {c.sensor: hits, c.scint_edep: edep, c.scint_mu_path_length: path, c.coating_edep: coat}


def test_two_event_scenario(tmp_path, cfg2, registry, hit):
    out = tmp_path / "run.h5"
    ctl = RunController(cfg2, out)
    ctl.begin_run(registry)

    ev0 = EventHitData.from_named(registry, 0, _named(
        cfg2,
        [hit(0), hit(0), hit(1, "Cerenkov")],
        {7: 5.0 * units.eV},
        {7: 1.2 * units.mm},
        {7: 0.3 * units.eV},
    ))
    ctl.begin_event()
    ctl.register_primary_hit([1.0, 2.0, 0.0], [1.0, 2.0, 50.0], 0.1)
    rec0 = ctl.end_event(ev0)

    ev1 = EventHitData.from_named(registry, 1, _named(cfg2, [], {1: 1.0}, None, {1: 1.0}))
    ctl.begin_event()
    rec1 = ctl.end_event(ev1)
    diag = ctl.end_run()

    assert rec0 is not None and rec1 is None
    assert diag.events_seen == 2 and diag.events_written == 1 and diag.events_skipped == 1
    assert diag.reasons["incomplete_event_data"] == 1

    with HDF5TableReader(out, EVENT_TABLE) as r:
        assert r.n_rows == 1
        row = [r.read_column(c)[0] for c in r.columns]
        assert r.file_attrs["diag.events_skipped"] == 1
    assert row == pytest.approx([0, 2, 0, 0, 1, 5.0, 0.3, 1.2, 1.0, 2.0])


def test_zero_events_gives_empty_schema_valid_store(tmp_path, cfg4, registry):
    out = tmp_path / "empty.h5"
    ctl = RunController(cfg4, out)
    ctl.begin_run(registry)
    ctl.end_run()

    with HDF5TableReader(out, EVENT_TABLE) as r:
        assert r.n_rows == 0
        assert r.columns == [name for name, _ in event_columns(4)]
        assert r.columns[:2] == ["EventID", "ScintOPsCollected0"]
        assert r.columns[-5:] == ["ScintTotalEdep", "CoatingTotalEdep", "MuPathLength", "MuonHitX", "MuonHitY"]
    h = read_histogram(out, "ScintOpticalPhotonsEnergy")
    assert h["counts"].shape == (1000,) and h["counts"].sum() == 0
    read_histogram(out, "OpticalPhotonsReflections3")


def test_begin_event_resets_counters_and_primary(tmp_path, cfg2, registry, hit):
    out = tmp_path / "reset.h5"
    ctl = RunController(cfg2, out)
    ctl.begin_run(registry)
    full = lambda eid, hits: EventHitData.from_named(registry, eid, _named(cfg2, hits, {}, {}, {}))

    ctl.begin_event()
    ctl.register_primary_hit([4.0, 5.0, 0.0], [4.0, 5.0, 0.0], 0.0)
    ctl.end_event(full(0, [hit(1), hit(1)]))

    # no primary registered in the second event -> (0, 0)
    ctl.begin_event()
    rec = ctl.end_event(full(1, [hit(0)]))
    ctl.end_run()

    assert rec.scint_counts == (1, 0)
    assert (rec.muon_hit_x, rec.muon_hit_y) == (0.0, 0.0)
    assert rec.scint_edep_sum == 0.0


def test_missing_sensor_collection_still_skips(tmp_path, cfg2, registry):
    ctl = RunController(cfg2, tmp_path / "s.h5")
    ctl.begin_run(registry)
    ctl.begin_event()
    assert ctl.end_event(EventHitData.from_named(registry, 0, _named(cfg2, None, {}, {}, {}))) is None
    ctl.begin_event()
    assert ctl.end_event(None) is None
    diag = ctl.end_run()
    assert diag.events_skipped == 2 and diag.events_written == 0


def test_unknown_collection_name_skips_every_event(tmp_path, registry, hit):
    from sipmrecon.config.schemas import Config
    cfg = Config(run={"n_channels": 2, "diagnostics_level": 0},
                 collections={"coating_edep": "NoSuchMFD/Edep"})
    ctl = RunController(cfg, tmp_path / "u.h5")
    ctl.begin_run(registry)
    assert ctl.ids.coating_edep == -1
    ev = EventHitData.from_named(registry, 0, _named(Config(), [hit(0)], {}, {}, {}))
    assert ctl.process_event(ev) is None
    ctl.end_run()


def test_lifecycle_state_errors(tmp_path, cfg2, registry):
    ctl = RunController(cfg2, tmp_path / "x.h5")
    with pytest.raises(RunStateError):
        ctl.begin_event()
    with pytest.raises(RunStateError):
        ctl.end_run()
    ctl.begin_run(registry)
    with pytest.raises(RunStateError):
        ctl.begin_run(registry)
    ctl.end_run()
    for op in (ctl.begin_event, ctl.end_run, lambda: ctl.end_event(None),
               lambda: ctl.register_primary_hit(np.zeros(3), np.zeros(3), 0.0)):
        with pytest.raises(RunStateError):
            op()


def test_process_event_replays_primary_entries_first_wins(tmp_path, cfg2, registry, hit):
    ctl = RunController(cfg2, tmp_path / "p.h5")
    ctl.begin_run(registry)
    ev = EventHitData.from_named(
        registry, 3, _named(cfg2, [hit(0)], {}, {}, {}),
        primary_entries=[([1.5, -2.5, 0.0], [0, 0, 0], 1.0), ([9.0, 9.0, 0.0], [0, 0, 0], 2.0)],
    )
    rec = ctl.process_event(ev)
    ctl.end_run()
    assert rec.event_id == 3
    assert (rec.muon_hit_x, rec.muon_hit_y) == (1.5, -2.5)
