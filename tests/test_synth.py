import numpy as np

from sipmrecon.config.schemas import Config, SynthCfg
from sipmrecon.io.store import HDF5TableReader
from sipmrecon.pipelines.aggregate import aggregate_events
from sipmrecon.sim.synth import SyntheticHitSource, sipm_grid


def test_sipm_grid_layout():
    g = sipm_grid(4, 40.0)
    np.testing.assert_allclose(g, [[-40, -40], [40, -40], [-40, 40], [40, 40]])
    assert sipm_grid(64, 40.0).shape == (64, 2)
    assert sipm_grid(5, 40.0).shape == (5, 2)


def test_synthetic_events_are_reproducible():
    cfg = SynthCfg(n_events=3, seed=11, mean_scint_photons=20.0)
    a = [len(e.get_hits(0)) for e in SyntheticHitSource(cfg, 4).events()]
    b = [len(e.get_hits(0)) for e in SyntheticHitSource(cfg, 4).events()]
    assert a == b


def test_store_from_synthetic_source_tracks_skips_and_drops(tmp_path):
    cfg = Config(
        run={"n_channels": 4, "diagnostics_level": 0},
        aggregate={"synth": {"n_events": 40, "seed": 5, "mean_scint_photons": 30.0,
                             "p_missing_map": 0.25, "p_bad_channel": 0.1}},
    )
    src = SyntheticHitSource(cfg.aggregate.synth, 4, cfg.collections)
    out = tmp_path / "synth.h5"
    diag = aggregate_events(cfg, src.events(), src.registry, out)

    assert diag.events_seen == 40
    assert diag.events_written + diag.events_skipped == 40
    assert diag.events_skipped > 0
    assert diag.hits_dropped > 0

    with HDF5TableReader(out, "PerEventCollectedData") as r:
        assert r.n_rows == diag.events_written
        x = r.read_column("MuonHitX")
        y = r.read_column("MuonHitY")
        eid = r.read_column("EventID", dtype=np.int64)
    assert np.all(np.abs(x) <= 25.0) and np.all(np.abs(y) <= 25.0)
    assert np.all(np.diff(eid) > 0)
