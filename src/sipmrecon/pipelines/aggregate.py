from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Tuple

from ..config.load import load_config, snapshot_config_toml
from ..config.schemas import Config
from ..physics.binning import AggregationDiagnostics
from ..physics.events import CollectionRegistry, EventHits
from ..sim.synth import SyntheticHitSource
from .run import RunController


def aggregate_events(
    cfg: Config,
    events: Iterable[EventHits],
    registry: CollectionRegistry,
    output_path: str | Path,
    *,
    config_text: str = "",
) -> AggregationDiagnostics:
    """Run one controller over an event stream and close the store."""
    ctl = RunController(cfg, output_path, config_text=config_text)
    ctl.begin_run(registry)
    try:
        for ev in events:
            ctl.process_event(ev)
    finally:
        diag = ctl.end_run()
    return diag


def run_aggregation(
    cfg_path: Optional[str] = None,
    *,
    output_path: Optional[str] = None,
    n_events: Optional[int] = None,
    seed: Optional[int] = None,
    n_channels: Optional[int] = None,
) -> Tuple[Path, AggregationDiagnostics]:
    """
    Build a per-event store from the synthetic hit source.

    Arguments override the corresponding config fields when not None.
    """
    cfg = load_config(cfg_path)
    if output_path is not None:
        cfg.aggregate.output_path = output_path
    if n_events is not None:
        cfg.aggregate.synth.n_events = n_events
    if seed is not None:
        cfg.aggregate.synth.seed = seed
    if n_channels is not None:
        cfg.run.n_channels = n_channels

    if cfg.run.diagnostics_level >= 1:
        print(f"[aggregate] config = {cfg_path or '<defaults>'}")
        print(f"[aggregate] events={cfg.aggregate.synth.n_events} seed={cfg.aggregate.synth.seed}")

    source = SyntheticHitSource(cfg.aggregate.synth, cfg.run.n_channels, cfg.collections)
    out = Path(cfg.aggregate.output_path)
    diag = aggregate_events(
        cfg, source.events(), source.registry, out,
        config_text=snapshot_config_toml(cfg_path),
    )
    return out, diag
