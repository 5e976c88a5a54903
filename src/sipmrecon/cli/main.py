from __future__ import annotations

from typing import Optional
import typer

from sipmrecon.errors import ResourceUnavailable
from sipmrecon.pipelines.aggregate import run_aggregation
from sipmrecon.pipelines.predict import run_prediction

app = typer.Typer(help="SiPM muon position reconstruction: per-event aggregation and batched prediction")


@app.command()
def aggregate(
    cfg_path: Optional[str] = typer.Argument(None, help="Path to TOML config file (defaults if omitted)"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Override [aggregate].output_path"),
    n_events: Optional[int] = typer.Option(None, "--events", "-n", min=0,
                                          help="Override [aggregate.synth].n_events"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Override [aggregate.synth].seed"),
    n_channels: Optional[int] = typer.Option(None, "--channels", "-c", min=1,
                                            help="Override [run].n_channels"),
):
    """
    Aggregate synthetic hit events into a per-event HDF5 store.
    """
    out_path, diag = run_aggregation(cfg_path, output_path=out, n_events=n_events,
                                     seed=seed, n_channels=n_channels)
    typer.echo(f"Wrote {out_path} ({diag.events_written} events, {diag.events_skipped} skipped)")


@app.command()
def predict(
    cfg_path: Optional[str] = typer.Argument(None, help="Path to TOML config file (defaults if omitted)"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", min=1,
                                             help="Override [predict].batch_size"),
):
    """
    Predict muon positions for every run file in the input directory.
    """
    try:
        results = run_prediction(cfg_path, batch_size=batch_size)
    except ResourceUnavailable as exc:
        typer.echo(f"[predict] Error: {exc}", err=True)
        raise typer.Exit(code=1)
    for r in results:
        typer.echo(str(r.prediction_path))


if __name__ == "__main__":
    app()
