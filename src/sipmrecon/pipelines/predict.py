from __future__ import annotations

import contextlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from ..config.load import load_config
from ..config.schemas import Config, PredictCfg
from ..errors import ResourceUnavailable
from ..inference.models import OnnxRegressionModel, RegressionModel
from ..inference.preprocess import log1p_transform
from ..inference.runner import PREDICTION_COLUMNS, PREDICTION_TABLE, BatchedInferenceRunner
from ..io.features import load_features
from ..io.report import comparison_frame, summarize, write_report
from ..io.store import TableWriter, write_init
from ..physics.events import scint_columns


@dataclass
class FileResult:
    input_path: Path
    prediction_path: Path
    report_path: Path
    n_events: int
    summary: Dict[str, float]


def check_resources(pc: PredictCfg, *, need_model: bool = True) -> None:
    """
    Startup checks: model file, input directory, creatable output directories.
    Raises ResourceUnavailable on the first failure.
    """
    if need_model and not Path(pc.model_path).exists():
        raise ResourceUnavailable(f"model file '{pc.model_path}' does not exist")
    if not Path(pc.input_dir).is_dir():
        raise ResourceUnavailable(f"input dir '{pc.input_dir}' does not exist")
    for d in (pc.predictions_dir, pc.reports_dir):
        try:
            Path(d).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResourceUnavailable(f"could not create output dir '{d}': {exc}") from exc


def find_input_files(input_dir: str | Path, suffixes: List[str]) -> List[Path]:
    wanted = {s.lower() for s in suffixes}
    return sorted(p for p in Path(input_dir).iterdir() if p.is_file() and p.suffix.lower() in wanted)


def predict_file(
    cfg: Config,
    input_path: Path,
    model: RegressionModel,
) -> FileResult:
    """Features -> log1p -> batched inference -> prediction store -> comparison report."""
    pc = cfg.predict
    diag_level = cfg.run.diagnostics_level

    n_features = pc.n_features if pc.n_features is not None else cfg.run.n_channels
    X = load_features(input_path, scint_columns(n_features, pc.feature_prefix))
    n_events = X.shape[1]
    Xt = log1p_transform(X)

    pred_path = Path(pc.predictions_dir) / f"pred_{input_path.stem}.h5"
    runner = BatchedInferenceRunner(model, pc.batch_size, progress=cfg.run.progress and diag_level >= 1)
    f = write_init(pred_path)
    try:
        f.attrs["source_file"] = str(input_path)
        table = TableWriter(f, PREDICTION_TABLE, PREDICTION_COLUMNS)
        runner.run(Xt, sink=table)
    finally:
        f.close()

    df = comparison_frame(input_path, pred_path)
    report_path = write_report(df, Path(pc.reports_dir) / f"report_{input_path.stem}.csv")
    summary = summarize(df)

    if diag_level >= 1:
        print(f"[predict] {input_path.name}: predicted {n_events} points "
              f"in {runner.n_invocations} batch(es)")
        print(f"[predict]   mean dr = {summary['mean_dr']:.3f} mm, "
              f"rms dx/dy = {summary['rms_dx']:.3f}/{summary['rms_dy']:.3f} mm")
    return FileResult(input_path, pred_path, report_path, n_events, summary)


def run_prediction(
    cfg_path: Optional[str] = None,
    *,
    cfg: Optional[Config] = None,
    model: Optional[RegressionModel] = None,
    batch_size: Optional[int] = None,
) -> List[FileResult]:
    """
    Predict positions for every run file of predict.input_dir.

    The ONNX session is opened once for all files. Passing `model` skips
    the model file check and uses the given (already usable) model.
    """
    if cfg is None:
        cfg = load_config(cfg_path)
    if batch_size is not None:
        cfg.predict.batch_size = batch_size
    pc = cfg.predict
    diag_level = cfg.run.diagnostics_level

    check_resources(pc, need_model=model is None)
    if diag_level >= 1 and model is None:
        print(f"[predict] Model file found at '{pc.model_path}'.")

    files = find_input_files(pc.input_dir, pc.input_suffixes)
    if diag_level >= 1:
        for p in files:
            print(f"[predict] Input file found at {p}")
        if not files:
            print(f"[predict] No input files in '{pc.input_dir}'.")

    if model is None:
        ctx = OnnxRegressionModel(pc.model_path, intra_op_threads=pc.intra_op_threads)
    else:
        ctx = contextlib.nullcontext(model)

    results: List[FileResult] = []
    with ctx as m:
        for p in files:
            if diag_level >= 1:
                print(f"[predict] Processing file: {p}")
            results.append(predict_file(cfg, p, m))

    if diag_level >= 1 and results:
        n_tot = int(np.sum([r.n_events for r in results]))
        print(f"[predict] Done: {len(results)} file(s), {n_tot} events")
    return results
