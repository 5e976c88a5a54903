from __future__ import annotations
from pathlib import Path
from typing import Dict

import numpy as np
import pandas as pd

from ..errors import SchemaMismatch
from ..inference.runner import PREDICTION_TABLE
from ..physics.events import EVENT_TABLE
from .adapters import open_table


def comparison_frame(run_path: str | Path, pred_path: str | Path) -> pd.DataFrame:
    """
    True (MuonHitX/Y) vs predicted (x_pred/y_pred) positions, one row per event.

    Rows are matched by position only: prediction row i belongs to event
    row i of the run file.
    """
    with open_table(run_path, EVENT_TABLE) as run:
        x_true = run.read_column("MuonHitX")
        y_true = run.read_column("MuonHitY")
        event_id = (run.read_column("EventID", dtype=np.int64)
                    if "EventID" in run.columns else np.arange(run.n_rows))
    with open_table(pred_path, PREDICTION_TABLE) as pred:
        x_pred = pred.read_column("x_pred", dtype=np.float32)
        y_pred = pred.read_column("y_pred", dtype=np.float32)

    if len(x_true) != len(x_pred):
        raise SchemaMismatch(
            f"{Path(run_path).name}: {len(x_true)} events but {len(x_pred)} predictions"
        )

    df = pd.DataFrame({
        "EventID": event_id,
        "x_true": x_true,
        "y_true": y_true,
        "x_pred": x_pred.astype(np.float64),
        "y_pred": y_pred.astype(np.float64),
    })
    df["dx"] = df["x_pred"] - df["x_true"]
    df["dy"] = df["y_pred"] - df["y_true"]
    df["dr"] = np.hypot(df["dx"], df["dy"])
    return df


def summarize(df: pd.DataFrame) -> Dict[str, float]:
    if df.empty:
        return {"n": 0, "mean_dx": float("nan"), "mean_dy": float("nan"),
                "rms_dx": float("nan"), "rms_dy": float("nan"), "mean_dr": float("nan")}
    return {
        "n": int(len(df)),
        "mean_dx": float(df["dx"].mean()),
        "mean_dy": float(df["dy"].mean()),
        "rms_dx": float(np.sqrt((df["dx"] ** 2).mean())),
        "rms_dy": float(np.sqrt((df["dy"] ** 2).mean())),
        "mean_dr": float(df["dr"].mean()),
    }


def write_report(df: pd.DataFrame, out_csv: str | Path) -> Path:
    p = Path(out_csv)
    p.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(p, index=False)
    return p
