from __future__ import annotations
from typing import Callable, Iterator, Optional, Tuple

import numpy as np
from tqdm import tqdm

from ..errors import ModelInvocationError
from ..io.store import TableWriter
from .models import RegressionModel

PREDICTION_TABLE = "Prediction"
PREDICTION_COLUMNS = [("x_pred", "f4"), ("y_pred", "f4")]


def batch_bounds(n: int, batch_size: int) -> Iterator[Tuple[int, int]]:
    """Contiguous [start, stop) row ranges of size min(batch_size, remaining)."""
    for start in range(0, n, batch_size):
        yield start, min(start + batch_size, n)


class BatchedInferenceRunner:
    """
    Feed an (F, N) feature matrix through a regression model in row batches.

    - batches are contiguous and sequential, the last one may be partial
    - one input buffer of shape (B, F) is reused; a partial batch is passed
      as the leading slice only, so no stale rows reach the model
    - predictions are appended in row order, to the returned (N, 2) array
      and to an optional prediction table
    - any model failure is raised as ModelInvocationError, no retry

    The model must already be opened; its lifetime is owned by the caller.
    """

    def __init__(
        self,
        model: RegressionModel,
        batch_size: Optional[int] = None,
        *,
        progress: bool = False,
        on_batch: Optional[Callable[[int, int], None]] = None,
    ):
        if batch_size is not None and batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.model = model
        self.batch_size = batch_size
        self.progress = progress
        self.on_batch = on_batch
        self.n_invocations = 0

    def run(self, features: np.ndarray, sink: Optional[TableWriter] = None) -> np.ndarray:
        X = np.asarray(features)
        if X.ndim != 2:
            raise ValueError(f"features must be 2D (F, N), got shape {X.shape}")
        F, N = X.shape
        out = np.empty((N, 2), dtype=np.float32)
        if N == 0:
            return out

        # batch_size above N means one batch
        B = N if self.batch_size is None else min(self.batch_size, N)
        buf = np.empty((B, F), dtype=np.float32)

        bounds = batch_bounds(N, B)
        if self.progress:
            bounds = tqdm(list(bounds), desc="Inference")

        for start, stop in bounds:
            bsize = stop - start
            view = buf[:bsize]
            view[...] = X[:, start:stop].T
            if self.on_batch is not None:
                self.on_batch(start, stop)
            try:
                pred = self.model.invoke(view)
            except Exception as exc:
                raise ModelInvocationError(
                    f"model failed on rows [{start}, {stop}): {exc}"
                ) from exc
            self.n_invocations += 1

            pred = np.asarray(pred, dtype=np.float32)
            if pred.shape != (bsize, 2):
                raise ModelInvocationError(
                    f"model returned shape {pred.shape} for rows [{start}, {stop}), "
                    f"expected {(bsize, 2)}"
                )
            out[start:stop] = pred
            if sink is not None:
                for x_pred, y_pred in pred:
                    sink.append_row((x_pred, y_pred))

        if sink is not None:
            sink.flush()
        return out
