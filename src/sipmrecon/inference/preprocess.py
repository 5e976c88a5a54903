from __future__ import annotations
import numpy as np


def log1p_transform(X: np.ndarray, dtype=np.float32) -> np.ndarray:
    """
    Elementwise y = ln(1 + x) applied to the (F, N) feature matrix.

    The model was trained on np.log1p of the photon counts, so this must
    match the training-time transform exactly. Inputs are counts (x >= 0)
    and are not range-checked.
    """
    return np.log1p(np.asarray(X, dtype=np.float64)).astype(dtype)


def inverse_log1p(Y: np.ndarray) -> np.ndarray:
    return np.expm1(np.asarray(Y, dtype=np.float64))
