from __future__ import annotations
from pathlib import Path
from typing import Protocol

import numpy as np

from ..errors import ResourceUnavailable


class RegressionModel(Protocol):
    """
    Opaque position regressor.

    invoke() takes a (rows, F) float32 batch and returns (rows, 2) = (x, y).
    Any exception raised by invoke() aborts the inference run.
    """

    def invoke(self, batch: np.ndarray) -> np.ndarray: ...


class OnnxRegressionModel:
    """
    ONNX Runtime session wrapper.

    The session is created once on open() (or __enter__) and dropped on
    close(); the first graph input/output are used.
    """

    def __init__(self, model_path: str | Path, *, intra_op_threads: int = 4, device: str = "cpu"):
        self.model_path = Path(model_path)
        self.intra_op_threads = int(intra_op_threads)
        self.device = device
        self.session = None
        self.input_name: str | None = None
        self.output_name: str | None = None

    def open(self) -> "OnnxRegressionModel":
        if self.session is not None:
            return self
        if not self.model_path.exists():
            raise ResourceUnavailable(f"model file '{self.model_path}' does not exist")
        try:
            import onnxruntime as ort
        except ImportError as exc:
            raise RuntimeError("onnxruntime not installed. Install with: pip install onnxruntime") from exc

        opt = ort.SessionOptions()
        opt.intra_op_num_threads = self.intra_op_threads
        providers = ["CPUExecutionProvider"]
        if self.device == "cuda":
            providers = ["CUDAExecutionProvider", "CPUExecutionProvider"]

        self.session = ort.InferenceSession(str(self.model_path), sess_options=opt, providers=providers)
        self.input_name = self.session.get_inputs()[0].name
        self.output_name = self.session.get_outputs()[0].name
        return self

    def invoke(self, batch: np.ndarray) -> np.ndarray:
        if self.session is None:
            raise RuntimeError("OnnxRegressionModel.invoke() called before open()")
        x = np.ascontiguousarray(batch, dtype=np.float32)
        return self.session.run([self.output_name], {self.input_name: x})[0]

    def close(self) -> None:
        self.session = None

    def __enter__(self) -> "OnnxRegressionModel":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()
