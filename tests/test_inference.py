import numpy as np
import pytest

from sipmrecon.errors import ModelInvocationError
from sipmrecon.inference.runner import (
    PREDICTION_COLUMNS,
    PREDICTION_TABLE,
    BatchedInferenceRunner,
    batch_bounds,
)
from sipmrecon.io.store import HDF5TableReader, TableWriter, write_init


class LinearModel:
    """Deterministic fake: x = sum(row), y = first feature. Records every batch it sees."""

    def __init__(self):
        self.seen = []

    def invoke(self, batch):
        self.seen.append(np.array(batch, copy=True))
        return np.stack([batch.sum(axis=1), batch[:, 0]], axis=1)


class FailingModel:
    def __init__(self, fail_on_call):
        self.calls = 0
        self.fail_on_call = fail_on_call

    def invoke(self, batch):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise RuntimeError("session lost")
        return np.zeros((batch.shape[0], 2), dtype=np.float32)


def _features(F=4, N=10):
    return np.arange(F * N, dtype=np.float64).reshape(F, N)


def test_batch_bounds():
    assert list(batch_bounds(10, 3)) == [(0, 3), (3, 6), (6, 9), (9, 10)]
    assert list(batch_bounds(6, 3)) == [(0, 3), (3, 6)]
    assert list(batch_bounds(0, 3)) == []


def test_batches_of_three_over_ten_rows_match_single_batch():
    X = _features()
    batched_model = LinearModel()
    batched = BatchedInferenceRunner(batched_model, 3).run(X)

    single_model = LinearModel()
    single = BatchedInferenceRunner(single_model, 10).run(X)

    assert [b.shape[0] for b in batched_model.seen] == [3, 3, 3, 1]
    assert len(single_model.seen) == 1
    np.testing.assert_array_equal(batched, single)
    # row j of the output is event j
    np.testing.assert_allclose(batched[:, 1], X[0])
    np.testing.assert_allclose(batched[:, 0], X.sum(axis=0))


def test_partial_final_batch_sees_no_stale_rows():
    X = _features(F=2, N=5)
    model = LinearModel()
    BatchedInferenceRunner(model, 4).run(X)
    last = model.seen[-1]
    assert last.shape == (1, 2)
    np.testing.assert_array_equal(last, X[:, 4:5].T)


def test_default_batch_is_whole_run_and_oversized_batch_is_clamped():
    X = _features(N=7)
    for bs in (None, 100):
        model = LinearModel()
        runner = BatchedInferenceRunner(model, bs)
        runner.run(X)
        assert runner.n_invocations == 1
        assert model.seen[0].shape == (7, 4)


def test_model_input_is_float32_rows_by_features():
    model = LinearModel()
    BatchedInferenceRunner(model, 2).run(_features(F=3, N=4))
    assert all(b.dtype == np.float32 and b.shape[1] == 3 for b in model.seen)


def test_model_failure_is_wrapped_and_not_retried():
    model = FailingModel(fail_on_call=2)
    with pytest.raises(ModelInvocationError) as ei:
        BatchedInferenceRunner(model, 3).run(_features())
    assert model.calls == 2
    assert "[3, 6)" in str(ei.value)
    assert isinstance(ei.value.__cause__, RuntimeError)


def test_wrong_output_shape_is_model_invocation_error():
    class BadModel:
        def invoke(self, batch):
            return np.zeros((batch.shape[0], 3))

    with pytest.raises(ModelInvocationError):
        BatchedInferenceRunner(BadModel(), 5).run(_features())


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        BatchedInferenceRunner(LinearModel(), 0)


def test_empty_feature_matrix_makes_no_calls():
    model = LinearModel()
    out = BatchedInferenceRunner(model, 3).run(np.zeros((4, 0)))
    assert out.shape == (0, 2) and model.seen == []


def test_predictions_appended_to_store_in_row_order(tmp_path):
    path = tmp_path / "pred.h5"
    X = _features()
    f = write_init(path)
    table = TableWriter(f, PREDICTION_TABLE, PREDICTION_COLUMNS)
    out = BatchedInferenceRunner(LinearModel(), 3).run(X, sink=table)
    f.close()

    with HDF5TableReader(path, PREDICTION_TABLE) as r:
        assert r.columns == ["x_pred", "y_pred"]
        assert r.n_rows == 10
        np.testing.assert_array_equal(r.read_column("x_pred", dtype=np.float32), out[:, 0])
        np.testing.assert_array_equal(r.read_column("y_pred", dtype=np.float32), out[:, 1])


def test_missing_onnxruntime_chains_import_error(tmp_path, monkeypatch):
    import sys
    from sipmrecon.inference.models import OnnxRegressionModel

    model_path = tmp_path / "model.onnx"
    model_path.write_bytes(b"\x00")
    monkeypatch.setitem(sys.modules, "onnxruntime", None)
    with pytest.raises(RuntimeError, match="onnxruntime not installed") as excinfo:
        OnnxRegressionModel(model_path).open()
    assert isinstance(excinfo.value.__cause__, ImportError)
