import numpy as np
import pytest

from sipmrecon.errors import SchemaMismatch
from sipmrecon.io.features import load_features
from sipmrecon.io.store import TableWriter, write_init
from sipmrecon.physics.events import EVENT_TABLE, event_columns, scint_columns


def _write_store(path, n_channels, rows):
    f = write_init(path)
    t = TableWriter(f, EVENT_TABLE, event_columns(n_channels))
    for r in rows:
        t.append_row(r)
    t.flush()
    f.close()


def test_feature_matrix_shape_and_row_order(tmp_path):
    path = tmp_path / "run.h5"
    rows = []
    for eid in range(5):
        scint = [eid * 10 + k for k in range(3)]
        rows.append([eid, *scint, 0, 0, 0, 1.0, 0.0, 1.0, eid, -eid])
    _write_store(path, 3, rows)

    X = load_features(path, scint_columns(3))
    assert X.shape == (3, 5)
    assert X.dtype == np.float64
    np.testing.assert_array_equal(X[:, 2], [20, 21, 22])
    np.testing.assert_array_equal(X[1], [1, 11, 21, 31, 41])
    assert not X.flags.writeable


def test_absent_feature_column_is_schema_mismatch(tmp_path):
    path = tmp_path / "run.h5"
    _write_store(path, 2, [[0, 1, 2, 0, 0, 0.0, 0.0, 0.0, 0.0, 0.0]])
    with pytest.raises(SchemaMismatch):
        load_features(path, scint_columns(4))


def test_empty_run_gives_zero_width_matrix(tmp_path):
    path = tmp_path / "run.h5"
    _write_store(path, 2, [])
    assert load_features(path, scint_columns(2)).shape == (2, 0)
