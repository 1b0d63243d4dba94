import io
import struct

import numpy as np
import pytest

from linseq.errors import FeatureIndexError, ModelFormatError
from linseq.model import LinearModel
from linseq.types import FeatureVector, Offset


def _model(weights, wdiv=1.0, wbias=0.0) -> LinearModel:
    return LinearModel.from_weights(weights, wdiv, wbias)


def test_predict_scales_dot_product_and_adds_bias():
    model = _model([0.5, -1.0, 2.0, 4.0], wdiv=2.0, wbias=0.25)
    fv = FeatureVector(1, [Offset(0, 2.0), Offset(2, 1.5)])

    # (0.5*2 + 2*1.5) / 2 + 0.25
    assert model.predict(fv) == pytest.approx(2.25)
    assert model.score(fv) == [pytest.approx(2.25)]


def test_predict_is_additive_over_disjoint_vectors():
    model = _model([0.3, -0.7, 1.1, 2.9, -4.0], wdiv=1.5, wbias=-0.5)
    fv1 = FeatureVector(0, [Offset(0, 1.0), Offset(3, 2.0)])
    fv2 = FeatureVector(0, [Offset(1, -1.0), Offset(4, 0.5)])
    merged = FeatureVector(0, fv1.offsets + fv2.offsets)

    expected = model.dot(fv1) / 1.5 + model.dot(fv2) / 1.5 - 0.5
    assert model.predict(merged) == pytest.approx(expected)


def test_add_moves_prediction_by_disp_times_self_dot():
    model = _model([0.1, 0.2, 0.3, 0.4], wdiv=2.0, wbias=1.0)
    fv = FeatureVector(1, [Offset(1, 2.0), Offset(3, -1.0)])
    before = model.predict(fv)

    model.add(fv, 0.5)

    assert model.predict(fv) - before == pytest.approx(0.5 * fv.dot(fv) / 2.0)
    assert model.weights.tolist() == pytest.approx([0.1, 1.2, 0.3, -0.1])


def test_add_accumulates_repeated_indices():
    model = LinearModel(2)
    model.add(FeatureVector(0, [Offset(1, 1.0), Offset(1, 1.0)]), 3.0)

    assert model.weights.tolist() == [0.0, 6.0]


def test_out_of_range_index_is_fatal():
    model = LinearModel(3)
    fv = FeatureVector(0, [Offset(3, 1.0)])

    with pytest.raises(FeatureIndexError):
        model.predict(fv)
    with pytest.raises(IndexError):
        model.add(fv, 1.0)
    assert model.weights.tolist() == [0.0, 0.0, 0.0]


def test_zero_length_model_predicts_bias_for_empty_vector():
    model = LinearModel(0, wdiv=3.0, wbias=0.75)

    assert model.predict(FeatureVector(0)) == 0.75


def test_scale_and_magnitude():
    model = _model([3.0, 4.0], wdiv=2.0)
    assert model.magnitude_squared_scaled() == pytest.approx(25.0 / 4.0)

    model.scale_inplace(0.5)

    assert model.weights.tolist() == [1.5, 2.0]
    assert model.mag() == pytest.approx(6.25 / 4.0)


def test_prototype_does_not_alias_weights():
    model = _model([1.0, 2.0], wdiv=4.0, wbias=-1.0)
    copy = model.prototype()
    copy.add(FeatureVector(0, [Offset(0, 1.0)]), 10.0)

    assert model.weights.tolist() == [1.0, 2.0]
    assert copy.weights.tolist() == [11.0, 2.0]
    assert (copy.wdiv, copy.wbias) == (4.0, -1.0)


def test_weights_view_is_read_only():
    model = LinearModel(2)
    with pytest.raises(ValueError):
        model.weights[0] = 1.0


def test_save_load_round_trip(tmp_path):
    model = _model([0.1, -2.5, 1e-300, 7.0], wdiv=0.9, wbias=-3.25)
    path = tmp_path / "model.bin"

    model.save(path)
    loaded = LinearModel.from_file(path)

    assert loaded.wdiv == model.wdiv
    assert loaded.wbias == model.wbias
    assert np.array_equal(loaded.weights, model.weights)


def test_save_writes_header_then_weights():
    sink = io.BytesIO()
    _model([1.0, 2.0], wdiv=2.0, wbias=0.5).save(sink)

    assert sink.getvalue() == struct.pack("<ddq", 2.0, 0.5, 2) + struct.pack("<dd", 1.0, 2.0)


def test_load_empty_weight_array():
    model = LinearModel(5)
    model.load(io.BytesIO(struct.pack("<ddq", 1.0, 0.0, 0)))

    assert len(model) == 0
    assert model.predict(FeatureVector(0)) == 0.0


def test_load_truncated_stream_fails():
    data = struct.pack("<ddq", 1.0, 0.0, 3) + struct.pack("<dd", 1.0, 2.0)

    with pytest.raises(ModelFormatError):
        LinearModel().load(io.BytesIO(data))


def test_load_truncated_header_fails():
    with pytest.raises(ModelFormatError):
        LinearModel().load(io.BytesIO(b"\x00" * 10))


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        LinearModel.from_file(tmp_path / "missing.bin")


class _ReadOnlyStream:
    """A stream exposing only `read`, like a pipe or socket wrapper."""

    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)

    def read(self, n: int = -1) -> bytes:
        return self._buf.read(n)


@pytest.mark.parametrize("declared", [2 ** 40, 2 ** 61])
def test_load_rejects_huge_declared_length_from_file(tmp_path, declared):
    path = tmp_path / "corrupt.bin"
    path.write_bytes(struct.pack("<ddq", 1.0, 0.0, declared) + struct.pack("<dd", 1.0, 2.0))

    with pytest.raises(ModelFormatError):
        LinearModel.from_file(path)


def test_load_rejects_huge_declared_length_from_unseekable_stream():
    data = struct.pack("<ddq", 1.0, 0.0, 2 ** 40) + struct.pack("<dd", 1.0, 2.0)

    with pytest.raises(ModelFormatError):
        LinearModel().load(_ReadOnlyStream(data))


def test_load_from_unseekable_stream():
    data = struct.pack("<ddq", 2.0, 0.5, 2) + struct.pack("<dd", 1.0, 2.0)

    model = LinearModel.from_file(_ReadOnlyStream(data))

    assert model.weights.tolist() == [1.0, 2.0]
    assert (model.wdiv, model.wbias) == (2.0, 0.5)


def test_negative_index_is_fatal():
    model = LinearModel(3)
    offset = Offset(0, 1.0)
    object.__setattr__(offset, "index", -1)

    with pytest.raises(FeatureIndexError):
        model.predict(FeatureVector(0, [offset]))
