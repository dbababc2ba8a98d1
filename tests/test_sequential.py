import numpy as np
import pytest

from kernparity import api
from kernparity.backends.sequential import SequentialKernel, accumulate_product
from kernparity.errors import DimensionMismatch, LayoutIncompatible, LengthMismatch, ShapeMismatch
from kernparity.matrix import DenseMatrix


def _triple_loop(a, b):
    m, k = a.shape
    n = b.shape[1]
    out = np.zeros((m, n), dtype=a.dtype)
    for i in range(m):
        for j in range(n):
            acc = a.dtype.type(0)
            for t in range(k):
                acc = a.dtype.type(acc + a[i, t] * b[t, j])
            out[i, j] = acc
    return out


def test_dot_is_elementwise_product():
    out = api.sequential_dot([1, 2, 3, 4], [5, 6, 7, 8])
    assert out.tolist() == [[5, 12, 21, 32]]


def test_dot_length_mismatch():
    with pytest.raises(LengthMismatch):
        api.sequential_dot([1, 2, 3], [1, 2])


def test_dot_rejects_matrices():
    a = DenseMatrix(2, 2, [1, 2, 3, 4])
    with pytest.raises(ShapeMismatch):
        SequentialKernel().dot(a, a)


def test_dot_rejects_mixed_types():
    a = DenseMatrix.vector([1, 2], dtype=np.uint16)
    b = DenseMatrix.vector([1, 2], dtype=np.float32)
    with pytest.raises(LayoutIncompatible):
        api.sequential_dot(a, b)


def test_uint16_dot_wraps():
    a = DenseMatrix.vector([300, 2], dtype=np.uint16)
    b = DenseMatrix.vector([300, 3], dtype=np.uint16)
    out = api.sequential_dot(a, b)
    assert out.dtype == np.uint16
    assert out.elements.tolist() == [(300 * 300) % 65536, 6]


def test_matmul_2x2():
    a = DenseMatrix(2, 2, [1, 2, 3, 4])
    b = DenseMatrix(2, 2, [5, 6, 7, 8])
    assert api.sequential_matmul(a, b).tolist() == [[19, 22], [43, 50]]


def test_matmul_rectangular_matches_triple_loop():
    rng = np.random.default_rng(0)
    a = rng.random((4, 4)).astype(np.float32)
    b = rng.random((4, 3)).astype(np.float32)
    out = api.sequential_matmul(a, b)
    assert out.shape == (4, 3)
    assert np.array_equal(out.to_numpy(), _triple_loop(a, b))


def test_half_precision_accumulation_matches_triple_loop():
    rng = np.random.default_rng(1)
    a = rng.random((5, 17)).astype(np.float16)
    b = rng.random((17, 6)).astype(np.float16)
    assert np.array_equal(accumulate_product(a, b), _triple_loop(a, b))


def test_matmul_dimension_mismatch():
    a = DenseMatrix(2, 3, [1, 2, 3, 4, 5, 6])
    b = DenseMatrix(2, 2, [1, 2, 3, 4])
    with pytest.raises(DimensionMismatch):
        api.sequential_matmul(a, b)


def test_execute_dispatches_by_name():
    k = SequentialKernel()
    assert k.execute("dotprod", [1, 2], [3, 4]).tolist() == [[3, 8]]
    with pytest.raises(ValueError):
        k.execute("conv2d", [1], [1])
