import numpy as np

from kernparity.data import INT_HIGH, random_matrix, random_vector


def test_integer_vectors_are_seeded_and_bounded():
    a = random_vector(1000, np.uint16, seed=5)
    b = random_vector(1000, np.uint16, seed=5)
    assert a == b
    assert a.shape == (1, 1000)
    assert int(a.elements.max()) < INT_HIGH


def test_float_matrices_in_unit_interval():
    m = random_matrix(16, 8, np.float16, seed=2)
    assert m.shape == (16, 8)
    assert m.dtype == np.float16
    assert float(m.elements.min()) >= 0.0
    assert float(m.elements.max()) <= 1.0
    assert m != random_matrix(16, 8, np.float16, seed=3)
