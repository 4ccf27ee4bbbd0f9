import numpy as np
import pytest

from lossless.core import tensor
from lossless.errors import DimensionError


def test_dot_and_outer():
    assert tensor.dot([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == 32.0
    out = tensor.outer([1.0, 2.0], [3.0, 4.0, 5.0])
    assert out.shape == (2, 3)
    assert np.array_equal(out, np.array([[3.0, 4.0, 5.0], [6.0, 8.0, 10.0]]))


def test_matvec_accepts_vectors_and_batches():
    m = np.arange(6, dtype=np.float64).reshape(2, 3)
    v = np.array([1.0, 0.0, -1.0])
    assert np.allclose(tensor.matvec(m, v), m @ v)

    batch = np.stack([v, 2 * v])
    out = tensor.matvec(m, batch)
    assert out.shape == (2, 2)
    assert np.allclose(out[1], 2 * (m @ v))

    g = np.array([1.0, -2.0])
    assert np.allclose(tensor.transpose_matvec(m, g), m.T @ g)


@pytest.mark.parametrize(
    "call",
    [
        lambda: tensor.dot([1.0, 2.0], [1.0, 2.0, 3.0]),
        lambda: tensor.matvec(np.ones((2, 3)), np.ones(2)),
        lambda: tensor.transpose_matvec(np.ones((2, 3)), np.ones(3)),
        lambda: tensor.as_vector(np.ones((2, 2))),
        lambda: tensor.as_matrix(np.ones((2, 2, 2))),
    ],
)
def test_mismatched_widths_raise_dimension_error(call):
    with pytest.raises(DimensionError):
        call()


def test_elementwise_and_argmax():
    v = np.array([-1.0, 0.5, 2.0])
    assert np.allclose(tensor.elementwise(np.abs, v), [1.0, 0.5, 2.0])
    assert tensor.argmax(v) == 2
    assert list(tensor.argmax(np.array([[0.1, 0.9], [0.8, 0.2]]))) == [1, 0]
