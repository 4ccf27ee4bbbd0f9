import numpy as np
import pytest

from lossless.core.layers import LAYERS, Linear, ReLU, Sigmoid, Softmax, Tanh
from lossless.errors import ConfigurationError, DimensionError

EPS = 1e-6
TOL = 1e-4


def _numeric_input_grad(layer, x, g):
    grad = np.zeros_like(x)
    for i in range(x.size):
        bumped = x.copy()
        bumped[i] += EPS
        up = float(np.sum(g * layer.forward(bumped)))
        bumped[i] -= 2 * EPS
        down = float(np.sum(g * layer.forward(bumped)))
        grad[i] = (up - down) / (2 * EPS)
    return grad


def _numeric_param_grad(layer, param, x, g):
    grad = np.zeros_like(param)
    for idx in np.ndindex(param.shape):
        original = param[idx]
        param[idx] = original + EPS
        up = float(np.sum(g * layer.forward(x)))
        param[idx] = original - EPS
        down = float(np.sum(g * layer.forward(x)))
        param[idx] = original
        grad[idx] = (up - down) / (2 * EPS)
    return grad


def _analytic(layer, x, g):
    layer.zero_grad()
    layer.forward(x)
    return layer.backward(g)


@pytest.mark.parametrize("factory", [Tanh, ReLU, Sigmoid, Softmax, lambda: Linear(outputs=4)])
@pytest.mark.parametrize("size", [1, 3, 6])
def test_input_gradients_match_finite_differences(factory, size):
    rng = np.random.default_rng(size)
    layer = factory()
    out_size = layer.initialize(size, rng)
    x = rng.standard_normal(size)
    g = rng.standard_normal(out_size)

    analytic = _analytic(layer, x, g)
    numeric = _numeric_input_grad(layer, x, g)
    assert analytic.shape == (size,)
    assert np.allclose(analytic, numeric, atol=TOL)


@pytest.mark.parametrize("size", [1, 2, 5])
def test_linear_parameter_gradients_match_finite_differences(size):
    rng = np.random.default_rng(10 + size)
    layer = Linear(outputs=3)
    layer.initialize(size, rng)
    layer.bias[...] = rng.standard_normal(3)
    x = rng.standard_normal(size)
    g = rng.standard_normal(3)

    _analytic(layer, x, g)
    grads = layer.gradients()
    assert np.allclose(grads["weights"], _numeric_param_grad(layer, layer.weights, x, g), atol=TOL)
    assert np.allclose(grads["bias"], _numeric_param_grad(layer, layer.bias, x, g), atol=TOL)
    assert np.allclose(grads["weights"], np.outer(g, x))
    assert np.allclose(grads["bias"], g)


def test_softmax_is_stable_and_normalised():
    layer = Softmax()
    layer.initialize(3)
    out = layer.forward(np.array([1000.0, 1001.0, 1002.0]))
    assert np.all(np.isfinite(out))
    assert np.isclose(out.sum(), 1.0)
    assert np.allclose(out, layer.forward(np.array([0.0, 1.0, 2.0])))


def test_softmax_cross_entropy_gradient_is_prediction_minus_target():
    rng = np.random.default_rng(3)
    layer = Softmax()
    layer.initialize(4)
    logits = rng.standard_normal(4)
    target = np.array([0.0, 0.0, 1.0, 0.0])
    probs = layer.forward(logits)

    fused = layer.cross_entropy_gradient(target)
    assert np.array_equal(fused, probs - target)

    def ce(z):
        shifted = z - z.max()
        log_probs = shifted - np.log(np.exp(shifted).sum())
        return -float(np.sum(target * log_probs))

    numeric = np.zeros(4)
    for i in range(4):
        bumped = logits.copy()
        bumped[i] += EPS
        up = ce(bumped)
        bumped[i] -= 2 * EPS
        numeric[i] = (up - ce(bumped)) / (2 * EPS)
    assert np.allclose(fused, numeric, atol=TOL)


def test_softmax_fused_gradient_for_batches():
    rng = np.random.default_rng(4)
    layer = Softmax()
    layer.initialize(3)
    probs = layer.forward(rng.standard_normal((5, 3)))
    targets = np.eye(3)[[0, 1, 2, 1, 0]]
    assert np.array_equal(layer.cross_entropy_gradient(targets), probs - targets)


def test_batch_backward_accumulates_sum_of_examples():
    rng = np.random.default_rng(5)
    batch = rng.standard_normal((4, 3))
    grads = rng.standard_normal((4, 2))

    batched = Linear(outputs=2)
    batched.initialize(3, np.random.default_rng(0))
    batched.forward(batch)
    batched.backward(grads)

    single = Linear(outputs=2)
    single.initialize(3, np.random.default_rng(0))
    for x, g in zip(batch, grads):
        single.forward(x)
        single.backward(g)

    for name in ("weights", "bias"):
        assert np.allclose(batched.gradients()[name], single.gradients()[name])


def test_apply_gradients_uses_mean_and_clears_accumulator():
    layer = Linear(outputs=1)
    layer.initialize(2, np.random.default_rng(0))
    before = layer.weights.copy()
    x = np.array([1.0, 2.0])
    for _ in range(3):
        layer.forward(x)
        layer.backward(np.array([1.0]))

    layer.apply_gradients(learning_rate=0.5, batch_size=3)
    assert np.allclose(layer.weights, before - 0.5 * np.outer([1.0], x))
    assert np.allclose(layer.bias, [-0.5])
    assert not np.any(layer.gradients()["weights"])


def test_stateless_layers_have_no_parameters():
    for layer in (Tanh(), ReLU(), Sigmoid(), Softmax()):
        assert layer.initialize(5) == 5
        assert layer.parameters() == {}
        layer.apply_gradients(1.0, 1)


def test_linear_initialization_is_small_and_seeded():
    a = Linear(outputs=50)
    b = Linear(outputs=50)
    a.initialize(40, np.random.default_rng(9))
    b.initialize(40, np.random.default_rng(9))
    assert np.array_equal(a.weights, b.weights)
    assert a.weights.shape == (50, 40)
    assert not np.any(a.bias)
    assert 0.05 < a.weights.std() < 0.15


@pytest.mark.parametrize(
    "layer, size",
    [(Tanh(), 0), (Tanh(), -3), (Linear(outputs=0), 3), (Linear(outputs=2), 2.5)],
)
def test_initialize_rejects_bad_sizes(layer, size):
    with pytest.raises(DimensionError):
        layer.initialize(size)


def test_forward_and_backward_validate_widths():
    layer = Linear(outputs=2)
    with pytest.raises(ConfigurationError):
        layer.forward(np.ones(3))
    layer.initialize(3)
    with pytest.raises(DimensionError):
        layer.forward(np.ones(4))
    layer.forward(np.ones((2, 3)))
    with pytest.raises(DimensionError):
        layer.backward(np.ones((3, 2)))
    with pytest.raises(DimensionError):
        layer.backward(np.ones((2, 3)))


def test_registry_builds_layers_from_specs():
    assert isinstance(LAYERS.create("tanh"), Tanh)
    linear = LAYERS.create({"type": "linear", "outputs": 7})
    assert isinstance(linear, Linear) and linear.outputs == 7
    existing = Softmax()
    assert LAYERS.create(existing) is existing
    assert set(LAYERS.names()) >= {"linear", "tanh", "softmax", "relu", "sigmoid"}

    with pytest.raises(ConfigurationError):
        LAYERS.create("convolution")
    with pytest.raises(ConfigurationError):
        LAYERS.create({"type": "linear", "width": 3})
    with pytest.raises(ConfigurationError):
        LAYERS.create({"outputs": 3})


@pytest.mark.parametrize("scale", [-1.0, float("nan"), float("inf"), "wide"])
def test_linear_rejects_invalid_init_scale(scale):
    layer = Linear(outputs=3, init_scale=scale)
    with pytest.raises(ConfigurationError):
        layer.initialize(2, np.random.default_rng(0))
    assert not layer.initialized
