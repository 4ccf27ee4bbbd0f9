import numpy as np
import pytest

from lossless import Example, Linear, Network, Perceptron, Softmax, Tanh
from lossless.errors import ConfigurationError, DimensionError


def _spiral_net(seed=0):
    net = Network(batch_size=4, learning_rate=1.0)
    net.initialize(2, Linear(outputs=7), Tanh(), Linear(outputs=3), Softmax(), seed=seed)
    return net


def test_initialize_wires_output_sizes():
    net = _spiral_net()
    assert net.input_size == 2
    assert [layer.input_size for layer in net.layers] == [2, 7, 7, 3]
    assert [layer.output_size for layer in net.layers] == [7, 7, 3, 3]
    assert net.output_size == 3
    assert net.parameter_count() == 2 * 7 + 7 + 7 * 3 + 3


def test_initialize_accepts_specs_and_lists():
    net = Network().initialize(2, [{"type": "linear", "outputs": 4}, "relu", {"type": "linear", "outputs": 2}], seed=1)
    assert [layer.tag for layer in net.layers] == ["linear", "relu", "linear"]
    assert net.output_size == 2


def test_initialize_is_seeded():
    a = _spiral_net(seed=3).state_dict()
    b = _spiral_net(seed=3).state_dict()
    assert a.keys() == b.keys()
    for key in a:
        assert np.array_equal(a[key], b[key])


def test_empty_layer_list_is_rejected_without_side_effects():
    net = _spiral_net()
    before = net.state_dict()
    layers = list(net.layers)
    with pytest.raises(ConfigurationError):
        net.initialize(2)
    with pytest.raises(ConfigurationError):
        net.initialize(2, [])
    assert net.layers == layers
    for key, value in net.state_dict().items():
        assert np.array_equal(value, before[key])


def test_layer_rejecting_its_input_is_a_configuration_error():
    net = Network()
    with pytest.raises(ConfigurationError) as excinfo:
        net.initialize(2, Linear(outputs=3), Linear(outputs=0))
    assert isinstance(excinfo.value.__cause__, DimensionError)
    assert not net.initialized

    with pytest.raises(ConfigurationError):
        net.initialize(2, {"type": "linear", "outputs": 3, "init_scale": -1.0})
    assert not net.initialized


def test_predict_is_pure_and_shapes_follow_input():
    net = _spiral_net()
    before = net.state_dict()
    x = np.array([0.3, -0.7])
    first = net.predict(x)
    second = net.predict(x)
    assert first.shape == (3,)
    assert np.array_equal(first, second)
    assert np.isclose(first.sum(), 1.0)

    batch = net.predict(np.stack([x, -x]))
    assert batch.shape == (2, 3)
    assert np.allclose(batch[0], first)
    for key, value in net.state_dict().items():
        assert np.array_equal(value, before[key])


def test_predict_validates_width_and_initialisation():
    with pytest.raises(ConfigurationError):
        Network().predict(np.zeros(2))
    with pytest.raises(DimensionError):
        _spiral_net().predict(np.zeros(3))


def test_evaluate_reports_loss_and_accuracy():
    net = _spiral_net()
    examples = [Example.of((0.1, 0.2), (1, 0, 0)), Example.of((-0.5, 0.4), (0, 0, 1))]
    loss, acc = net.evaluate(examples)
    assert loss > 0
    assert 0.0 <= acc <= 1.0

    with pytest.raises(DimensionError):
        net.evaluate([Example.of((0.1, 0.2), (1, 0))])
    with pytest.raises(DimensionError):
        net.evaluate([Example.of((0.1, 0.2), (1, 0, 0)), Example.of((0.1, 0.2, 0.3), (1, 0, 0))])
    with pytest.raises(ConfigurationError):
        net.evaluate([])


def test_fused_gradient_skips_softmax():
    net = _spiral_net()
    x = np.array([[0.5, -0.5]])
    target = np.array([[0.0, 1.0, 0.0]])
    pred = net.forward(x)
    _, grad, fused = net.loss_gradient(pred, target)
    assert fused
    assert np.allclose(grad, pred - target)

    mse = Network(loss="mse").initialize(2, Linear(outputs=3), Softmax(), seed=0)
    pred = mse.forward(x)
    _, grad, fused = mse.loss_gradient(pred, target)
    assert not fused
    assert np.allclose(grad, pred - target)


def test_load_state_dict_round_trips_parameters():
    source = _spiral_net(seed=1)
    target = _spiral_net(seed=2)
    target.load_state_dict(source.state_dict())
    x = np.array([0.2, 0.9])
    assert np.array_equal(source.predict(x), target.predict(x))


def test_perceptron_alias_and_summary():
    assert Perceptron is Network
    text = _spiral_net().summary()
    assert "Linear(2 -> 7)" in text
    assert "parameters: 45" in text
