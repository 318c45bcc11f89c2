import numpy as np
import pytest

from backpropnets.core.errors import OutOfRangeError, ShapeError, StateError
from backpropnets.core.matrix import Matrix, MutableMatrix, column
from backpropnets.core.network import Layer, Network


def _fixed_network():
    weights = [
        Matrix([[0.1, 0.2], [0.3, -0.4], [0.5, 0.6]]),
        Matrix([[0.7, -0.8, 0.9]]),
    ]
    biases = [column([0.1, 0.0, -0.1]), column([0.2])]
    return Network.build([2, 3, 1], ["relu", "sigmoid"], weights=weights, biases=biases)


def test_build_wires_layers_and_weights():
    net = Network.build([3, 5, 2], "tanh", seed=0)
    assert net.sizes == [3, 5, 2]
    assert len(net) == 3
    assert net.layer(0).activation.name == "linear"
    assert net.incoming_weights(1).shape == (5, 3)
    assert net.outgoing_weights(1).shape == (2, 5)
    assert net.incoming_weights(2) is net.outgoing_weights(1)
    assert net.parameter_count() == 3 * 5 + 5 + 5 * 2 + 2
    assert net.layer(1).biases == Matrix.zeros(5, 1)


def test_build_is_reproducible_for_a_seed():
    a = Network.build([2, 4, 1], ["relu", "sigmoid"], seed=7)
    b = Network.build([2, 4, 1], ["relu", "sigmoid"], seed=7)
    assert all(wa == wb for wa, wb in zip(a.weights, b.weights))


def test_constructor_validation():
    layers = [
        Layer(0, 2, "linear", MutableMatrix.zeros(2, 1)),
        Layer(1, 1, "sigmoid", MutableMatrix.zeros(1, 1)),
    ]
    with pytest.raises(ShapeError):
        Network(layers, [Matrix.zeros(2, 1)])
    with pytest.raises(ShapeError):
        Network(layers, [])
    with pytest.raises(ShapeError):
        Network(layers[:1], [])
    with pytest.raises(ShapeError):
        Network([layers[1], layers[0]], [Matrix.zeros(1, 2)])
    with pytest.raises(ShapeError):
        Layer(1, 2, "relu", MutableMatrix.zeros(3, 1))
    with pytest.raises(ShapeError):
        Network.build([2, 3, 1], ["relu"])


def test_index_ranges():
    net = _fixed_network()
    with pytest.raises(OutOfRangeError):
        net.layer(3)
    with pytest.raises(OutOfRangeError):
        net.incoming_weights(0)
    with pytest.raises(OutOfRangeError):
        net.outgoing_weights(2)


def test_forward_matches_hand_computation():
    net = _fixed_network()
    x = np.array([[0.3], [0.9]])
    hidden = np.maximum(np.array([[0.1, 0.2], [0.3, -0.4], [0.5, 0.6]]) @ x + [[0.1], [0.0], [-0.1]], 0)
    z_out = np.array([[0.7, -0.8, 0.9]]) @ hidden + 0.2
    expected = 1.0 / (1.0 + np.exp(-z_out))

    output = net.forward(column([0.3, 0.9]))
    np.testing.assert_allclose(output.to_numpy(), expected)
    np.testing.assert_allclose(net.summed_inputs(2).to_numpy(), z_out)
    np.testing.assert_allclose(net.layer(1).activations.to_numpy(), hidden)


def test_forward_over_batch_columns_matches_single_points():
    net = _fixed_network()
    batch = Matrix([[0.3, -1.0, 0.0], [0.9, 2.0, 0.5]])
    out = net.predict(batch)
    assert out.shape == (1, 3)
    for j, point in enumerate(batch.iter_columns()):
        assert net.predict(point).get(0) == pytest.approx(out.get(0, j))


def test_propagate_leaves_state_untouched():
    net = _fixed_network()
    with pytest.raises(StateError):
        net.trace()
    net.propagate(column([0.1, 0.2]))
    with pytest.raises(StateError):
        net.summed_inputs(1)
    net.forward(column([0.1, 0.2]))
    trace = net.trace()
    assert trace.summed_inputs[0] is None
    assert trace.output == net.layer(2).activations
    net.clear_state()
    with pytest.raises(StateError):
        net.trace()


def test_input_size_mismatch():
    net = _fixed_network()
    with pytest.raises(ShapeError):
        net.forward(column([1.0, 2.0, 3.0]))


def test_single_layer_identity_network_returns_its_input():
    net = Network.build([3, 3], "linear", weights=[Matrix.identity(3)])
    batch = Matrix([[1.0, -2.0], [0.5, 0.0], [3.0, 4.0]])
    assert net.forward(batch) == batch
