import numpy as np
import pytest

from backpropnets.core.errors import OutOfRangeError, ShapeError
from backpropnets.core.matrix import Matrix, column
from backpropnets.core.network import Network
from backpropnets.core.types import LabelledDataPoint
from backpropnets.training.gradients import GradientData, backpropagate, hidden_differential
from backpropnets.training.losses import REGISTRY
from backpropnets.training.optimizers import gradient_descent
from backpropnets.training.trainer import BackpropagationTrainer, stack_batch

BATCH = [
    LabelledDataPoint.of([0.3, 0.9], [1.0]),
    LabelledDataPoint.of([-0.5, 0.2], [0.0]),
    LabelledDataPoint.of([0.8, -0.7], [0.4]),
]


def _network(seed=3):
    return Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=seed)


def _batch_cost(network, error):
    inputs, expected = stack_batch(BATCH)
    return error.batch_cost(expected, network.predict(inputs))


@pytest.mark.parametrize("loss", ["mse", "bce"])
def test_gradients_match_finite_differences(loss):
    net = _network()
    error = REGISTRY.get(loss)
    trainer = BackpropagationTrainer(gradient_descent(0.1))
    grads = trainer.compute_gradients(net, BATCH, error)
    h = 1e-6

    for data in grads:
        weights = data.weights
        for i in range(weights.rows):
            for j in range(weights.cols):
                original = weights.get(i, j)
                weights.set(i, j, original + h)
                plus = _batch_cost(net, error)
                weights.set(i, j, original - h)
                minus = _batch_cost(net, error)
                weights.set(i, j, original)
                numeric = (plus - minus) / (2 * h)
                assert data.weight_gradients.get(i, j) == pytest.approx(numeric, abs=1e-5)
        biases = data.biases
        for i in range(biases.rows):
            original = biases.get(i)
            biases.set(i, 0, original + h)
            plus = _batch_cost(net, error)
            biases.set(i, 0, original - h)
            minus = _batch_cost(net, error)
            biases.set(i, 0, original)
            numeric = (plus - minus) / (2 * h)
            assert data.bias_gradients.get(i) == pytest.approx(numeric, abs=1e-5)


def test_compute_gradients_leaves_parameters_alone():
    net = _network()
    before = [w.freeze() for w in net.weights]
    BackpropagationTrainer(gradient_descent(0.5)).compute_gradients(net, BATCH, REGISTRY.get("mse"))
    assert all(w == b for w, b in zip(net.weights, before))


def test_accumulate_adds_outer_products_and_row_sums():
    net = _network()
    data = GradientData.for_network(net)[0]
    delta = Matrix([[1.0, 2.0], [0.0, 1.0], [-1.0, 0.5]])
    prev = Matrix([[1.0, 0.0], [2.0, 1.0]])
    data.accumulate(delta, prev)
    np.testing.assert_allclose(data.weight_gradients.to_numpy(), delta.array @ prev.array.T)
    np.testing.assert_allclose(data.bias_gradients.to_numpy(), [[3.0], [1.0], [-0.5]])
    assert data.count == 2
    assert data.cost_differentials == delta
    with pytest.raises(ShapeError):
        data.accumulate(Matrix.zeros(2, 2), prev)

    other = data.worker_copy()
    assert other.weights is data.weights and other.count == 0
    other.accumulate(delta, prev)
    data.merge(other)
    np.testing.assert_allclose(data.bias_gradients.to_numpy(), [[6.0], [2.0], [-1.0]])
    data.reset()
    assert data.count == 0 and data.weight_gradients.sum() == 0.0


def test_hidden_differential_range_and_shapes():
    net = _network()
    trace = net.propagate(column([0.1, 0.2]))
    with pytest.raises(OutOfRangeError):
        hidden_differential(net, trace, 2, column([1.0]))
    with pytest.raises(OutOfRangeError):
        hidden_differential(net, trace, 0, column([1.0]))
    with pytest.raises(ShapeError):
        hidden_differential(net, trace, 1, column([1.0, 2.0]))
    assert hidden_differential(net, trace, 1, column([1.0])).shape == (3, 1)


def test_backpropagate_requires_one_accumulator_per_layer():
    net = _network()
    trace = net.propagate(column([0.1, 0.2]))
    with pytest.raises(ShapeError):
        backpropagate(net, trace, column([1.0]), REGISTRY.get("mse"), [])


def test_gradient_data_rejects_mismatched_biases():
    net = _network()
    with pytest.raises(ShapeError):
        GradientData(1, net.incoming_weights(1), net.layer(2).biases)
