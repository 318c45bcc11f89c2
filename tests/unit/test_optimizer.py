import numpy as np
import pytest

from backpropnets.core.matrix import Matrix, MutableMatrix
from backpropnets.training.gradients import GradientData
from backpropnets.training.optimizers import GradientDescent, GradientDescentOptions, gradient_descent


def _layer(weights, biases, grad_w, grad_b):
    data = GradientData(1, MutableMatrix(weights), MutableMatrix(biases))
    data.weight_gradients.assign(Matrix(grad_w))
    data.bias_gradients.assign(Matrix(grad_b))
    return data


def test_plain_update():
    data = _layer([[1.0, 2.0]], [[0.5]], [[0.1, -0.2]], [[0.3]])
    gradient_descent(0.5).update_weights_and_biases(1, data)
    np.testing.assert_allclose(data.weights.to_numpy(), [[0.95, 2.1]])
    np.testing.assert_allclose(data.biases.to_numpy(), [[0.35]])


def test_zero_learning_rate_leaves_parameters_unchanged():
    data = _layer([[1.0, 2.0]], [[0.5]], [[0.1, -0.2]], [[0.3]])
    gradient_descent(0.0, momentum=0.9, regularization=0.1).update_weights_and_biases(1, data)
    assert data.weights == Matrix([[1.0, 2.0]])
    assert data.biases == Matrix([[0.5]])


def test_zero_momentum_matches_plain_descent():
    plain = _layer([[1.0, 2.0]], [[0.5]], [[0.1, -0.2]], [[0.3]])
    momentum = _layer([[1.0, 2.0]], [[0.5]], [[0.1, -0.2]], [[0.3]])
    gd_plain = gradient_descent(0.2)
    gd_momentum = gradient_descent(0.2, momentum=0.0)
    for _ in range(3):
        gd_plain.update_weights_and_biases(1, plain)
        gd_momentum.update_weights_and_biases(1, momentum)
    assert plain.weights == momentum.weights
    assert plain.biases == momentum.biases


def test_momentum_accumulates_velocity():
    data = _layer([[0.0]], [[0.0]], [[1.0]], [[1.0]])
    gd = gradient_descent(0.1, momentum=0.5)
    gd.update_weights_and_biases(1, data)
    gd.update_weights_and_biases(1, data)
    # v1 = -0.1, v2 = 0.5 * -0.1 - 0.1 = -0.15
    assert data.weights.get(0, 0) == pytest.approx(-0.25)
    vel_w, vel_b = gd.velocities(1)
    assert vel_w.get(0, 0) == pytest.approx(-0.15)
    assert vel_b.get(0, 0) == pytest.approx(-0.15)
    gd.reset_velocities()
    assert gd.velocities(1) is None


def test_regularization_decays_weights_not_biases():
    data = _layer([[2.0]], [[2.0]], [[0.0]], [[0.0]])
    gradient_descent(0.1, regularization=0.5).update_weights_and_biases(1, data)
    assert data.weights.get(0, 0) == pytest.approx(2.0 * (1 - 0.05))
    assert data.biases.get(0, 0) == pytest.approx(2.0)


def test_overrides_take_precedence_field_by_field():
    base = GradientDescentOptions(0.1, momentum=0.9)
    merged = base.with_overrides(GradientDescentOptions(0.5))
    assert merged.learning_rate == 0.5 and merged.momentum == 0.9
    assert base.with_overrides({"regularization": 0.01}).kind == "regularized_momentum"
    assert base.with_overrides(None) is base
    with pytest.raises(KeyError):
        base.with_overrides({"beta": 0.3})

    data = _layer([[1.0]], [[0.0]], [[1.0]], [[0.0]])
    GradientDescent(GradientDescentOptions(0.1)).update_weights_and_biases(
        1, data, {"learning_rate": 0.0}
    )
    assert data.weights.get(0, 0) == 1.0


def test_option_validation_and_kind():
    assert GradientDescentOptions(0.1).kind == "plain"
    assert GradientDescentOptions(0.1, regularization=0.1).kind == "regularized"
    assert GradientDescentOptions(0.1, momentum=0.5).kind == "momentum"
    with pytest.raises(ValueError):
        GradientDescentOptions(-0.1)
    with pytest.raises(ValueError):
        GradientDescentOptions(0.1, momentum=1.5)
    with pytest.raises(ValueError):
        GradientDescentOptions(0.1, regularization=-1.0)


def test_layer_index_must_match_gradient_data():
    data = _layer([[1.0]], [[0.0]], [[1.0]], [[0.0]])
    with pytest.raises(ValueError):
        gradient_descent(0.1).update_weights_and_biases(2, data)


def test_step_updates_every_layer():
    first = _layer([[1.0]], [[0.0]], [[1.0]], [[1.0]])
    second = GradientData(2, MutableMatrix([[2.0]]), MutableMatrix([[0.0]]))
    second.weight_gradients.assign(Matrix([[-1.0]]))
    gradient_descent(0.5).step([first, second])
    assert first.weights.get(0, 0) == pytest.approx(0.5)
    assert second.weights.get(0, 0) == pytest.approx(2.5)
    assert first.biases.get(0, 0) == pytest.approx(-0.5)
