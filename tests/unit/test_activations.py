import numpy as np
import pytest

from backpropnets.core import activations as act
from backpropnets.core.initializers import initialize_weights, scheme_for

SAMPLE = np.array([-3.0, -1.0, -0.25, 0.3, 1.0, 2.5])


def _numeric_slope(fn, x, h=1e-6):
    return (fn(x + h) - fn(x - h)) / (2 * h)


@pytest.mark.parametrize(
    "name",
    ["sigmoid", "tanh", "softplus", "elu", "selu", "softSign", "leakyRelu", "relu", "linear"],
)
def test_derivatives_match_finite_differences(name):
    fn = act.get_activation(name)
    np.testing.assert_allclose(
        fn.derivative(SAMPLE), _numeric_slope(fn.calculate, SAMPLE), rtol=1e-5, atol=1e-6
    )


def test_soft_exponential_derivative_is_consistent_on_both_sides():
    fn = act.soft_exponential
    np.testing.assert_allclose(
        fn.derivative(SAMPLE), _numeric_slope(fn.calculate, SAMPLE), rtol=1e-5, atol=1e-6
    )


def test_scalar_in_scalar_out():
    assert isinstance(act.sigmoid(0.0), float)
    assert act.sigmoid(0.0) == pytest.approx(0.5)
    assert act.relu.derivative(-1.0) == 0.0
    assert act.softmax.derivative(3.0) == 1.0


def test_piecewise_closed_forms():
    np.testing.assert_allclose(act.hard_sigmoid(np.array([-5.0, 0.0, 5.0])), [0.0, 0.5, 1.0])
    np.testing.assert_allclose(act.hard_tanh(np.array([-2.0, 0.5, 2.0])), [-1.0, 0.5, 1.0])
    np.testing.assert_allclose(act.soft_shrink(np.array([-1.0, 0.2, 1.0])), [-0.5, 0.0, 0.5])
    np.testing.assert_allclose(act.hard_shrink(np.array([-1.0, 0.2, 1.0])), [-1.0, 0.0, 1.0])
    np.testing.assert_allclose(act.leaky_relu(np.array([-1.0, 2.0])), [-0.01, 2.0])


def test_softmax_is_node_wise_exponential():
    x = np.array([0.0, 1.0])
    np.testing.assert_allclose(act.softmax(x), np.exp(x))


def test_linear_returns_a_copy():
    x = np.array([1.0, 2.0])
    out = act.linear(x)
    out[0] = 10.0
    assert x[0] == 1.0


def test_large_inputs_do_not_overflow_to_nan():
    big = np.array([-1000.0, 1000.0])
    assert np.all(np.isfinite(act.sigmoid(big)))
    assert np.all(np.isfinite(act.softplus(np.array([-1000.0]))))


def test_lookup_is_case_and_separator_insensitive():
    assert act.get_activation("leaky_relu") is act.leaky_relu
    assert act.get_activation("LeakyRelu") is act.leaky_relu
    assert act.get_activation(act.tanh) is act.tanh
    assert "softExponential" in act.available_activations()
    with pytest.raises(KeyError, match="Available activations"):
        act.get_activation("swish")


@pytest.mark.parametrize(
    "name, scheme",
    [
        ("sigmoid", "normalized_xavier"),
        ("tanh", "normalized_xavier"),
        ("relu", "he"),
        ("leakyRelu", "he"),
        ("selu", "he"),
        ("softplus", "he"),
        ("linear", "xavier"),
        ("softmax", "xavier"),
    ],
)
def test_initializer_scheme_selection(name, scheme):
    assert scheme_for(name) == scheme


def test_initializer_shapes_and_bounds():
    rng = np.random.default_rng(0)
    weights = initialize_weights(4, 3, "sigmoid", rng)
    assert weights.shape == (3, 4)
    bound = np.sqrt(6.0) / np.sqrt(7.0)
    assert np.all(np.abs(weights.array) <= bound)

    xavier = initialize_weights(9, 2, "linear", np.random.default_rng(1))
    assert np.all(np.abs(xavier.array) <= 1.0 / 3.0)

    he = initialize_weights(200, 100, "relu", np.random.default_rng(2))
    assert np.std(he.array) == pytest.approx(np.sqrt(2.0 / 200), rel=0.05)


def test_initializer_is_reproducible():
    a = initialize_weights(3, 2, "tanh", np.random.default_rng(5))
    b = initialize_weights(3, 2, "tanh", np.random.default_rng(5))
    assert a == b
