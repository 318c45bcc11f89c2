import numpy as np
import pytest

from backpropnets.core.errors import ShapeError
from backpropnets.core.matrix import Matrix, column
from backpropnets.core.network import Network
from backpropnets.core.types import LabelledDataPoint
from backpropnets.training.gradients import GradientData
from backpropnets.training.losses import REGISTRY
from backpropnets.training.optimizers import gradient_descent
from backpropnets.training.problems import classification_problem, regression_problem
from backpropnets.training.trainer import BackpropagationTrainer, stack_batch


def _points(n, seed=0):
    rng = np.random.default_rng(seed)
    xs = rng.uniform(-1, 1, size=(n, 2))
    return [LabelledDataPoint.of(x, [float(x[0] * x[1] > 0)]) for x in xs]


def test_single_step_reduces_cost_on_one_point():
    net = Network.build([2, 3, 1], ["relu", "sigmoid"], seed=0)
    point = LabelledDataPoint.of([0.3, 0.9], [1.0])
    mse = REGISTRY.get("mse")
    before = mse.cost(point.output, net.predict(point.input))

    trainer = BackpropagationTrainer(gradient_descent(0.1))
    result = trainer.train(regression_problem(2, 1), net, [point], 1, 1, randomize=False)

    after = mse.cost(point.output, net.predict(point.input))
    assert after < before
    assert result.history[0]["cost"] == pytest.approx(before)


def test_duplicated_point_gives_the_same_update_as_the_single_point():
    point = LabelledDataPoint.of([0.3, 0.9], [1.0])
    single = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=4)
    doubled = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=4)
    problem = regression_problem(2, 1)

    BackpropagationTrainer(gradient_descent(0.3)).train(problem, single, [point], 1, 1, randomize=False)
    BackpropagationTrainer(gradient_descent(0.3)).train(
        problem, doubled, [point, point], 2, 1, randomize=False
    )
    for a, b in zip(single.weights, doubled.weights):
        assert a.allclose(b)


def test_remainder_batch_is_trained():
    net = Network.build([2, 4, 1], ["tanh", "sigmoid"], seed=1)
    trainer = BackpropagationTrainer(gradient_descent(0.1))
    result = trainer.train(classification_problem(2, 1), net, _points(10), 4, 2)
    assert result.batches == 6
    assert result.points == 20
    assert [m["batches"] for m in result.history] == [3, 3]


def test_threaded_accumulation_matches_sequential():
    points = _points(12, seed=2)
    problem = classification_problem(2, 1)
    sequential = Network.build([2, 5, 1], ["tanh", "sigmoid"], seed=9)
    threaded = Network.build([2, 5, 1], ["tanh", "sigmoid"], seed=9)

    BackpropagationTrainer(gradient_descent(0.2, momentum=0.5), seed=3).train(
        problem, sequential, points, 5, 3
    )
    BackpropagationTrainer(gradient_descent(0.2, momentum=0.5), seed=3, workers=3).train(
        problem, threaded, points, 5, 3
    )
    for a, b in zip(sequential.weights, threaded.weights):
        np.testing.assert_allclose(a.array, b.array, rtol=1e-10, atol=1e-12)


def test_training_reduces_cost_over_epochs():
    net = Network.build([2, 6, 1], ["tanh", "sigmoid"], seed=0)
    trainer = BackpropagationTrainer(gradient_descent(0.5), seed=0)
    result = trainer.train(classification_problem(2, 1), net, _points(40), 8, 80)
    assert result.history[-1]["cost"] < result.history[0]["cost"]
    assert result.final_cost == result.history[-1]["cost"]


def test_callbacks_receive_epoch_metrics():
    seen = []

    class Recorder:
        def on_epoch(self, epoch, metrics):
            seen.append(("object", epoch, metrics["points"]))

    def plain(epoch, metrics):
        seen.append(("callable", epoch, metrics["batches"]))

    net = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=0)
    trainer = BackpropagationTrainer(gradient_descent(0.1), callbacks=[Recorder(), plain])
    trainer.train(classification_problem(2, 1), net, _points(6), 0, 2)
    assert seen == [("object", 1, 6), ("callable", 1, 1), ("object", 2, 6), ("callable", 2, 1)]


def test_callable_source_is_called_every_epoch():
    calls = []
    points = _points(4)

    def source():
        calls.append(1)
        return iter(points)

    net = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=0)
    BackpropagationTrainer(gradient_descent(0.1)).train(
        classification_problem(2, 1), net, source, 2, 3
    )
    assert len(calls) == 3


def test_randomize_redraws_weights_from_the_trainer_seed():
    a = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=1)
    b = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=2)
    problem = classification_problem(2, 1)
    BackpropagationTrainer(gradient_descent(0.0), seed=5).train(problem, a, _points(2), 1, 1)
    BackpropagationTrainer(gradient_descent(0.0), seed=5).train(problem, b, _points(2), 1, 1)
    assert all(wa == wb for wa, wb in zip(a.weights, b.weights))


def test_train_validation():
    net = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=0)
    trainer = BackpropagationTrainer(gradient_descent(0.1))
    with pytest.raises(ShapeError):
        trainer.train(regression_problem(3, 1), net, _points(2), 1, 1)
    with pytest.raises(ValueError):
        trainer.train(regression_problem(2, 1), net, _points(2), 1, -1)
    with pytest.raises(ValueError):
        trainer.train(regression_problem(2, 1), net, [], 1, 1)
    with pytest.raises(ValueError):
        trainer.learn_batch(net, GradientData.for_network(net), REGISTRY.get("mse"), [])
    with pytest.raises(ValueError):
        BackpropagationTrainer(gradient_descent(0.1), workers=0)


def test_zero_epochs_is_a_no_op():
    net = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=0)
    before = [w.freeze() for w in net.weights]
    result = BackpropagationTrainer(gradient_descent(0.1)).train(
        regression_problem(2, 1), net, _points(3), 1, 0, randomize=False
    )
    assert result.batches == 0 and result.history == []
    assert all(w == b for w, b in zip(net.weights, before))


def test_stack_batch_columns():
    inputs, outputs = stack_batch(
        [LabelledDataPoint.of([1.0, 2.0], [0.0]), LabelledDataPoint.of([3.0, 4.0], [1.0])]
    )
    assert inputs == Matrix([[1.0, 3.0], [2.0, 4.0]])
    assert outputs == Matrix([[0.0, 1.0]])
    with pytest.raises(ShapeError):
        stack_batch([LabelledDataPoint.of([1.0], [0.0]), LabelledDataPoint.of([1.0, 2.0], [0.0])])
    with pytest.raises(ValueError):
        stack_batch([])


def test_options_override_applies_to_a_single_run():
    net = Network.build([2, 3, 1], ["tanh", "sigmoid"], seed=0)
    before = [w.freeze() for w in net.weights]
    BackpropagationTrainer(gradient_descent(0.5)).train(
        regression_problem(2, 1),
        net,
        [LabelledDataPoint(column([0.1, 0.2]), column([1.0]))],
        1,
        2,
        options_override={"learning_rate": 0.0},
        randomize=False,
    )
    assert all(w == b for w, b in zip(net.weights, before))
