import pytest

from backpropnets.core.errors import OutOfRangeError, ShapeError
from backpropnets.core.matrix import column
from backpropnets.training.losses import REGISTRY
from backpropnets.training.problems import (
    OneHotEncoding,
    ProblemSpecification,
    classification_problem,
    regression_problem,
)


def test_one_hot_round_trip_and_argmax_decoding():
    encoding = OneHotEncoding(["cat", "dog", "bird"])
    assert encoding.encode("dog") == column([0.0, 1.0, 0.0])
    assert encoding.decode(column([0.1, 0.2, 0.7])) == "bird"
    assert encoding.label_at(0) == "cat"
    assert len(encoding) == 3
    with pytest.raises(KeyError):
        encoding.encode("fish")
    with pytest.raises(OutOfRangeError):
        encoding.label_at(3)
    with pytest.raises(ShapeError):
        encoding.decode(column([1.0, 0.0]))
    with pytest.raises(ValueError):
        OneHotEncoding(["a", "a"])


def test_problem_factories_pick_task_type_and_error():
    reg = regression_problem(3, 1)
    assert reg.is_regression and reg.error.name == "mse" and reg.num_classes is None

    binary = classification_problem(2, 1)
    assert binary.task_type == "binary" and binary.error.name == "bce"
    assert binary.labels() == (0, 1)

    multi = classification_problem(4, 3, error="mse", class_labels=["a", "b", "c"])
    assert multi.task_type == "multiclass" and multi.error.name == "mse"
    assert multi.encoding().encode("c") == column([0.0, 0.0, 1.0])


def test_problem_validation():
    mse = REGISTRY.get("mse")
    with pytest.raises(ShapeError):
        ProblemSpecification(2, 2, "binary", mse)
    with pytest.raises(ShapeError):
        ProblemSpecification(2, 3, "multiclass", mse, class_labels=("a", "b"))
    with pytest.raises(ValueError):
        ProblemSpecification(2, 1, "ranking", mse)
    with pytest.raises(ValueError):
        regression_problem(2, 1).encoding()
