"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, MutableMapping

from ..core.types import LabelledDataPoint

TASK_TYPES = ("regression", "binary", "multiclass")

SPLITS = ("train", "val", "test")


@dataclass(frozen=True)
class DataSpec:
    """Structural information about a dataset.

    Attributes
    ----------
    d_in:
        Number of input nodes a network needs for this dataset.
    d_out:
        Number of output nodes (one-hot width for multiclass targets).
    task_type:
        One of ``{"regression", "binary", "multiclass"}``.
    num_classes:
        Number of discrete classes for classification datasets.
    class_labels:
        Original label values, in one-hot column order.
    normalization:
        Metadata describing normalisation applied to inputs or targets.
    """

    d_in: int
    d_out: int
    task_type: str
    num_classes: int | None = None
    class_labels: tuple | None = None
    normalization: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """Description of a dataset registered in the system.

    ``points(split, seed)`` returns a fresh iterator of data points for
    ``split``; the order is shuffled deterministically by ``seed`` (``None``
    keeps storage order).
    """

    name: str
    points: Callable[[str, int | None], Iterator[LabelledDataPoint]]
    data_spec: DataSpec
    provenance: Dict[str, Any]
    splits: Dict[str, int]

    def iter_split(self, split: str, seed: int | None = None) -> Iterator[LabelledDataPoint]:
        if split not in SPLITS:
            raise ValueError(f"Unknown split: {split}")
        return self.points(split, seed)

    def source(self, split: str, seed: int | None = None) -> Callable[[], Iterator[LabelledDataPoint]]:
        """Zero-argument factory reshuffling ``split`` on every call."""

        epoch = 0

        def _fresh() -> Iterator[LabelledDataPoint]:
            nonlocal epoch
            epoch_seed = None if seed is None else seed + epoch
            epoch += 1
            return self.iter_split(split, epoch_seed)

        return _fresh


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("xor")
        def make_xor(**kwargs):
            ...

    or directly::

        register_dataset("xor", make_xor)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str | None = None, /, **options: Any) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset is None:
        if "name" in options:
            dataset = str(options.pop("name"))
        else:
            raise TypeError("Dataset name must be provided")

    if dataset not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset: {dataset}. Available datasets: {available}")

    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.data_spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {spec.data_spec.task_type}")
    if spec.data_spec.task_type != "regression" and spec.data_spec.num_classes is None:
        raise ValueError("Classification datasets must define num_classes")
    if not isinstance(spec.splits, dict):
        raise TypeError("DatasetSpec.splits must be a mapping")
    for split, count in spec.splits.items():
        if count < 0:
            raise ValueError(f"Split {split!r} has negative sample count {count}")


__all__ = [
    "DataSpec",
    "DatasetSpec",
    "SPLITS",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
