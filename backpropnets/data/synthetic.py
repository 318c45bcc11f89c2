"""Pure in-memory synthetic datasets."""

from __future__ import annotations

from typing import Iterator

import numpy as np
from sklearn.datasets import make_blobs

from ..core.types import LabelledDataPoint
from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import deterministic_split, points_from_arrays

XOR_INPUTS = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
XOR_TARGETS = np.array([[0.0], [1.0], [1.0], [0.0]])


def _make_sine(freq: float, n_points: int, noise: float, seed: int) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = np.sin(freq * np.pi * x) + noise * rng.standard_normal(size=x.shape)
    return x, y


@register_dataset("sine")
def load_sine(
    *,
    freq: float = 1.0,
    n_points: int = 128,
    noise: float = 0.05,
    seed: int = 0,
    val_split: float = 0.1,
    test_split: float = 0.2,
) -> DatasetSpec:
    """Noisy ``sin(freq * pi * x)`` on ``[-1, 1]``."""

    x, y = _make_sine(freq, n_points, noise, seed)
    splits = deterministic_split(x.shape[0], val_split=val_split, test_split=test_split, seed=seed)

    def points(split: str, order_seed: int | None = None) -> Iterator[LabelledDataPoint]:
        return points_from_arrays(x, y, getattr(splits, split), seed=order_seed)

    provenance = {
        "type": "synthetic",
        "freq": freq,
        "n_points": n_points,
        "noise": noise,
        "seed": seed,
        "val_split": val_split,
        "test_split": test_split,
    }
    return DatasetSpec(
        name="sine",
        points=points,
        data_spec=DataSpec(d_in=1, d_out=1, task_type="regression"),
        provenance=provenance,
        splits={k: int(v) for k, v in splits.sizes.items()},
    )


@register_dataset("xor")
def load_xor(*, repeats: int = 1, seed: int = 0) -> DatasetSpec:
    """The four XOR points; every split sees the full truth table."""

    if repeats < 1:
        raise ValueError(f"repeats must be >= 1, got {repeats}")
    x = np.tile(XOR_INPUTS, (repeats, 1))
    y = np.tile(XOR_TARGETS, (repeats, 1))

    def points(split: str, order_seed: int | None = None) -> Iterator[LabelledDataPoint]:
        if split == "val":
            return iter(())
        return points_from_arrays(x, y, seed=order_seed)

    return DatasetSpec(
        name="xor",
        points=points,
        data_spec=DataSpec(d_in=2, d_out=1, task_type="binary", num_classes=2, class_labels=(0, 1)),
        provenance={"type": "synthetic", "repeats": repeats, "seed": seed},
        splits={"train": int(x.shape[0]), "val": 0, "test": int(x.shape[0])},
    )


@register_dataset("blobs")
def load_blobs(
    *,
    n_points: int = 150,
    n_classes: int = 3,
    n_features: int = 2,
    cluster_std: float = 0.6,
    seed: int = 0,
    val_split: float = 0.1,
    test_split: float = 0.2,
) -> DatasetSpec:
    """Gaussian clusters with one-hot targets."""

    x, labels = make_blobs(
        n_samples=n_points,
        centers=n_classes,
        n_features=n_features,
        cluster_std=cluster_std,
        random_state=seed,
    )
    y = np.eye(n_classes)[labels]
    splits = deterministic_split(x.shape[0], val_split=val_split, test_split=test_split, seed=seed)

    def points(split: str, order_seed: int | None = None) -> Iterator[LabelledDataPoint]:
        return points_from_arrays(x, y, getattr(splits, split), seed=order_seed)

    data_spec = DataSpec(
        d_in=n_features,
        d_out=n_classes,
        task_type="multiclass",
        num_classes=n_classes,
        class_labels=tuple(range(n_classes)),
    )
    provenance = {
        "type": "synthetic",
        "n_points": n_points,
        "n_classes": n_classes,
        "cluster_std": cluster_std,
        "seed": seed,
        "val_split": val_split,
        "test_split": test_split,
    }
    return DatasetSpec(
        name="blobs",
        points=points,
        data_spec=data_spec,
        provenance=provenance,
        splits={k: int(v) for k, v in splits.sizes.items()},
    )


__all__ = ["load_blobs", "load_sine", "load_xor"]
