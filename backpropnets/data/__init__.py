"""Dataset registry and data point adapters."""

# Ensure built-in datasets register themselves when the package is imported.
from . import csv_generic as _csv_generic  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .registry import DatasetSpec, DataSpec, available_datasets, get_dataset, register_dataset
from .utils import deterministic_split, points_from_arrays, points_from_sequence, standardize

__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "deterministic_split",
    "get_dataset",
    "points_from_arrays",
    "points_from_sequence",
    "register_dataset",
    "standardize",
]
