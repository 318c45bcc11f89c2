"""Partition a single-pass stream of data points into mini-batches."""

from __future__ import annotations

from typing import Generic, Iterable, Iterator, List, TypeVar

T = TypeVar("T")


class BatchStream(Generic[T]):
    """Iterator over consecutive batches of ``batch_size`` items.

    Items are pulled lazily from ``source``.  The final batch may be smaller
    than ``batch_size``; an empty batch is never produced.  A ``batch_size``
    of ``0`` yields the whole source as a single batch.
    """

    def __init__(self, source: Iterable[T], batch_size: int) -> None:
        if batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {batch_size}")
        self._source = iter(source)
        self.batch_size = int(batch_size)
        self._exhausted = False
        self.batches_yielded = 0
        self.items_yielded = 0

    def __iter__(self) -> "BatchStream[T]":
        return self

    def __next__(self) -> List[T]:
        if self._exhausted:
            raise StopIteration
        batch: List[T] = []
        for item in self._source:
            batch.append(item)
            if self.batch_size and len(batch) == self.batch_size:
                break
        else:
            self._exhausted = True
        if not batch:
            raise StopIteration
        self.batches_yielded += 1
        self.items_yielded += len(batch)
        return batch


def batches(source: Iterable[T], batch_size: int) -> Iterator[List[T]]:
    return BatchStream(source, batch_size)


__all__ = ["BatchStream", "batches"]
