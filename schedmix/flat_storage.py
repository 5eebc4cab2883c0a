"""Compact storage for a ragged list of rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class FlatStorage(Generic[T]):
    """Rows of varying length kept in one flat sequence with offsets."""

    paths: tuple[T, ...] = ()
    offsets: tuple[int, ...] = field(default=(0,))

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(self.paths))
        object.__setattr__(self, "offsets", tuple(self.offsets))
        if not self.offsets or self.offsets[0] != 0:
            raise ValueError("offsets must start at 0")
        if any(a > b for a, b in zip(self.offsets, self.offsets[1:])):
            raise ValueError("offsets must be non-decreasing")
        if self.offsets[-1] != len(self.paths):
            raise ValueError("last offset must equal the number of stored items")

    @classmethod
    def from_ragged(cls, ragged: Iterable[Iterable[T]]) -> "FlatStorage[T]":
        """Flatten a sequence of rows."""
        paths: list[T] = []
        offsets = [0]
        for row in ragged:
            paths.extend(row)
            offsets.append(len(paths))
        return cls(tuple(paths), tuple(offsets))

    def get(self, idx: int) -> tuple[T, ...]:
        """Return row ``idx``."""
        if not 0 <= idx < len(self):
            raise IndexError(f"row {idx} out of range 0..{len(self)}")
        return self.paths[self.offsets[idx] : self.offsets[idx + 1]]

    def __len__(self) -> int:
        return len(self.offsets) - 1