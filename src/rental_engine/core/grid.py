"""Dense storage addressed by integer keys over closed, possibly negative, ranges."""

from __future__ import annotations

from itertools import product
from typing import Any, Iterator

import numpy as np

Bounds = tuple[int, int]


class OffsetArray:
    """Fixed-size numpy-backed container indexed by one or two integer keys.

    Each axis is described by an inclusive ``(low, high)`` range, so the signed
    action axis ``[-L, L]`` and the count axes ``[0, R]`` share one type.

    Args:
        *bounds: one inclusive ``(low, high)`` pair per axis.
        fill: initial value for every record.
        dtype: numpy dtype of the backing store (``object`` for records).
    """

    def __init__(self, *bounds: Bounds, fill: Any = None, dtype: Any = object) -> None:
        if len(bounds) not in (1, 2):
            raise ValueError(f"OffsetArray supports 1 or 2 axes, got {len(bounds)}.")
        normalized: list[Bounds] = []
        for axis, bound in enumerate(bounds):
            if len(bound) != 2:
                raise ValueError(f"Axis {axis} bounds must be a (low, high) pair.")
            low, high = bound
            if not _is_int(low) or not _is_int(high):
                raise TypeError(f"Axis {axis} bounds must be integers, got {bound!r}.")
            if low > high:
                raise ValueError(f"Axis {axis} has empty range [{low}, {high}].")
            normalized.append((int(low), int(high)))
        self._bounds = tuple(normalized)
        shape = tuple(high - low + 1 for low, high in self._bounds)
        self._data = np.empty(shape, dtype=dtype)
        self._data.fill(fill)

    @property
    def bounds(self) -> tuple[Bounds, ...]:
        return self._bounds

    @property
    def ndim(self) -> int:
        return len(self._bounds)

    @property
    def shape(self) -> tuple[int, ...]:
        return self._data.shape

    @property
    def frozen(self) -> bool:
        return not self._data.flags.writeable

    def freeze(self) -> "OffsetArray":
        """Make the container read-only; later writes raise ``ValueError``."""
        self._data.flags.writeable = False
        return self

    def __len__(self) -> int:
        return int(self._data.size)

    def __contains__(self, key: object) -> bool:
        try:
            self._position(key)
        except (IndexError, TypeError):
            return False
        return True

    def __getitem__(self, key: Any) -> Any:
        return self._data[self._position(key)]

    def __setitem__(self, key: Any, value: Any) -> None:
        position = self._position(key)
        if self.frozen:
            raise ValueError("OffsetArray is read-only.")
        self._data[position] = value

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data.flat)

    def keys(self) -> Iterator[Any]:
        """Yield every valid key in ascending (row-major) order."""
        ranges = [range(low, high + 1) for low, high in self._bounds]
        if self.ndim == 1:
            yield from ranges[0]
        else:
            yield from product(*ranges)

    def items(self) -> Iterator[tuple[Any, Any]]:
        return zip(self.keys(), self._data.flat)

    def fill(self, value: Any) -> None:
        if self.frozen:
            raise ValueError("OffsetArray is read-only.")
        self._data.fill(value)

    def copy(self) -> "OffsetArray":
        """Return a writable deep copy of the storage."""
        clone = OffsetArray.__new__(OffsetArray)
        clone._bounds = self._bounds
        clone._data = self._data.copy()
        clone._data.flags.writeable = True
        return clone

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()

    def _position(self, key: Any) -> tuple[int, ...]:
        parts = key if isinstance(key, tuple) else (key,)
        if len(parts) != self.ndim:
            raise IndexError(
                f"Key {key!r} has {len(parts)} component(s); expected {self.ndim}."
            )
        position: list[int] = []
        for part, (low, high) in zip(parts, self._bounds):
            if not _is_int(part):
                raise TypeError(f"Key {key!r} must contain integers only.")
            if not (low <= part <= high):
                raise IndexError(
                    f"Key {key!r} outside valid range {self._describe_bounds()}."
                )
            position.append(int(part) - low)
        return tuple(position)

    def _describe_bounds(self) -> str:
        return " x ".join(f"[{low}, {high}]" for low, high in self._bounds)

    def __repr__(self) -> str:
        return f"OffsetArray({self._describe_bounds()}, dtype={self._data.dtype})"


def _is_int(value: object) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)
