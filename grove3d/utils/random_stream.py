"""Seeded random stream with save/restore of its position."""

from __future__ import annotations

import copy
from typing import Any

import numpy as np

StreamSnapshot = dict[str, Any]


class RandomStream:
    """Deterministic source of uniform random values.

    Wraps a numpy `Generator` driven by a `PCG64` bit generator. Every value a
    generation pass draws comes from one of these streams, so the order of the
    draws (not only the seed) defines the generated tree.
    """

    def __init__(self, seed: int | None = 0):
        self._generator = np.random.Generator(np.random.PCG64(seed))

    def reseed(self, seed: int) -> None:
        """Resets the stream to the deterministic start position for `seed`."""
        self._generator = np.random.Generator(np.random.PCG64(seed))

    def uniform(self) -> float:
        """Returns a value in [0, 1)."""
        return float(self._generator.random())

    def range(self, low: float, high: float) -> float:
        """Returns a value in [low, high)."""
        return low + (high - low) * self.uniform()

    def integer(self, low: int, high: int) -> int:
        """Returns an integer in [low, high)."""
        return int(self._generator.integers(low, high))

    def snapshot(self) -> StreamSnapshot:
        """Captures the current stream position."""
        return copy.deepcopy(self._generator.bit_generator.state)

    def restore(self, snapshot: StreamSnapshot) -> None:
        """Reinstates a position previously captured with `snapshot`."""
        self._generator.bit_generator.state = copy.deepcopy(snapshot)


_DEFAULT_STREAM = RandomStream(seed=None)


def default_stream() -> RandomStream:
    """The process-wide stream shared by callers that do not bring their own."""
    return _DEFAULT_STREAM
