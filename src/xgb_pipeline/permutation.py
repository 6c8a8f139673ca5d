"""Seedable row-index shuffling.

The generator is SplitMix64 (Steele, Lea & Flood, 2014): a 64-bit counter
advanced by the golden-ratio increment and passed through a bijective mixer.
It is fast and statistically adequate for shuffling rows, but it is *not*
cryptographically secure.
"""

from __future__ import annotations

import os
import threading
import time

import numpy as np

from xgb_pipeline.status import AllocationError, InvalidParameterError

_MASK64 = (1 << 64) - 1
_GOLDEN_GAMMA = 0x9E3779B97F4A7C15


class SplitMix64:
    """SplitMix64 pseudo-random generator.

    Parameters
    ----------
    seed : int, optional
        Initial state. When omitted the state is derived from the wall clock
        combined with process/thread identity, so generators created in
        concurrently running contexts do not produce identical sequences.
    """

    def __init__(self, seed: int | None = None) -> None:
        if seed is None:
            seed = entropy_seed()
        self.seed = int(seed) & _MASK64
        self._state = self.seed

    def next_u64(self) -> int:
        self._state = (self._state + _GOLDEN_GAMMA) & _MASK64
        z = self._state
        z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & _MASK64
        z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & _MASK64
        return z ^ (z >> 31)

    def below(self, bound: int) -> int:
        """Uniform integer in ``[0, bound)`` using rejection sampling."""
        if bound <= 0:
            raise ValueError("bound must be > 0")
        limit = ((1 << 64) // bound) * bound
        while True:
            value = self.next_u64()
            if value < limit:
                return value % bound


def entropy_seed() -> int:
    """Coarse, non-cryptographic seed distinct per process and thread."""
    seed = time.time_ns()
    seed ^= os.getpid() << 32
    seed ^= threading.get_ident()
    return seed & _MASK64


def shuffle(n: int, rng: SplitMix64 | None = None) -> np.ndarray:
    """Return a random permutation of ``[0, n)``.

    Fisher-Yates, scanning from the last index down to 1 and swapping each
    position with one drawn uniformly from ``[0, i]``.

    Parameters
    ----------
    n : int
        Number of indices; must be positive.
    rng : SplitMix64, optional
        Generator to draw from. A fresh entropy-seeded one is used if omitted.

    Returns
    -------
    np.ndarray
        ``int64`` array holding each value of ``range(n)`` exactly once.

    Raises
    ------
    InvalidParameterError
        If ``n`` is not a positive integer.
    AllocationError
        If the index buffer cannot be allocated.
    """
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise InvalidParameterError(
            "n must be a positive integer", operation="shuffle", context={"n": n}
        )
    if rng is None:
        rng = SplitMix64()

    try:
        indices = np.arange(int(n), dtype=np.int64)
    except MemoryError as exc:
        raise AllocationError(
            "failed to allocate permutation buffer",
            operation="shuffle",
            context={"n": n},
        ) from exc

    for i in range(int(n) - 1, 0, -1):
        j = rng.below(i + 1)
        indices[i], indices[j] = indices[j], indices[i]
    return indices
