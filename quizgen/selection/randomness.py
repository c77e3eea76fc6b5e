"""
Injectable random source.

Selection never touches the module-level `random` state: every request gets
its own RandomSource so balancing and trimming are reproducible under a seed,
and concurrent requests cannot disturb one another.
"""
from __future__ import annotations

import hashlib
import random
from typing import Sequence, TypeVar

T = TypeVar("T")


def create_seed(seed: str | int) -> int:
    """Create a reproducible integer seed from string or int."""
    if isinstance(seed, int):
        return seed

    hash_bytes = hashlib.sha256(str(seed).encode()).digest()
    return int.from_bytes(hash_bytes[:8], byteorder="big")


class RandomSource:
    """Seedable PRNG wrapper with an unbiased Fisher-Yates shuffle."""

    def __init__(self, seed: str | int | None = None):
        self.seed = seed
        self._rng = random.Random(create_seed(seed) if seed is not None else None)

    def shuffled(self, items: Sequence[T]) -> list[T]:
        """Return a uniformly random permutation; the input is left untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self._rng.randint(0, i)
            result[i], result[j] = result[j], result[i]
        return result

    def choice(self, items: Sequence[T]) -> T:
        return items[self._rng.randrange(len(items))]

    def randrange(self, stop: int) -> int:
        return self._rng.randrange(stop)

    def spawn(self, label: str) -> "RandomSource":
        """
        Derive an independent child source.

        Children of a seeded source are seeded from (parent seed, label), so
        two pools shuffle independently yet identically across runs.
        """
        if self.seed is None:
            return RandomSource(self._rng.getrandbits(64))
        return RandomSource(f"{self.seed}:{label}")
