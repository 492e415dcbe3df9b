"""Seeded random number provider.

Every decision point derives its own generator from a structured seed string
(``"{user_id}:{purpose}:{counter}"``) so that any single roll can be replayed
without replaying the rolls that came before it.
"""

from __future__ import annotations

import random
from typing import Protocol


class RandomSource(Protocol):
    def next(self) -> float: ...


class SeededRandom:
    """A deterministic stream of floats in ``[0, 1)`` for one seed."""

    def __init__(self, seed: str):
        self.seed = seed
        self._rng = random.Random(seed)

    def next(self) -> float:
        return self._rng.random()

    def __repr__(self):
        return f"<SeededRandom seed={self.seed!r}>"


class SeededRandomFactory:
    def create(self, seed: str) -> SeededRandom:
        return SeededRandom(seed)


def build_seed(user_id: str, purpose: str, *parts) -> str:
    """Compose the seed for one decision point.

    >>> build_seed("u1", "battle", 3, 2)
    'u1:battle:3:2'
    """
    return ":".join([str(user_id), purpose, *(str(p) for p in parts)])


__all__ = ["RandomSource", "SeededRandom", "SeededRandomFactory", "build_seed"]
