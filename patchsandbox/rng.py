"""
Seeded pseudo-randomness for the sandbox.

The simulation never touches the `random` module: every "random" outcome
comes from a linear congruential generator seeded from configuration, so a
run with the same seed replays byte for byte.
"""
from typing import Protocol


class RandomSource(Protocol):
    def next(self) -> float:
        """A float in [0, 1)."""
        ...


class LinearCongruentialGenerator:
    MULTIPLIER = 9301
    INCREMENT  = 49297
    MODULUS    = 233280

    def __init__(self, seed: int):
        self.seed = seed
        self._state = seed

    def next(self) -> float:
        self._state = (self._state * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self._state / self.MODULUS
