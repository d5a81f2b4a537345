"""Tests for the seeded generator."""
import pytest

from patchsandbox.rng import LinearCongruentialGenerator


def test_known_sequence_for_default_seed() -> None:
    rng = LinearCongruentialGenerator(12345)
    assert rng.next() == pytest.approx(96382 / 233280)
    assert rng.next() == pytest.approx(3239 / 233280)


def test_same_seed_same_sequence() -> None:
    a = LinearCongruentialGenerator(7)
    b = LinearCongruentialGenerator(7)
    assert [a.next() for _ in range(50)] == [b.next() for _ in range(50)]


def test_values_in_unit_interval() -> None:
    rng = LinearCongruentialGenerator(1)
    assert all(0.0 <= rng.next() < 1.0 for _ in range(1000))


def test_different_seeds_diverge() -> None:
    assert LinearCongruentialGenerator(1).next() != LinearCongruentialGenerator(2).next()
