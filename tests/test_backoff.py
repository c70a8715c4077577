from __future__ import annotations

import random

import pytest

from keyindex.backoff import Backoff


def test_delay_doubles_from_base() -> None:
    backoff = Backoff(base_seconds=0.1, max_seconds=30.0)
    assert [backoff.delay(n) for n in range(5)] == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6])


def test_delay_is_capped() -> None:
    backoff = Backoff(base_seconds=0.1, max_seconds=30.0)
    assert backoff.delay(8) == pytest.approx(25.6)
    assert backoff.delay(9) == 30.0
    assert backoff.delay(50) == 30.0


def test_huge_attempt_numbers_do_not_overflow() -> None:
    assert Backoff().delay(100_000) == 30.0


def test_delay_without_jitter_is_deterministic_and_non_decreasing() -> None:
    backoff = Backoff()
    delays = [backoff.delay(n) for n in range(40)]
    assert delays == [backoff.delay(n) for n in range(40)]
    assert delays == sorted(delays)


def test_jitter_stays_within_bounds() -> None:
    backoff = Backoff(base_seconds=1.0, max_seconds=10.0, jitter=0.5, rng=random.Random(7))
    for attempt in range(6):
        plain = min(2 ** attempt, 10.0)
        delay = backoff.delay(attempt)
        assert plain <= delay <= min(plain * 1.5, 10.0)


def test_seeded_jitter_is_reproducible() -> None:
    first = Backoff(jitter=0.2, rng=random.Random(42))
    second = Backoff(jitter=0.2, rng=random.Random(42))
    assert [first.delay(n) for n in range(8)] == [second.delay(n) for n in range(8)]


def test_negative_attempt_rejected() -> None:
    with pytest.raises(ValueError):
        Backoff().delay(-1)


def test_negative_settings_rejected() -> None:
    with pytest.raises(ValueError):
        Backoff(base_seconds=-1)
    with pytest.raises(ValueError):
        Backoff(jitter=-0.1)
