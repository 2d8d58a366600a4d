"""Sliding-window counter tests."""

from __future__ import annotations

from smartlinker.engine.ratelimit import SlidingWindowCounter


class Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_counter_blocks_after_limit_and_recovers(local_backend):
    clock = Clock(100.0)
    counter = SlidingWindowCounter(local_backend, limit=2, window=60, clock=clock)

    assert counter.hit("calls")
    clock.now += 10
    assert counter.hit("calls")
    assert not counter.hit("calls")
    assert counter.remaining("calls") == 0

    # The first hit leaves the window
    clock.now = 161.0
    assert counter.remaining("calls") == 1
    assert counter.hit("calls")
    assert not counter.hit("calls")


def test_keys_are_independent(local_backend):
    counter = SlidingWindowCounter(local_backend, limit=1, window=60)
    assert counter.hit("a")
    assert counter.hit("b")
    assert not counter.hit("a")
