from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitState:
    last_limited_at: float | None = None
    reset_at: float | None = None


class RateLimitTracker:
    """
    Process-wide record of the most recent credential-level rate limit.

    Owned by one ResilientInvoker and injected through its constructor.
    Timestamps come from `clock` (wall-clock seconds by default). When a
    reset time is known it decides the cooldown on its own; otherwise the
    cooldown runs `default_cooldown_seconds` from the last limit.
    """

    def __init__(self, *, default_cooldown_seconds: float = 60.0, clock: Callable[[], float] | None = None):
        self._default_cooldown = max(0.0, float(default_cooldown_seconds))
        self._clock: Callable[[], float] = clock or time.time
        self._lock = threading.Lock()
        self._state = RateLimitState()

    @property
    def state(self) -> RateLimitState:
        with self._lock:
            return self._state

    def record(self, retry_after_seconds: float | None = None) -> RateLimitState:
        now = self._clock()
        reset_at = now + retry_after_seconds if retry_after_seconds is not None else None
        with self._lock:
            previous = self._state.reset_at
            # Keep the later reset when several providers report one.
            if reset_at is not None and previous is not None:
                reset_at = max(reset_at, previous)
            # A limit without a reset never shortens a known longer one.
            elif reset_at is None and previous is not None and previous > now + self._default_cooldown:
                reset_at = previous
            self._state = RateLimitState(last_limited_at=now, reset_at=reset_at)
            return self._state

    def clear(self) -> None:
        with self._lock:
            self._state = RateLimitState()

    def remaining_seconds(self) -> float | None:
        now = self._clock()
        with self._lock:
            state = self._state
        if state.reset_at is not None:
            remaining = state.reset_at - now
        elif state.last_limited_at is not None:
            remaining = state.last_limited_at + self._default_cooldown - now
        else:
            return None
        return remaining if remaining > 0 else None

    def in_cooldown(self) -> bool:
        return self.remaining_seconds() is not None
