# tagsearch/state.py
"""
Shared search state: the only channel between a running search and the UI.

The value is one of Idle / InProgress / Done and is always replaced as a
whole. Every submission bumps a generation counter; a search publishes with
the generation it was started under, and publishes from a superseded
generation are dropped instead of overwriting newer state.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from .config import IDLE_MESSAGE


@dataclass(frozen=True, slots=True)
class Idle:
    """Nothing running. Carries the text to show (hint or error) and, for parse errors, the span to select."""
    message: str
    error_range: Optional[Tuple[int, int]] = None


@dataclass(frozen=True, slots=True)
class InProgress:
    processed: int
    total: int

    @property
    def fraction(self) -> float:
        return self.processed / self.total if self.total else 1.0


@dataclass(frozen=True, slots=True)
class Done:
    """Finished search: post-index positions in display order plus the one being shown."""
    results: Tuple[int, ...]
    cursor: int = 0

    @property
    def current(self) -> Optional[int]:
        if not self.results:
            return None
        return self.results[self.cursor]


SearchState = Union[Idle, InProgress, Done]


class SearchStateCell:
    """Mutex-guarded SearchState plus the generation counter. One per engine session."""

    def __init__(self, initial: Optional[SearchState] = None) -> None:
        self._cond = threading.Condition()
        self._state: SearchState = initial if initial is not None else Idle(IDLE_MESSAGE)
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._cond:
            return self._generation

    # ------------- readers -------------

    def get(self) -> SearchState:
        with self._cond:
            return self._state

    def try_get(self) -> Optional[SearchState]:
        """Non-blocking read; None if a writer holds the lock right now."""
        if not self._cond.acquire(blocking=False):
            return None
        try:
            return self._state
        finally:
            self._cond.release()

    def wait(self, timeout: Optional[float] = None) -> SearchState:
        """Block until no search is in progress (or timeout) and return the state."""
        with self._cond:
            self._cond.wait_for(lambda: not isinstance(self._state, InProgress), timeout)
            return self._state

    # ------------- writers -------------

    def begin(self, total: int) -> int:
        """Start a new generation in InProgress(0, total); returns the generation to publish with."""
        with self._cond:
            self._generation += 1
            self._state = InProgress(0, total)
            self._cond.notify_all()
            return self._generation

    def fail(self, message: str, error_range: Optional[Tuple[int, int]] = None) -> int:
        """Start a new generation that is immediately an error; anything still running is now stale."""
        with self._cond:
            self._generation += 1
            self._state = Idle(message, error_range)
            self._cond.notify_all()
            return self._generation

    def publish(self, generation: int, state: SearchState) -> bool:
        """Replace the state if `generation` is still current. Returns False for a stale publish."""
        with self._cond:
            if generation != self._generation:
                return False
            self._state = state
            self._cond.notify_all()
            return True

    def step(self, delta: int) -> bool:
        """Move the Done cursor by delta, clamped to the results. False if there is nothing to move."""
        with self._cond:
            state = self._state
            if not isinstance(state, Done) or not state.results:
                return False
            cursor = min(max(state.cursor + delta, 0), len(state.results) - 1)
            if cursor == state.cursor:
                return False
            self._state = replace(state, cursor=cursor)
            return True
