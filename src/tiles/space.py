"""Used-space counter shared by a store's writers and its trimmer."""

from __future__ import annotations

import threading


class UsedSpaceCounter:
    """Thread-safe byte counter.

    Advisory only: it decides whether a trim is needed, while the trim itself
    works from a fresh directory walk. Drift against the real disk usage is
    corrected by the next full scan.
    """

    def __init__(self, initial: int = 0) -> None:
        self._value = initial
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def add(self, amount: int) -> int:
        """Add ``amount`` bytes (may be negative) and return the new value."""
        with self._lock:
            self._value += amount
            return self._value

    def subtract(self, amount: int) -> int:
        with self._lock:
            self._value -= amount
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def __repr__(self) -> str:
        return f'UsedSpaceCounter({self.value})'
