"""A variable whose changes can be waited on by subscribers."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

__all__ = ["Value", "MonitorVariable", "Subscription"]


@dataclass(frozen=True)
class Value:
    """The last value set; version 0 means the variable was never set."""

    value: Any = None
    version: int = 0


class MonitorVariable:
    """Holds a value and signals subscribers each time it is set."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Any = None
        self._version = 0
        self._changed = threading.Event()

    def set(self, value: Any) -> None:
        """Store a new value and wake everyone waiting on the old version."""
        with self._lock:
            self._value = value
            self._version += 1
            self._changed.set()
            self._changed = threading.Event()

    def subscribe(self) -> Subscription:
        """Create a subscription; it is immediately ready if a value is set."""
        with self._lock:
            if self._version > 0:
                ready = threading.Event()
                ready.set()
            else:
                ready = self._changed
            return Subscription(self, ready)

    def _snapshot(self) -> tuple[Value, threading.Event]:
        with self._lock:
            return Value(self._value, self._version), self._changed

    def _lock_held(self):
        return self._lock


class Subscription:
    """A single reader's view of a monitor variable; not shared across threads."""

    def __init__(self, variable: MonitorVariable, ready: threading.Event) -> None:
        self._variable = variable
        self._ready = ready

    def new_value_ready(self) -> threading.Event:
        """Return an event that is set once a value newer than the last read exists."""
        with self._variable._lock_held():
            return self._ready

    def value(self) -> Value:
        """Read the current value without blocking and mark it as seen."""
        current, changed = self._variable._snapshot()
        self._ready = changed
        return current