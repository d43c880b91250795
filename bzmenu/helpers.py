"""Small synchronization and logging helpers shared by bzmenu components."""

from __future__ import annotations

from collections.abc import Callable
import logging
import threading
from typing import Any, cast


class DeviceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with the device alias."""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:  # pragma: no cover - standard logging behavior
        extra = cast(dict[str, Any], self.extra or {})
        device_name = extra.get("device_name") or "Unknown device"
        return f"[{device_name}] {msg}", kwargs


class Flag:
    """Boolean cell shared between tasks and threads.

    A flag has exactly one owner that creates it; other components receive
    the same instance and never keep a copy of its value.
    """

    def __init__(self, value: bool = False) -> None:
        """Initialize the flag.

        Args:
            value: Initial state
        """
        self._lock = threading.Lock()
        self._value = value

    def is_set(self) -> bool:
        """Return the current state."""
        with self._lock:
            return self._value

    def set(self) -> bool:
        """Set the flag.

        Returns:
            True if this call changed the flag from clear to set
        """
        with self._lock:
            changed = not self._value
            self._value = True
            return changed

    def clear(self) -> bool:
        """Clear the flag.

        Returns:
            True if this call changed the flag from set to clear
        """
        with self._lock:
            changed = self._value
            self._value = False
            return changed

    def __bool__(self) -> bool:
        return self.is_set()

    def __repr__(self) -> str:
        return f"Flag({self.is_set()})"


class OnceCallback:
    """Callable wrapper that runs the wrapped callback at most once."""

    def __init__(self, callback: Callable[[], Any] | None) -> None:
        """Initialize the wrapper.

        Args:
            callback: Callback to run; None makes the wrapper start consumed
        """
        self._lock = threading.Lock()
        self._callback = callback

    @property
    def consumed(self) -> bool:
        """Return True once the callback was taken."""
        with self._lock:
            return self._callback is None

    def take(self) -> Callable[[], Any] | None:
        """Remove and return the callback, or None if already taken."""
        with self._lock:
            callback, self._callback = self._callback, None
            return callback

    def __call__(self) -> bool:
        """Run the callback if nobody ran it before.

        Returns:
            True if the callback was invoked by this call
        """
        callback = self.take()
        if callback is None:
            return False
        callback()
        return True
