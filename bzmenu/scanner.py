"""Time-boxed device discovery."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Protocol

from .const import DISCOVERY_POLL_INTERVAL
from .helpers import Flag

_LOGGER = logging.getLogger(__name__)


class DiscoveryHandle(Protocol):
    """Running discovery returned by the session."""

    async def release(self) -> bool: ...


class DiscoverySource(Protocol):
    """Session primitive able to start discovery on an adapter."""

    async def start_discovery(self, adapter: str) -> DiscoveryHandle: ...


class DiscoveryScanner:
    """Runs one discovery session at a time for a fixed duration.

    The scanning flag belongs to the AdapterController; the scanner only
    holds a reference to it.
    """

    def __init__(
        self, session: DiscoverySource, adapter_name: str, is_scanning: Flag
    ) -> None:
        """Initialize the scanner.

        Args:
            session: Session primitive used to start discovery
            adapter_name: Adapter to scan on
            is_scanning: Shared flag, set while a discovery session runs
        """
        self.session = session
        self.adapter_name = adapter_name
        self.is_scanning = is_scanning
        self._handle: DiscoveryHandle | None = None
        self._timer_task: asyncio.Task | None = None

    @property
    def is_discovery_completed(self) -> bool:
        """Return True when no discovery session is active."""
        return not self.is_scanning.is_set()

    async def start(self, duration: float) -> bool:
        """Start discovery for ``duration`` seconds.

        Returns:
            False if a discovery session was already active, True otherwise
        """
        if self.is_scanning.is_set():
            _LOGGER.debug("Bluetooth discovery already in progress")
            return False

        _LOGGER.debug("Starting Bluetooth discovery for %s seconds", duration)
        handle = await self.session.start_discovery(self.adapter_name)
        if not self.is_scanning.set():
            # Someone else started scanning while discovery was being set up
            await handle.release()
            return False

        self._handle = handle
        self._timer_task = asyncio.create_task(self._expire(duration, handle))
        return True

    async def stop(self) -> bool:
        """Cancel the active discovery session early.

        Returns:
            False if nothing was scanning, True otherwise
        """
        if not self.is_scanning.is_set():
            return False

        timer_task, self._timer_task = self._timer_task, None
        if timer_task is not None and timer_task is not asyncio.current_task():
            timer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer_task

        await self._finish(self._handle)
        _LOGGER.debug("Bluetooth discovery cancelled")
        return True

    async def wait_for_completion(
        self, poll_interval: float = DISCOVERY_POLL_INTERVAL
    ) -> None:
        """Wait until the scanning flag is cleared."""
        if not self.is_scanning.is_set():
            return

        _LOGGER.debug("Waiting for discovery to complete")
        while self.is_scanning.is_set():
            await asyncio.sleep(poll_interval)
        _LOGGER.debug("Discovery process completed")

    async def _expire(self, duration: float, handle: DiscoveryHandle) -> None:
        await asyncio.sleep(duration)
        if self._handle is handle:
            self._timer_task = None
        await self._finish(handle)
        _LOGGER.debug("Discovery completed after %s seconds", duration)

    async def _finish(self, handle: DiscoveryHandle | None) -> None:
        """Clear the flag and release the handle; safe to call repeatedly."""
        self.is_scanning.clear()
        if handle is None:
            return
        if self._handle is handle:
            self._handle = None
        await handle.release()
