"""Pair, connect, disconnect, trust and forget operations on one device."""

from __future__ import annotations

import logging
from typing import Protocol

from .device import DeviceSnapshot
from .helpers import DeviceLoggerAdapter

_LOGGER = logging.getLogger(__name__)


class DeviceSession(Protocol):
    """Device primitives the orchestrator needs from a session."""

    async def pair(self, adapter: str, address: str) -> None: ...

    async def connect(self, adapter: str, address: str) -> None: ...

    async def disconnect(self, adapter: str, address: str) -> None: ...

    async def remove_device(self, adapter: str, address: str) -> None: ...

    async def set_trusted(self, adapter: str, address: str, trusted: bool) -> None: ...


class PairingOrchestrator:
    """Stateless sequencer for device lifecycle operations.

    Every operation makes a single attempt and lets errors propagate
    unchanged. None of them touch cached snapshots; refresh the
    AdapterController afterwards to see the new state.
    """

    def __init__(self, session: DeviceSession, adapter_name: str) -> None:
        """Initialize the orchestrator.

        Args:
            session: Session providing the device primitives
            adapter_name: Adapter the devices belong to, e.g. hci0
        """
        self.session = session
        self.adapter_name = adapter_name

    @staticmethod
    def _logger(device: DeviceSnapshot) -> DeviceLoggerAdapter:
        return DeviceLoggerAdapter(_LOGGER, {"device_name": device.alias})

    async def pair_device(self, device: DeviceSnapshot) -> None:
        """Pair with a device."""
        logger = self._logger(device)
        logger.debug("Initiating pairing with %s", device.address)
        await self.session.pair(self.adapter_name, device.address)
        logger.info("Successfully paired with %s", device.address)

    async def connect_device(self, device: DeviceSnapshot) -> None:
        """Connect to a device, pairing first if it is not paired yet.

        A pairing failure is raised before any connection attempt.
        """
        if not device.is_paired:
            await self.pair_device(device)

        logger = self._logger(device)
        logger.debug("Connecting to %s", device.address)
        await self.session.connect(self.adapter_name, device.address)
        logger.info("Successfully connected to %s", device.address)

    async def disconnect_device(self, device: DeviceSnapshot) -> None:
        """Disconnect from a device."""
        logger = self._logger(device)
        logger.debug("Disconnecting from %s", device.address)
        await self.session.disconnect(self.adapter_name, device.address)
        logger.info("Successfully disconnected from %s", device.address)

    async def forget_device(self, device: DeviceSnapshot) -> None:
        """Remove a device and its pairing from the adapter."""
        logger = self._logger(device)
        logger.debug("Removing device %s", device.address)
        await self.session.remove_device(self.adapter_name, device.address)
        logger.info("Successfully removed device %s", device.address)

    async def trust_device(self, device: DeviceSnapshot, trusted: bool = True) -> None:
        """Set or revoke the trusted flag of a device."""
        logger = self._logger(device)
        logger.debug(
            "%s trust for %s", "Enabling" if trusted else "Revoking", device.address
        )
        await self.session.set_trusted(self.adapter_name, device.address, trusted)
        logger.info(
            "Successfully %s %s",
            "trusted" if trusted else "revoked trust for",
            device.address,
        )
