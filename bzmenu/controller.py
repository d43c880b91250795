"""Adapter controller: owns the adapter state and the device lists."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from .device import DeviceSnapshot
from .exceptions import DeviceVanished, NoAdapterFound, PropertyReadFailed
from .helpers import Flag

_LOGGER = logging.getLogger(__name__)


class AdapterSession(Protocol):
    """Adapter and device primitives the controller needs from a session."""

    async def adapter_names(self) -> list[str]: ...

    async def adapter_properties(self, adapter: str) -> dict[str, Any]: ...

    async def set_adapter_property(
        self, adapter: str, name: str, value: Any
    ) -> None: ...

    async def device_addresses(self, adapter: str) -> list[str]: ...

    async def device_properties(self, adapter: str, address: str) -> dict[str, Any]: ...


class AdapterController:
    """State of the first Bluetooth adapter and the devices it knows.

    The controller never guesses state: setters only write to the adapter,
    and ``refresh`` must be called to observe the result.
    """

    def __init__(self, session: AdapterSession, name: str) -> None:
        """Initialize the controller for an adapter.

        Use ``initialize`` to build a controller with its first state read.

        Args:
            session: Session primitive used for every adapter access
            name: Adapter name (e.g. hci0)
        """
        self.session = session
        self.name = name
        self.alias = name
        self.address: str | None = None
        self.is_powered = False
        self.is_pairable = False
        self.is_discoverable = False
        self.is_scanning = Flag()
        self._device_lists: tuple[
            tuple[DeviceSnapshot, ...], tuple[DeviceSnapshot, ...]
        ] = ((), ())

    @classmethod
    async def initialize(cls, session: AdapterSession) -> AdapterController:
        """Resolve the first adapter and read its full state.

        Raises:
            NoAdapterFound: If the platform has no adapter
        """
        adapter_names = await session.adapter_names()
        if not adapter_names:
            raise NoAdapterFound()

        controller = cls(session, adapter_names[0])
        properties = await controller._async_read_adapter()
        controller.alias = properties.get("Alias") or controller.name
        controller.address = properties.get("Address")
        if properties.get("Discovering"):
            controller.is_scanning.set()
        await controller._async_load_devices()

        _LOGGER.info("Bluetooth adapter %s initialized", controller.name)
        return controller

    @property
    def paired_devices(self) -> tuple[DeviceSnapshot, ...]:
        """Paired devices sorted by address."""
        return self._device_lists[0]

    @property
    def new_devices(self) -> tuple[DeviceSnapshot, ...]:
        """Visible unpaired devices sorted by address."""
        return self._device_lists[1]

    @property
    def devices(self) -> tuple[DeviceSnapshot, ...]:
        """Paired devices followed by new devices."""
        paired, new = self._device_lists
        return paired + new

    def find_device(self, address: str) -> DeviceSnapshot | None:
        """Return the cached snapshot for an address, if any."""
        address = address.upper()
        for device in self.devices:
            if device.address == address:
                return device
        return None

    async def refresh(self) -> None:
        """Re-read adapter flags and re-enumerate devices."""
        await self._async_read_adapter()
        await self._async_load_devices()

    async def get_device(self, address: str) -> DeviceSnapshot:
        """Build a fresh snapshot of a single device.

        Raises:
            DeviceVanished: If the device is no longer known to the adapter
        """
        properties = await self.session.device_properties(self.name, address)
        return DeviceSnapshot.from_properties(address, properties)

    async def power_on(self) -> None:
        """Power the adapter on."""
        await self.session.set_adapter_property(self.name, "Powered", True)

    async def power_off(self) -> None:
        """Power the adapter off."""
        await self.session.set_adapter_property(self.name, "Powered", False)

    async def set_discoverable(self, discoverable: bool) -> None:
        """Make the adapter visible (or invisible) to other devices."""
        await self.session.set_adapter_property(
            self.name, "Discoverable", discoverable
        )

    async def set_pairable(self, pairable: bool) -> None:
        """Allow (or refuse) incoming pairing requests."""
        await self.session.set_adapter_property(self.name, "Pairable", pairable)

    async def _async_read_adapter(self) -> dict[str, Any]:
        properties = await self.session.adapter_properties(self.name)
        self.is_powered = bool(properties.get("Powered", False))
        self.is_pairable = bool(properties.get("Pairable", False))
        self.is_discoverable = bool(properties.get("Discoverable", False))
        return properties

    async def _async_load_devices(self) -> None:
        # Both lists are replaced by one assignment so readers never see a mix
        self._device_lists = await self._async_enumerate_devices()

    async def _async_enumerate_devices(
        self,
    ) -> tuple[tuple[DeviceSnapshot, ...], tuple[DeviceSnapshot, ...]]:
        paired: list[DeviceSnapshot] = []
        new: list[DeviceSnapshot] = []

        addresses = await self.session.device_addresses(self.name)
        for address in dict.fromkeys(address.upper() for address in addresses):
            try:
                device = await self.get_device(address)
            except (DeviceVanished, PropertyReadFailed) as exc:
                _LOGGER.debug("Skipping device %s: %s", address, exc)
                continue
            if device.is_paired:
                paired.append(device)
            else:
                new.append(device)

        paired.sort(key=lambda device: device.address)
        new.sort(key=lambda device: device.address)
        return tuple(paired), tuple(new)
