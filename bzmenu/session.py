"""BlueZ session primitive backed by dbus_next.

This is the only module that talks to BlueZ directly. Every D-Bus failure is
translated into a typed bzmenu error here, so the rest of the package never
sees a raw DBusError.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any, cast

from dbus_next import BusType, Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError, InterfaceNotFoundError

from .const import (
    ADAPTER_INTERFACE,
    AGENT_CAPABILITY,
    AGENT_MANAGER_INTERFACE,
    AGENT_PATH,
    BATTERY_INTERFACE,
    BLUEZ_ROOT_PATH,
    BLUEZ_SERVICE,
    DEVICE_INTERFACE,
    OBJECT_MANAGER_INTERFACE,
    PROPERTIES_INTERFACE,
)
from .exceptions import (
    AgentRegistrationFailed,
    BzMenuError,
    ConnectionFailed,
    DeviceOutOfRange,
    DeviceVanished,
    DisconnectionFailed,
    DiscoveryFailed,
    ForgetFailed,
    NoAdapterFound,
    PairingFailed,
    PropertyReadFailed,
    PropertyWriteFailed,
    TrustFailed,
)

if TYPE_CHECKING:
    from .agent import PairingAgent

_LOGGER = logging.getLogger(__name__)

ADAPTER_PROPERTY_SIGNATURES = {
    "Alias": "s",
    "Powered": "b",
    "Discoverable": "b",
    "DiscoverableTimeout": "u",
    "Pairable": "b",
    "PairableTimeout": "u",
}

UNKNOWN_OBJECT_ERRORS = frozenset(
    {
        "org.freedesktop.DBus.Error.UnknownObject",
        "org.freedesktop.DBus.Error.UnknownInterface",
        "org.freedesktop.DBus.Error.UnknownMethod",
        "org.bluez.Error.DoesNotExist",
    }
)

# Error names BlueZ uses for a failed connection page and the reason codes
# it reports for a peer that never answered.
CONNECT_FAILURE_ERRORS = frozenset(
    {
        "org.bluez.Error.Failed",
        "org.bluez.Error.ConnectionAttemptFailed",
    }
)
PAGE_TIMEOUT_REASONS = ("page timeout", "page-timeout", "host is down")


def is_out_of_range(exc: DBusError) -> bool:
    """Return True if a connect error means the peer did not respond."""

    if exc.type not in CONNECT_FAILURE_ERRORS:
        return False
    reason = (exc.text or "").lower()
    return any(marker in reason for marker in PAGE_TIMEOUT_REASONS)


def device_path(adapter: str, address: str) -> str:
    """Return the BlueZ object path of a device on an adapter."""

    return f"{BLUEZ_ROOT_PATH}/{adapter}/dev_{address.upper().replace(':', '_')}"


def adapter_path(adapter: str) -> str:
    """Return the BlueZ object path of an adapter."""

    return f"{BLUEZ_ROOT_PATH}/{adapter}"


class DiscoverySession:
    """Handle for an active discovery on one adapter.

    Releasing stops discovery. Release is idempotent so the natural expiry
    of a scan and an explicit cancel can both call it.
    """

    def __init__(self, adapter: Any, adapter_name: str) -> None:
        """Initialize the handle.

        Args:
            adapter: Adapter1 proxy interface that started discovery
            adapter_name: Adapter name for logging
        """
        self._adapter = adapter
        self.adapter_name = adapter_name
        self._released = False

    @property
    def released(self) -> bool:
        """Return True once the handle was released."""
        return self._released

    async def release(self) -> bool:
        """Stop discovery unless it was already stopped.

        Returns:
            True if this call stopped discovery
        """
        if self._released:
            return False
        self._released = True
        try:
            await self._adapter.call_stop_discovery()
        except DBusError as exc:
            # BlueZ reports NotReady/Failed when discovery already ended
            _LOGGER.debug(
                "Stopping discovery on %s reported: %s", self.adapter_name, exc
            )
        else:
            _LOGGER.debug("Discovery stopped on %s", self.adapter_name)
        return True


class BluezSession:
    """Async access to BlueZ adapters and devices over the system bus."""

    def __init__(self, bus: MessageBus | None = None) -> None:
        """Initialize the session.

        Args:
            bus: Already connected message bus, mainly for tests
        """
        self._bus = bus
        self._object_manager: Any = None
        self._agent_manager: Any = None
        self._agent_registered = False

    async def _async_get_bus(self) -> MessageBus:
        """Return a cached D-Bus system bus connection."""
        if self._bus is None:
            try:
                self._bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
                _LOGGER.debug("Connected to D-Bus system bus")
            except (DBusError, OSError) as exc:
                raise BzMenuError("Failed to connect to D-Bus system bus") from exc
            self._object_manager = None
            self._agent_manager = None
        return self._bus

    async def _async_get_object_manager(self) -> Any:
        """Return the shared ObjectManager interface."""
        if self._object_manager is None:
            bus = await self._async_get_bus()
            introspection = await bus.introspect(BLUEZ_SERVICE, "/")
            proxy = bus.get_proxy_object(BLUEZ_SERVICE, "/", introspection)
            self._object_manager = self._proxy_interface(
                proxy, OBJECT_MANAGER_INTERFACE
            )
        return self._object_manager

    async def _async_get_interfaces(
        self, path: str, interface: str
    ) -> tuple[Any, Any]:
        """Return the given interface and the Properties interface for a path."""
        bus = await self._async_get_bus()
        introspection = await bus.introspect(BLUEZ_SERVICE, path)
        proxy = bus.get_proxy_object(BLUEZ_SERVICE, path, introspection)
        return (
            self._proxy_interface(proxy, interface),
            self._proxy_interface(proxy, PROPERTIES_INTERFACE),
        )

    async def _async_get_device(self, adapter: str, address: str) -> tuple[Any, Any]:
        """Return Device1 and Properties interfaces, or raise DeviceVanished."""
        try:
            return await self._async_get_interfaces(
                device_path(adapter, address), DEVICE_INTERFACE
            )
        except InterfaceNotFoundError as exc:
            raise DeviceVanished(address, str(exc)) from exc
        except DBusError as exc:
            raise DeviceVanished(address, exc.text) from exc

    async def _async_get_adapter(self, adapter: str) -> tuple[Any, Any]:
        """Return Adapter1 and Properties interfaces for an adapter name."""
        try:
            return await self._async_get_interfaces(
                adapter_path(adapter), ADAPTER_INTERFACE
            )
        except (DBusError, InterfaceNotFoundError) as exc:
            raise NoAdapterFound() from exc

    @staticmethod
    def _proxy_interface(proxy_obj: Any, interface: str) -> Any:
        """Return a proxy interface with loose typing for dbus_next."""

        return cast(Any, proxy_obj.get_interface(interface))

    @staticmethod
    def _variant_value(value: Any) -> Any:
        """Unwrap Variant objects returned by dbus_next."""
        return value.value if hasattr(value, "value") else value

    def _unwrap_properties(self, properties: dict[str, Any]) -> dict[str, Any]:
        return {name: self._variant_value(value) for name, value in properties.items()}

    async def _async_managed_objects(self) -> dict[str, Any]:
        obj_manager = await self._async_get_object_manager()
        return await obj_manager.call_get_managed_objects()

    async def open(self) -> None:
        """Connect to the system bus ahead of the first request."""
        await self._async_get_bus()

    async def close(self) -> None:
        """Unregister the agent and drop the bus connection."""
        await self.unregister_agent()
        if self._bus is not None:
            self._bus.disconnect()
            self._bus = None
        self._object_manager = None
        self._agent_manager = None

    # ------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------
    async def adapter_names(self) -> list[str]:
        """Return the names (hci0, hci1, ...) of all adapters, sorted."""
        try:
            objects = await self._async_managed_objects()
        except DBusError as exc:
            raise NoAdapterFound() from exc
        return sorted(
            path.rsplit("/", maxsplit=1)[-1]
            for path, interfaces in objects.items()
            if ADAPTER_INTERFACE in interfaces
        )

    async def adapter_properties(self, adapter: str) -> dict[str, Any]:
        """Return all Adapter1 properties of an adapter."""
        _, adapter_props = await self._async_get_adapter(adapter)
        try:
            properties = await adapter_props.call_get_all(ADAPTER_INTERFACE)
        except DBusError as exc:
            raise PropertyReadFailed(adapter, ADAPTER_INTERFACE, exc.text) from exc
        return self._unwrap_properties(properties)

    async def set_adapter_property(self, adapter: str, name: str, value: Any) -> None:
        """Write one Adapter1 property and wait for BlueZ to acknowledge it."""
        _, adapter_props = await self._async_get_adapter(adapter)
        signature = ADAPTER_PROPERTY_SIGNATURES[name]
        try:
            await adapter_props.call_set(
                ADAPTER_INTERFACE, name, Variant(signature, value)
            )
        except DBusError as exc:
            raise PropertyWriteFailed(adapter, name, exc.text) from exc
        _LOGGER.debug("Adapter %s: %s set to %s", adapter, name, value)

    async def start_discovery(self, adapter: str) -> DiscoverySession:
        """Start discovery on an adapter and return its release handle."""
        adapter_iface, _ = await self._async_get_adapter(adapter)
        try:
            await adapter_iface.call_start_discovery()
        except DBusError as exc:
            raise DiscoveryFailed(adapter, exc.text) from exc
        _LOGGER.debug("Discovery started on %s", adapter)
        return DiscoverySession(adapter_iface, adapter)

    # ------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------
    async def device_addresses(self, adapter: str) -> list[str]:
        """Return addresses of every device BlueZ knows on an adapter."""
        prefix = f"{adapter_path(adapter)}/"
        try:
            objects = await self._async_managed_objects()
        except DBusError as exc:
            raise PropertyReadFailed(adapter, "devices", exc.text) from exc
        addresses: list[str] = []
        for path, interfaces in objects.items():
            device_props = interfaces.get(DEVICE_INTERFACE)
            if not device_props or not path.startswith(prefix):
                continue
            address = self._variant_value(device_props.get("Address"))
            if address:
                addresses.append(address.upper())
        return addresses

    async def device_properties(self, adapter: str, address: str) -> dict[str, Any]:
        """Return all Device1 properties plus the battery level if exposed."""
        _, device_props = await self._async_get_device(adapter, address)
        try:
            properties = await device_props.call_get_all(DEVICE_INTERFACE)
        except DBusError as exc:
            if exc.type in UNKNOWN_OBJECT_ERRORS:
                raise DeviceVanished(address, exc.text) from exc
            raise PropertyReadFailed(address, DEVICE_INTERFACE, exc.text) from exc
        result = self._unwrap_properties(properties)

        try:
            percentage = await device_props.call_get(BATTERY_INTERFACE, "Percentage")
        except DBusError:
            result["BatteryPercentage"] = None
        else:
            result["BatteryPercentage"] = self._variant_value(percentage)
        return result

    async def set_trusted(self, adapter: str, address: str, trusted: bool) -> None:
        """Write the Trusted property of a device."""
        _, device_props = await self._async_get_device(adapter, address)
        try:
            await device_props.call_set(
                DEVICE_INTERFACE, "Trusted", Variant("b", trusted)
            )
        except DBusError as exc:
            raise TrustFailed(address, exc.text) from exc

    async def pair(self, adapter: str, address: str) -> None:
        """Run the BlueZ pairing procedure with a device."""
        device, _ = await self._async_get_device(adapter, address)
        try:
            await device.call_pair()
        except DBusError as exc:
            raise PairingFailed(address, exc.text) from exc

    async def connect(self, adapter: str, address: str) -> None:
        """Connect all auto-connectable profiles of a device."""
        device, _ = await self._async_get_device(adapter, address)
        try:
            await device.call_connect()
        except DBusError as exc:
            if is_out_of_range(exc):
                raise DeviceOutOfRange(address, exc.text) from exc
            raise ConnectionFailed(address, exc.text) from exc

    async def disconnect(self, adapter: str, address: str) -> None:
        """Disconnect a device."""
        device, _ = await self._async_get_device(adapter, address)
        try:
            await device.call_disconnect()
        except DBusError as exc:
            raise DisconnectionFailed(address, exc.text) from exc

    async def remove_device(self, adapter: str, address: str) -> None:
        """Remove a device and its pairing information from the adapter."""
        adapter_iface, _ = await self._async_get_adapter(adapter)
        try:
            await adapter_iface.call_remove_device(device_path(adapter, address))
        except DBusError as exc:
            raise ForgetFailed(address, exc.text) from exc

    # ------------------------------------------------------------
    # Pairing agent
    # ------------------------------------------------------------
    async def register_agent(self, agent: PairingAgent) -> None:
        """Export the agent on the bus and make it BlueZ's default agent."""
        from .agent import BluezAgentInterface

        bus = await self._async_get_bus()
        try:
            bus.export(AGENT_PATH, BluezAgentInterface(agent))
        except ValueError as exc:
            raise AgentRegistrationFailed(
                f"Failed to export pairing agent: {exc}"
            ) from exc

        try:
            introspection = await bus.introspect(BLUEZ_SERVICE, BLUEZ_ROOT_PATH)
            proxy_obj = bus.get_proxy_object(
                BLUEZ_SERVICE, BLUEZ_ROOT_PATH, introspection
            )
            agent_manager = self._proxy_interface(proxy_obj, AGENT_MANAGER_INTERFACE)
        except (DBusError, InterfaceNotFoundError) as exc:
            bus.unexport(AGENT_PATH)
            raise AgentRegistrationFailed("Failed to get BlueZ agent manager") from exc

        try:
            await agent_manager.call_register_agent(AGENT_PATH, AGENT_CAPABILITY)
        except DBusError as exc:
            _LOGGER.warning("Failed to register agent (may already exist): %s", exc)
            with contextlib.suppress(DBusError):
                await agent_manager.call_unregister_agent(AGENT_PATH)
            try:
                await agent_manager.call_register_agent(AGENT_PATH, AGENT_CAPABILITY)
            except DBusError as retry_exc:
                bus.unexport(AGENT_PATH)
                raise AgentRegistrationFailed(
                    f"Failed to register pairing agent: {retry_exc.text}"
                ) from retry_exc

        try:
            await agent_manager.call_request_default_agent(AGENT_PATH)
        except DBusError as exc:
            raise AgentRegistrationFailed(
                f"Failed to set pairing agent as default agent: {exc.text}"
            ) from exc

        self._agent_manager = agent_manager
        self._agent_registered = True
        _LOGGER.debug("Pairing agent registered at %s", AGENT_PATH)

    async def unregister_agent(self) -> None:
        """Unregister the agent if it was registered."""
        if not self._agent_registered:
            return
        self._agent_registered = False
        with contextlib.suppress(DBusError):
            await self._agent_manager.call_unregister_agent(AGENT_PATH)
        if self._bus is not None:
            self._bus.unexport(AGENT_PATH)
        _LOGGER.debug("Pairing agent unregistered")

