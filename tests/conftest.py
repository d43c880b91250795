"""Fixtures for bzmenu tests."""
from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from bzmenu.exceptions import DeviceVanished, NoAdapterFound, PropertyWriteFailed

PHONE_ADDRESS = "AA:BB:CC:DD:EE:01"
MOUSE_ADDRESS = "AA:BB:CC:DD:EE:02"
HEADSET_ADDRESS = "11:22:33:44:55:66"


class FakeDiscovery:
    """Discovery handle that counts releases."""

    def __init__(self) -> None:
        self.release_calls = 0
        self.released = False

    async def release(self) -> bool:
        self.release_calls += 1
        if self.released:
            return False
        self.released = True
        return True


class FakeSession:
    """In-memory stand-in for BluezSession."""

    def __init__(self) -> None:
        self.adapters: dict[str, dict[str, Any]] = {
            "hci0": {
                "Address": "00:1A:7D:DA:71:13",
                "Alias": "laptop",
                "Powered": True,
                "Pairable": True,
                "Discoverable": False,
                "Discovering": False,
            }
        }
        self.devices: dict[str, dict[str, Any]] = {}
        self.discoveries: list[FakeDiscovery] = []
        self.agent: Any = None
        self.calls: list[tuple[str, str]] = []
        self.pair = AsyncMock(side_effect=self._pair)
        self.connect = AsyncMock(side_effect=self._connect)
        self.disconnect = AsyncMock(side_effect=self._disconnect)
        self.remove_device = AsyncMock(side_effect=self._remove_device)
        self.set_trusted = AsyncMock(side_effect=self._set_trusted)

    def add_device(self, address: str, **properties: Any) -> None:
        """Register a device with sensible defaults."""
        props = {
            "Address": address,
            "Alias": address,
            "Paired": False,
            "Trusted": False,
            "Connected": False,
            "BatteryPercentage": None,
        }
        props.update(properties)
        self.devices[address] = props

    async def adapter_names(self) -> list[str]:
        return sorted(self.adapters)

    async def adapter_properties(self, adapter: str) -> dict[str, Any]:
        if adapter not in self.adapters:
            raise NoAdapterFound()
        return dict(self.adapters[adapter])

    async def set_adapter_property(self, adapter: str, name: str, value: Any) -> None:
        if name not in ("Powered", "Pairable", "Discoverable", "Alias"):
            raise PropertyWriteFailed(adapter, name, "read-only")
        self.adapters[adapter][name] = value

    async def start_discovery(self, adapter: str) -> FakeDiscovery:
        discovery = FakeDiscovery()
        self.discoveries.append(discovery)
        return discovery

    async def device_addresses(self, adapter: str) -> list[str]:
        return list(self.devices)

    async def device_properties(self, adapter: str, address: str) -> dict[str, Any]:
        if address not in self.devices:
            raise DeviceVanished(address, "org.freedesktop.DBus.Error.UnknownObject")
        return dict(self.devices[address])

    async def _pair(self, adapter: str, address: str) -> None:
        self.calls.append(("pair", address))
        self.devices[address]["Paired"] = True

    async def _connect(self, adapter: str, address: str) -> None:
        self.calls.append(("connect", address))
        self.devices[address]["Connected"] = True

    async def _disconnect(self, adapter: str, address: str) -> None:
        self.calls.append(("disconnect", address))
        self.devices[address]["Connected"] = False

    async def _remove_device(self, adapter: str, address: str) -> None:
        self.calls.append(("remove", address))
        self.devices.pop(address, None)

    async def _set_trusted(self, adapter: str, address: str, trusted: bool) -> None:
        self.calls.append(("trust" if trusted else "untrust", address))
        self.devices[address]["Trusted"] = trusted

    async def register_agent(self, agent: Any) -> None:
        self.agent = agent


@pytest.fixture
def fake_session() -> FakeSession:
    """Return a session with one powered adapter and three devices."""
    session = FakeSession()
    session.add_device(
        PHONE_ADDRESS, Alias="Pixel", Paired=True, Trusted=True, Class=0x5A020C
    )
    session.add_device(MOUSE_ADDRESS, Alias="MX Master", Class=0x0508)
    session.add_device(
        HEADSET_ADDRESS,
        Alias="Headset",
        Paired=True,
        Connected=True,
        Icon="audio-headset",
        BatteryPercentage=80,
    )
    return session


@pytest.fixture
def mock_notifier() -> MagicMock:
    """Create a mock notification sink."""
    notifier = MagicMock()
    notifier.show = AsyncMock(return_value=1)
    notifier.close = AsyncMock()
    notifier.send_progress_notification = AsyncMock(return_value=7)
    return notifier


@pytest.fixture
def mock_menu() -> MagicMock:
    """Create a mock Menu; each test scripts the answers it needs."""
    from bzmenu.menu import Menu

    menu = MagicMock()
    menu.show_main_menu = AsyncMock(return_value=None)
    menu.show_device_options = AsyncMock(return_value=None)
    menu.show_settings_menu = AsyncMock(return_value=None)
    menu.prompt_enable_adapter = AsyncMock(return_value=None)
    menu.get_paired_device_options = MagicMock(
        side_effect=Menu.get_paired_device_options
    )
    return menu
