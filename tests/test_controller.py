"""Test the adapter controller."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from bzmenu.controller import AdapterController
from bzmenu.device import DeviceType
from bzmenu.exceptions import DeviceVanished, NoAdapterFound, PropertyWriteFailed

from .conftest import HEADSET_ADDRESS, MOUSE_ADDRESS, PHONE_ADDRESS


class TestInitialize:
    """Tests for AdapterController.initialize."""

    @pytest.mark.asyncio
    async def test_reads_adapter_and_devices(self, fake_session) -> None:
        """Test the first adapter is resolved with its state and devices."""
        fake_session.adapters["hci1"] = dict(fake_session.adapters["hci0"])

        controller = await AdapterController.initialize(fake_session)

        assert controller.name == "hci0"
        assert controller.alias == "laptop"
        assert controller.address == "00:1A:7D:DA:71:13"
        assert controller.is_powered is True
        assert controller.is_pairable is True
        assert controller.is_discoverable is False
        assert controller.is_scanning.is_set() is False
        assert len(controller.devices) == 3

    @pytest.mark.asyncio
    async def test_no_adapter(self, fake_session) -> None:
        """Test NoAdapterFound when the platform has no adapter."""
        fake_session.adapters.clear()

        with pytest.raises(NoAdapterFound):
            await AdapterController.initialize(fake_session)

    @pytest.mark.asyncio
    async def test_scanning_flag_seeded_from_discovering(self, fake_session) -> None:
        """Test an adapter that is already discovering starts as scanning."""
        fake_session.adapters["hci0"]["Discovering"] = True

        controller = await AdapterController.initialize(fake_session)

        assert controller.is_scanning.is_set() is True


class TestDeviceLists:
    """Tests for device enumeration."""

    @pytest.mark.asyncio
    async def test_partition_and_order(self, fake_session) -> None:
        """Test devices are split by paired state and sorted by address."""
        controller = await AdapterController.initialize(fake_session)

        assert [d.address for d in controller.paired_devices] == [
            HEADSET_ADDRESS,
            PHONE_ADDRESS,
        ]
        assert [d.address for d in controller.new_devices] == [MOUSE_ADDRESS]
        assert controller.devices == controller.paired_devices + controller.new_devices
        assert controller.new_devices[0].device_type == DeviceType.MOUSE

    @pytest.mark.asyncio
    async def test_lists_never_overlap(self, fake_session) -> None:
        """Test no address appears in both lists."""
        controller = await AdapterController.initialize(fake_session)

        paired = {d.address for d in controller.paired_devices}
        new = {d.address for d in controller.new_devices}
        assert paired.isdisjoint(new)

    @pytest.mark.asyncio
    async def test_vanished_device_is_skipped(self, fake_session) -> None:
        """Test a device disappearing mid-enumeration does not abort refresh."""
        controller = await AdapterController.initialize(fake_session)
        original = fake_session.device_properties

        async def flaky(adapter: str, address: str):
            if address == PHONE_ADDRESS:
                raise DeviceVanished(address)
            return await original(adapter, address)

        fake_session.device_properties = flaky
        await controller.refresh()

        assert controller.find_device(PHONE_ADDRESS) is None
        assert controller.find_device(HEADSET_ADDRESS) is not None
        assert controller.find_device(MOUSE_ADDRESS) is not None

    @pytest.mark.asyncio
    async def test_duplicate_addresses_enumerated_once(self, fake_session) -> None:
        """Test an address reported twice yields a single snapshot."""
        fake_session.device_addresses = AsyncMock(
            return_value=[MOUSE_ADDRESS, MOUSE_ADDRESS.lower()]
        )

        controller = await AdapterController.initialize(fake_session)

        assert len(controller.new_devices) == 1

    @pytest.mark.asyncio
    async def test_refresh_replaces_snapshots(self, fake_session) -> None:
        """Test external changes become visible only after refresh."""
        controller = await AdapterController.initialize(fake_session)
        before = controller.find_device(MOUSE_ADDRESS)
        fake_session.devices[MOUSE_ADDRESS]["Paired"] = True

        assert controller.find_device(MOUSE_ADDRESS) is before
        await controller.refresh()

        after = controller.find_device(MOUSE_ADDRESS)
        assert after is not before
        assert after.is_paired is True
        assert before.is_paired is False
        assert controller.new_devices == ()

    @pytest.mark.asyncio
    async def test_get_device(self, fake_session) -> None:
        """Test a single device can be re-read."""
        controller = await AdapterController.initialize(fake_session)

        device = await controller.get_device(HEADSET_ADDRESS)

        assert device.battery_percentage == 80
        assert device.device_type == DeviceType.HEADPHONES

        with pytest.raises(DeviceVanished):
            await controller.get_device("00:00:00:00:00:00")


class TestAdapterSetters:
    """Tests for adapter property writes."""

    @pytest.mark.asyncio
    async def test_setters_do_not_touch_local_state(self, fake_session) -> None:
        """Test writes are only observed after refresh."""
        controller = await AdapterController.initialize(fake_session)

        await controller.set_discoverable(True)
        await controller.set_pairable(False)

        assert controller.is_discoverable is False
        assert controller.is_pairable is True

        await controller.refresh()

        assert controller.is_discoverable is True
        assert controller.is_pairable is False

    @pytest.mark.asyncio
    async def test_power_on_end_to_end(self, fake_session) -> None:
        """Test powering on an adapter that started off."""
        fake_session.adapters["hci0"]["Powered"] = False
        controller = await AdapterController.initialize(fake_session)
        assert controller.is_powered is False

        await controller.power_on()
        await controller.refresh()

        assert controller.is_powered is True
        assert len(controller.paired_devices) == 2

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, fake_session) -> None:
        """Test a failed property write raises PropertyWriteFailed."""
        controller = await AdapterController.initialize(fake_session)
        fake_session.set_adapter_property = AsyncMock(
            side_effect=PropertyWriteFailed("hci0", "Powered", "org.bluez.Error.Busy")
        )

        with pytest.raises(PropertyWriteFailed):
            await controller.power_off()

        assert controller.is_powered is True
