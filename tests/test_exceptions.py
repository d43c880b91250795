"""Test bzmenu exceptions."""
from __future__ import annotations

from bzmenu.exceptions import (
    BzMenuError,
    ConfirmationAlreadyPending,
    ConfirmationRejected,
    ConfirmationTimeout,
    ConnectionFailed,
    DeviceError,
    DeviceOutOfRange,
    DeviceVanished,
    DiscoveryFailed,
    NoAdapterFound,
    PairingFailed,
    PropertyReadFailed,
    PropertyWriteFailed,
)

ADDRESS = "AA:BB:CC:DD:EE:FF"


class TestDeviceErrors:
    """Tests for device scoped errors."""

    def test_carries_address_and_reason(self) -> None:
        """Test the address and platform text are kept."""
        error = PairingFailed(ADDRESS, "Authentication Failed")

        assert error.address == ADDRESS
        assert error.error == "Authentication Failed"
        assert str(error) == f"Pairing failed for {ADDRESS}: Authentication Failed"

    def test_without_reason(self) -> None:
        """Test the message without platform text."""
        error = DeviceVanished(ADDRESS)

        assert error.error is None
        assert str(error) == f"Device vanished for {ADDRESS}"

    def test_out_of_range_is_a_connection_failure(self) -> None:
        """Test DeviceOutOfRange can be handled as ConnectionFailed."""
        error = DeviceOutOfRange(ADDRESS, "page timeout")

        assert isinstance(error, ConnectionFailed)
        assert isinstance(error, DeviceError)
        assert isinstance(error, BzMenuError)

    def test_confirmation_hierarchy(self) -> None:
        """Test timeout and already-pending are rejections."""
        assert issubclass(ConfirmationTimeout, ConfirmationRejected)
        assert issubclass(ConfirmationAlreadyPending, ConfirmationRejected)
        assert not issubclass(ConfirmationTimeout, ConfirmationAlreadyPending)


class TestOtherErrors:
    """Tests for adapter level errors."""

    def test_no_adapter_message(self) -> None:
        """Test NoAdapterFound has a fixed message."""
        assert str(NoAdapterFound()) == "No Bluetooth adapter found"

    def test_property_errors(self) -> None:
        """Test property errors name the action, property and target."""
        read = PropertyReadFailed("hci0", "Powered")
        write = PropertyWriteFailed("hci0", "Powered", "Blocked through rfkill")

        assert str(read) == "Failed to read Powered on hci0"
        assert str(write) == "Failed to write Powered on hci0: Blocked through rfkill"
        assert write.target == "hci0"
        assert write.name == "Powered"

    def test_discovery_failed(self) -> None:
        """Test DiscoveryFailed keeps the adapter name."""
        error = DiscoveryFailed("hci0", "Resource Not Ready")

        assert error.adapter == "hci0"
        assert "Resource Not Ready" in str(error)
