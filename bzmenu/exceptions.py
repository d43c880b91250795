"""Exceptions raised by the bzmenu core.

Device-scoped errors keep the device address and the text reported by the
platform so the session driver can word its notifications without having
to inspect error strings.
"""

from __future__ import annotations


class BzMenuError(Exception):
    """Base exception for bzmenu errors."""


class NoAdapterFound(BzMenuError):
    """Error when the platform exposes no Bluetooth adapter."""

    def __init__(self) -> None:
        """Initialize the error with a fixed message."""
        super().__init__("No Bluetooth adapter found")


class PropertyError(BzMenuError):
    """Base for failed adapter/device property access."""

    _action = "Property access failed for"

    def __init__(self, target: str, name: str, error: str | None = None) -> None:
        """Initialize property error.

        Args:
            target: Adapter name or device address
            name: Property name
            error: Original error message
        """
        self.target = target
        self.name = name
        self.error = error
        message = f"{self._action} {name} on {target}"
        if error:
            message = f"{message}: {error}"
        super().__init__(message)


class PropertyReadFailed(PropertyError):
    """Error when reading a property fails."""

    _action = "Failed to read"


class PropertyWriteFailed(PropertyError):
    """Error when writing a property fails."""

    _action = "Failed to write"


class DiscoveryFailed(BzMenuError):
    """Error when a discovery session cannot be started."""

    def __init__(self, adapter: str, error: str | None = None) -> None:
        """Initialize discovery error.

        Args:
            adapter: Adapter name
            error: Original error message
        """
        self.adapter = adapter
        self.error = error
        super().__init__(f"Failed to start discovery on {adapter}: {error}")


class AgentRegistrationFailed(BzMenuError):
    """Error when the pairing agent cannot be registered with BlueZ."""


class DeviceError(BzMenuError):
    """Base for errors concerning a single peripheral."""

    _summary = "Device operation failed"

    def __init__(self, address: str, error: str | None = None) -> None:
        """Initialize device error.

        Args:
            address: Device address
            error: Original error message
        """
        self.address = address
        self.error = error
        message = f"{self._summary} for {address}"
        if error:
            message = f"{message}: {error}"
        super().__init__(message)


class DeviceVanished(DeviceError):
    """Error when a device disappeared while it was being read."""

    _summary = "Device vanished"


class PairingFailed(DeviceError):
    """Error when pairing with a device fails."""

    _summary = "Pairing failed"


class ConnectionFailed(DeviceError):
    """Error when connecting to a device fails."""

    _summary = "Connection failed"


class DeviceOutOfRange(ConnectionFailed):
    """Error when a device did not answer the connection page."""

    _summary = "Device out of range"


class DisconnectionFailed(DeviceError):
    """Error when disconnecting from a device fails."""

    _summary = "Disconnection failed"


class ForgetFailed(DeviceError):
    """Error when removing a device fails."""

    _summary = "Removing device failed"


class TrustFailed(DeviceError):
    """Error when changing the trusted flag of a device fails."""

    _summary = "Changing trust failed"


class ConfirmationRejected(DeviceError):
    """Passkey confirmation did not end in acceptance."""

    _summary = "Passkey confirmation rejected"


class ConfirmationTimeout(ConfirmationRejected):
    """Nobody answered the passkey confirmation in time."""

    _summary = "Passkey confirmation timed out"


class ConfirmationAlreadyPending(ConfirmationRejected):
    """A second confirmation arrived while another one was outstanding."""

    _summary = "Another passkey confirmation is pending"


class MenuError(BzMenuError):
    """Error when the menu launcher cannot be run."""


class NotificationError(BzMenuError):
    """Error when a desktop notification cannot be shown."""
