"""Device snapshots and device type classification."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class DeviceType(StrEnum):
    """Closed set of device type tags shown next to a device."""

    PHONE = "phone"
    COMPUTER = "computer"
    LAPTOP = "laptop"
    TABLET = "tablet"
    WATCH = "watch"
    TV = "tv"
    HEADPHONES = "headphones"
    SPEAKER = "speaker"
    MICROPHONE = "microphone"
    KEYBOARD = "keyboard"
    MOUSE = "mouse"
    TRACKBALL = "trackball"
    JOYSTICK = "joystick"
    GAMEPAD = "gamepad"
    PEN = "pen"
    PRINTER = "printer"
    CAMERA = "camera"
    NETWORK = "network"
    HEALTH = "health"
    BATTERY = "battery"
    DEVICE = "device"


# Class of Device: major class -> (minor class -> type, fallback for unknown minor).
# A fallback of None means the major class alone says nothing useful.
_MAJOR_CLASS_TYPES: dict[int, tuple[dict[int, DeviceType], DeviceType | None]] = {
    0x01: ({}, DeviceType.COMPUTER),
    0x02: (
        {
            0x01: DeviceType.PHONE,  # cellular
            0x02: DeviceType.PHONE,  # cordless
            0x03: DeviceType.PHONE,  # smartphone
            0x04: DeviceType.COMPUTER,  # wired modem / desktop
            0x05: DeviceType.COMPUTER,  # common ISDN / server
            0x06: DeviceType.LAPTOP,
            0x07: DeviceType.TABLET,
        },
        DeviceType.PHONE,
    ),
    0x03: ({}, DeviceType.NETWORK),
    0x04: (
        {
            0x01: DeviceType.HEADPHONES,  # headset
            0x02: DeviceType.HEADPHONES,  # hands-free
            0x04: DeviceType.MICROPHONE,
            0x05: DeviceType.SPEAKER,
            0x06: DeviceType.HEADPHONES,
            0x08: DeviceType.SPEAKER,  # car audio
            0x09: DeviceType.TV,  # video display
            0x0A: DeviceType.SPEAKER,  # loudspeaker
        },
        DeviceType.SPEAKER,
    ),
    0x05: (
        {
            0x01: DeviceType.KEYBOARD,
            0x02: DeviceType.MOUSE,
            0x03: DeviceType.TRACKBALL,
            0x04: DeviceType.JOYSTICK,
            0x05: DeviceType.GAMEPAD,
            0x06: DeviceType.TABLET,  # digitizer
            0x07: DeviceType.MOUSE,  # card reader
            0x08: DeviceType.PEN,
        },
        None,
    ),
    0x06: (
        {
            0x01: DeviceType.PRINTER,
            0x02: DeviceType.PRINTER,
            0x04: DeviceType.CAMERA,
            0x08: DeviceType.CAMERA,
            0x10: DeviceType.TV,  # display
            0x20: DeviceType.TV,
        },
        None,
    ),
    0x07: (
        {
            0x01: DeviceType.WATCH,
            0x04: DeviceType.HEADPHONES,
        },
        None,
    ),
    0x09: ({}, DeviceType.HEALTH),
}

# GAP appearance values
_APPEARANCE_TYPES: dict[int, DeviceType] = {
    64: DeviceType.PHONE,
    128: DeviceType.COMPUTER,
    192: DeviceType.WATCH,
    256: DeviceType.TV,
    896: DeviceType.HEALTH,  # thermometer
    961: DeviceType.KEYBOARD,
    962: DeviceType.MOUSE,
    963: DeviceType.JOYSTICK,
    964: DeviceType.GAMEPAD,
    976: DeviceType.TABLET,  # digitizer
    1088: DeviceType.PEN,
    1216: DeviceType.SPEAKER,
    1280: DeviceType.HEADPHONES,
    1344: DeviceType.SPEAKER,
    1408: DeviceType.MICROPHONE,
    1472: DeviceType.HEADPHONES,  # hearing aid
}
_HEALTH_APPEARANCE_RANGE = range(1600, 1664)

_SERVICE_UUID_TYPES: dict[str, DeviceType] = {
    "0000110b-0000-1000-8000-00805f9b34fb": DeviceType.SPEAKER,  # audio sink
    "0000110c-0000-1000-8000-00805f9b34fb": DeviceType.HEADPHONES,  # AVRCP target
    "0000110e-0000-1000-8000-00805f9b34fb": DeviceType.HEADPHONES,  # AVRCP
    "0000110f-0000-1000-8000-00805f9b34fb": DeviceType.SPEAKER,  # AVRCP controller
    "00001112-0000-1000-8000-00805f9b34fb": DeviceType.HEADPHONES,  # headset AG
    "00001117-0000-1000-8000-00805f9b34fb": DeviceType.SPEAKER,
    "00001131-0000-1000-8000-00805f9b34fb": DeviceType.HEADPHONES,
    "00001132-0000-1000-8000-00805f9b34fb": DeviceType.PHONE,  # message access
    "00001124-0000-1000-8000-00805f9b34fb": DeviceType.KEYBOARD,  # HID
    "0000180d-0000-1000-8000-00805f9b34fb": DeviceType.HEALTH,  # heart rate
    "0000180f-0000-1000-8000-00805f9b34fb": DeviceType.BATTERY,
}

_ICON_TYPES: dict[str, DeviceType] = {
    "audio-card": DeviceType.SPEAKER,
    "audio-speakers": DeviceType.SPEAKER,
    "audio-headphones": DeviceType.HEADPHONES,
    "audio-headset": DeviceType.HEADPHONES,
    "audio-input-microphone": DeviceType.MICROPHONE,
    "input-keyboard": DeviceType.KEYBOARD,
    "input-mouse": DeviceType.MOUSE,
    "input-gaming": DeviceType.GAMEPAD,
    "input-joystick": DeviceType.GAMEPAD,
    "input-tablet": DeviceType.TABLET,
    "phone": DeviceType.PHONE,
    "computer": DeviceType.COMPUTER,
    "computer-laptop": DeviceType.LAPTOP,
    "video-display": DeviceType.TV,
    "tv": DeviceType.TV,
    "printer": DeviceType.PRINTER,
    "camera-photo": DeviceType.CAMERA,
    "camera-video": DeviceType.CAMERA,
    "network-wireless": DeviceType.NETWORK,
}


def type_from_class(class_of_device: int | None) -> DeviceType | None:
    """Classify from the Bluetooth Class of Device value."""

    if not class_of_device:
        return None
    major_class = (class_of_device >> 8) & 0x1F
    minor_class = (class_of_device >> 2) & 0x3F
    entry = _MAJOR_CLASS_TYPES.get(major_class)
    if entry is None:
        return None
    minor_types, fallback = entry
    return minor_types.get(minor_class, fallback)


def type_from_appearance(appearance: int | None) -> DeviceType | None:
    """Classify from the GAP appearance value of an LE device."""

    if not appearance:
        return None
    if appearance in _HEALTH_APPEARANCE_RANGE:
        return DeviceType.HEALTH
    return _APPEARANCE_TYPES.get(appearance)


def type_from_uuids(uuids: Iterable[str] | None) -> DeviceType | None:
    """Classify from the first advertised service UUID that is recognized."""

    for uuid in uuids or ():
        device_type = _SERVICE_UUID_TYPES.get(uuid.lower())
        if device_type is not None:
            return device_type
    return None


def type_from_icon(icon: str | None) -> DeviceType | None:
    """Classify from the icon name BlueZ guessed for the device."""

    if not icon:
        return None
    return _ICON_TYPES.get(icon)


def determine_device_type(properties: Mapping[str, Any]) -> DeviceType:
    """Return the device type of a Device1 property set.

    The signals are tried from most to least reliable and the first one
    that yields a type wins: Class of Device, appearance, service UUIDs,
    icon name. Devices matching none of them are a generic "device".
    """

    return (
        type_from_class(properties.get("Class"))
        or type_from_appearance(properties.get("Appearance"))
        or type_from_uuids(properties.get("UUIDs"))
        or type_from_icon(properties.get("Icon"))
        or DeviceType.DEVICE
    )


@dataclass(frozen=True)
class DeviceSnapshot:
    """Point-in-time view of one peripheral.

    Snapshots are rebuilt on every refresh and never updated in place.
    """

    address: str
    alias: str
    device_type: DeviceType = DeviceType.DEVICE
    icon: str | None = None
    is_paired: bool = False
    is_trusted: bool = False
    is_connected: bool = False
    battery_percentage: int | None = None

    @classmethod
    def from_properties(
        cls, address: str, properties: Mapping[str, Any]
    ) -> DeviceSnapshot:
        """Build a snapshot from unwrapped Device1 properties.

        Args:
            address: Device address, used when the property set lacks one
            properties: Property name -> value, plus an optional
                BatteryPercentage entry

        Returns:
            A new DeviceSnapshot
        """
        address = (properties.get("Address") or address).upper()
        battery = properties.get("BatteryPercentage")
        if battery is not None:
            battery = max(0, min(100, int(battery)))

        return cls(
            address=address,
            alias=properties.get("Alias") or properties.get("Name") or address,
            device_type=determine_device_type(properties),
            icon=properties.get("Icon") or None,
            is_paired=bool(properties.get("Paired", False)),
            is_trusted=bool(properties.get("Trusted", False)),
            is_connected=bool(properties.get("Connected", False)),
            battery_percentage=battery,
        )
