"""Menu-driven Bluetooth session manager for BlueZ."""

__version__ = "0.1.0"
