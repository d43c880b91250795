"""Constants for the bzmenu Bluetooth session manager."""

APP_NAME = "BlueZ Menu"

# BlueZ D-Bus names
BLUEZ_SERVICE = "org.bluez"
BLUEZ_ROOT_PATH = "/org/bluez"
ADAPTER_INTERFACE = "org.bluez.Adapter1"
DEVICE_INTERFACE = "org.bluez.Device1"
BATTERY_INTERFACE = "org.bluez.Battery1"
AGENT_INTERFACE = "org.bluez.Agent1"
AGENT_MANAGER_INTERFACE = "org.bluez.AgentManager1"
OBJECT_MANAGER_INTERFACE = "org.freedesktop.DBus.ObjectManager"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

AGENT_PATH = "/org/bluez/agent_bzmenu"
AGENT_CAPABILITY = "KeyboardDisplay"

# Desktop notifications
NOTIFICATIONS_SERVICE = "org.freedesktop.Notifications"
NOTIFICATIONS_PATH = "/org/freedesktop/Notifications"
NOTIFICATIONS_INTERFACE = "org.freedesktop.Notifications"

DEFAULT_ICON = "bluetooth"
DEFAULT_NOTIFICATION_TIMEOUT_MS = 3000
PROGRESS_UPDATE_INTERVAL = 0.5

# Timing
DEFAULT_SCAN_DURATION = 10
MAX_SCAN_DURATION = 300
CONFIRMATION_TIMEOUT = 30.0
DISCOVERY_POLL_INTERVAL = 0.5

# Menu launchers
MENU_TYPES = ["fuzzel", "rofi", "dmenu", "walker", "custom"]
DEFAULT_MENU = "dmenu"
CONFIRM_WITH_TYPES = ["notification", "menu"]
DEFAULT_CONFIRM_WITH = "notification"

# Configuration keys
CONF_MENU = "menu"
CONF_MENU_COMMAND = "menu_command"
CONF_SCAN_DURATION = "scan_duration"
CONF_CONFIRMATION_TIMEOUT = "confirmation_timeout"
CONF_CONFIRM_WITH = "confirm_with"
CONF_NOTIFICATIONS = "notifications"
CONF_VERBOSE = "verbose"
