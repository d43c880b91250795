"""Runtime configuration for bzmenu."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

import voluptuous as vol

from .const import (
    CONF_CONFIRM_WITH,
    CONF_CONFIRMATION_TIMEOUT,
    CONF_MENU,
    CONF_MENU_COMMAND,
    CONF_NOTIFICATIONS,
    CONF_SCAN_DURATION,
    CONF_VERBOSE,
    CONFIRM_WITH_TYPES,
    CONFIRMATION_TIMEOUT,
    DEFAULT_CONFIRM_WITH,
    DEFAULT_MENU,
    DEFAULT_SCAN_DURATION,
    MAX_SCAN_DURATION,
    MENU_TYPES,
)


def _require_custom_command(config: dict[str, Any]) -> dict[str, Any]:
    """Reject a custom menu without a command to run."""
    if config[CONF_MENU] == "custom" and not config.get(CONF_MENU_COMMAND):
        raise vol.Invalid(
            "a menu command is required for the custom menu",
            path=[CONF_MENU_COMMAND],
        )
    return config


CONFIG_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required(CONF_MENU, default=DEFAULT_MENU): vol.In(MENU_TYPES),
            vol.Optional(CONF_MENU_COMMAND, default=None): vol.Any(
                None, vol.All(str, vol.Length(min=1))
            ),
            vol.Required(CONF_SCAN_DURATION, default=DEFAULT_SCAN_DURATION): vol.All(
                vol.Coerce(int), vol.Range(min=1, max=MAX_SCAN_DURATION)
            ),
            vol.Required(
                CONF_CONFIRMATION_TIMEOUT, default=CONFIRMATION_TIMEOUT
            ): vol.All(vol.Coerce(float), vol.Range(min=1)),
            vol.Required(CONF_CONFIRM_WITH, default=DEFAULT_CONFIRM_WITH): vol.In(
                CONFIRM_WITH_TYPES
            ),
            vol.Required(CONF_NOTIFICATIONS, default=True): bool,
            vol.Required(CONF_VERBOSE, default=False): bool,
        }
    ),
    _require_custom_command,
)


@dataclass(frozen=True)
class BzMenuConfig:
    """Validated settings for one bzmenu run."""

    menu: str = DEFAULT_MENU
    menu_command: str | None = None
    scan_duration: int = DEFAULT_SCAN_DURATION
    confirmation_timeout: float = CONFIRMATION_TIMEOUT
    confirm_with: str = DEFAULT_CONFIRM_WITH
    notifications: bool = True
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BzMenuConfig:
        """Validate raw settings and build a config.

        Keys whose value is None are treated as unset so argparse defaults
        can be passed straight through.

        Raises:
            vol.Invalid: If a value is out of range or inconsistent
        """
        raw = {key: value for key, value in data.items() if value is not None}
        return cls(**CONFIG_SCHEMA(raw))

    def as_dict(self) -> dict[str, Any]:
        """Return the settings as a plain dictionary."""
        return asdict(self)
