"""Menu options and the external picker used to choose them."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from enum import Enum
import logging
import shlex
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol

from .const import CONFIRMATION_TIMEOUT
from .device import DeviceSnapshot
from .exceptions import MenuError

if TYPE_CHECKING:
    from .controller import AdapterController

_LOGGER = logging.getLogger(__name__)


class MainMenuOptions(Enum):
    """Entries of the main menu."""

    SCAN = "Scan"
    SETTINGS = "Settings"
    DEVICE = "Device"


class DeviceMenuOptions(Enum):
    """Actions offered for a single device."""

    CONNECT = "Connect"
    DISCONNECT = "Disconnect"
    TRUST = "Trust"
    REVOKE_TRUST = "Revoke trust"
    FORGET = "Forget"


class SettingsMenuOptions(Enum):
    """Adapter settings actions."""

    TOGGLE_DISCOVERABLE = "toggle_discoverable"
    TOGGLE_PAIRABLE = "toggle_pairable"
    DISABLE_ADAPTER = "disable_adapter"


class AdapterMenuOptions(Enum):
    """Choices shown while the adapter is powered off."""

    POWER_ON_DEVICE = "Power on device"


class MainMenuSelection(NamedTuple):
    """Main menu choice and, for DEVICE, the selected device."""

    option: MainMenuOptions
    device: DeviceSnapshot | None = None


CONFIRM_LABEL = "Confirm"
CANCEL_LABEL = "Cancel"


class MenuBackend(Protocol):
    """Something that lets the user pick one line out of several."""

    async def select(
        self, options: Sequence[str], prompt: str | None = None
    ) -> str | None: ...


class CommandMenu:
    """Menu backend piping options through an external dmenu-style picker."""

    def __init__(self, menu_type: str, menu_command: str | None = None) -> None:
        """Initialize the backend.

        Args:
            menu_type: One of fuzzel, rofi, dmenu, walker or custom
            menu_command: Command line for the custom type; ``{prompt}`` and
                ``{placeholder}`` are substituted before splitting
        """
        self.menu_type = menu_type
        self.menu_command = menu_command

    def build_command(self, prompt: str | None = None) -> list[str]:
        """Return the argv used to run the picker."""
        prompt_text = f"{prompt}: " if prompt else ""
        placeholder = prompt or ""

        if self.menu_type == "fuzzel":
            argv = ["fuzzel", "-d"]
            if placeholder:
                argv += ["--placeholder", placeholder]
        elif self.menu_type == "rofi":
            argv = ["rofi", "-m", "-1", "-dmenu"]
            if placeholder:
                argv += ["-theme-str", f'entry {{ placeholder: "{placeholder}"; }}']
        elif self.menu_type == "dmenu":
            argv = ["dmenu"]
            if prompt_text:
                argv += ["-p", prompt_text]
        elif self.menu_type == "walker":
            argv = ["walker", "-d", "-k"]
            if placeholder:
                argv += ["-p", placeholder]
        elif self.menu_type == "custom":
            if not self.menu_command:
                raise MenuError("No custom menu command provided")
            command = self.menu_command.replace("{prompt}", prompt_text).replace(
                "{placeholder}", placeholder
            )
            argv = shlex.split(command)
            if not argv:
                raise MenuError("Failed to parse custom menu command")
        else:
            raise MenuError(f"Unknown menu type: {self.menu_type}")
        return argv

    async def select(
        self, options: Sequence[str], prompt: str | None = None
    ) -> str | None:
        """Show the options and return the chosen line, or None if cancelled."""
        argv = self.build_command(prompt)
        _LOGGER.debug("Running menu command: %s", argv)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise MenuError(f"Failed to run menu command {argv[0]}: {exc}") from exc

        try:
            stdout, _ = await process.communicate("\n".join(options).encode())
        except (asyncio.CancelledError, TimeoutError):
            _LOGGER.debug("Menu withdrawn, killing %s", argv[0])
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise
        output = stdout.decode(errors="replace").strip()
        return output or None


class Menu:
    """Builds menu entries from controller state and maps choices back."""

    def __init__(self, backend: MenuBackend) -> None:
        """Initialize the menu.

        Args:
            backend: Picker that displays the labels and returns the chosen one
        """
        self.backend = backend

    @staticmethod
    def format_device_display(device: DeviceSnapshot) -> str:
        """Return the label shown for a device."""
        display_name = device.alias
        if device.battery_percentage is not None:
            display_name += f" [{device.battery_percentage}%]"
        if device.is_connected:
            display_name += " (connected)"
        if device.is_trusted:
            display_name += " (trusted)"
        return display_name

    async def _choose(
        self, choices: dict[str, Any], prompt: str | None = None
    ) -> Any | None:
        output = await self.backend.select(list(choices), prompt)
        if output is None:
            return None
        return choices.get(output.strip())

    async def show_main_menu(
        self, controller: AdapterController
    ) -> MainMenuSelection | None:
        """Show scan, devices and settings; return the selection."""
        reserved = {MainMenuOptions.SCAN.value, MainMenuOptions.SETTINGS.value}
        choices: dict[str, MainMenuSelection] = {
            MainMenuOptions.SCAN.value: MainMenuSelection(MainMenuOptions.SCAN)
        }
        for device in controller.devices:
            label = self.format_device_display(device)
            if label in choices or label in reserved:
                label = f"{label} ({device.address})"
            choices[label] = MainMenuSelection(MainMenuOptions.DEVICE, device)
        choices[MainMenuOptions.SETTINGS.value] = MainMenuSelection(
            MainMenuOptions.SETTINGS
        )
        return await self._choose(choices)

    @staticmethod
    def get_paired_device_options(device: DeviceSnapshot) -> list[DeviceMenuOptions]:
        """Return the actions available for a paired device."""
        return [
            DeviceMenuOptions.DISCONNECT
            if device.is_connected
            else DeviceMenuOptions.CONNECT,
            DeviceMenuOptions.REVOKE_TRUST
            if device.is_trusted
            else DeviceMenuOptions.TRUST,
            DeviceMenuOptions.FORGET,
        ]

    async def show_device_options(
        self, options: Sequence[DeviceMenuOptions], device_name: str
    ) -> DeviceMenuOptions | None:
        """Show the actions for a device."""
        choices = {option.value: option for option in options}
        return await self._choose(choices, prompt=device_name)

    async def show_settings_menu(
        self, controller: AdapterController
    ) -> SettingsMenuOptions | None:
        """Show adapter settings with labels reflecting the current state."""
        discoverable_text = (
            "Disable discoverable" if controller.is_discoverable else "Enable discoverable"
        )
        pairable_text = (
            "Disable pairable" if controller.is_pairable else "Enable pairable"
        )
        choices = {
            discoverable_text: SettingsMenuOptions.TOGGLE_DISCOVERABLE,
            pairable_text: SettingsMenuOptions.TOGGLE_PAIRABLE,
            "Disable adapter": SettingsMenuOptions.DISABLE_ADAPTER,
        }
        return await self._choose(choices)

    async def prompt_enable_adapter(self) -> AdapterMenuOptions | None:
        """Offer to power the adapter on."""
        option = AdapterMenuOptions.POWER_ON_DEVICE
        return await self._choose({option.value: option})

    async def prompt_passkey_confirmation(self, device_name: str, passkey: str) -> bool:
        """Ask whether the passkey matches; True only for an explicit confirm."""
        prompt = f"Confirm passkey {passkey} for {device_name}?"
        choice = await self._choose(
            {CONFIRM_LABEL: True, CANCEL_LABEL: False}, prompt=prompt
        )
        return bool(choice)


class MenuConfirmationHandler:
    """Passkey confirmation prompt that goes through the menu backend."""

    def __init__(self, menu: Menu, timeout: float = CONFIRMATION_TIMEOUT) -> None:
        """Initialize the handler.

        Args:
            menu: Menu used to show the Confirm/Cancel prompt
            timeout: Seconds before an unanswered prompt is withdrawn and
                the passkey rejected
        """
        self.menu = menu
        self.timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    def request_confirmation(
        self,
        device_address: str,
        passkey: str,
        on_confirm: Callable[[], Any],
        on_reject: Callable[[], Any],
    ) -> None:
        """Start the prompt in the background and report the answer."""
        task = asyncio.create_task(
            self._async_prompt(device_address, passkey, on_confirm, on_reject)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _async_prompt(
        self,
        device_address: str,
        passkey: str,
        on_confirm: Callable[[], Any],
        on_reject: Callable[[], Any],
    ) -> None:
        try:
            confirmed = await asyncio.wait_for(
                self.menu.prompt_passkey_confirmation(device_address, passkey),
                timeout=self.timeout,
            )
        except TimeoutError:
            _LOGGER.warning(
                "Passkey prompt for %s timed out after %s seconds",
                device_address,
                self.timeout,
            )
            confirmed = False
        except MenuError as exc:
            _LOGGER.error("Passkey prompt failed: %s", exc)
            confirmed = False
        if confirmed:
            on_confirm()
        else:
            on_reject()
