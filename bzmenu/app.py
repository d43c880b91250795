"""Session driver: reads menu choices and runs the matching operations."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import Any, Protocol

from .agent import ConfirmationHandler, PairingAgent
from .const import CONFIRMATION_TIMEOUT, DEFAULT_SCAN_DURATION
from .controller import AdapterController
from .device import DeviceSnapshot
from .exceptions import (
    BzMenuError,
    ConnectionFailed,
    DeviceOutOfRange,
    DeviceVanished,
    NotificationError,
    PairingFailed,
)
from .menu import (
    AdapterMenuOptions,
    DeviceMenuOptions,
    MainMenuOptions,
    Menu,
    SettingsMenuOptions,
)
from .pairing import PairingOrchestrator
from .scanner import DiscoveryScanner

_LOGGER = logging.getLogger(__name__)

ICON_SCAN = "bluetooth-scan"
ICON_ERROR = "dialog-error"


class Notifier(Protocol):
    """Notification sink used to report outcomes to the user."""

    async def show(
        self,
        summary: str | None = None,
        body: str | None = None,
        icon: str | None = None,
        timeout: int | None = None,
        replaces_id: int | None = None,
    ) -> int: ...

    async def close(self, notification_id: int) -> None: ...

    async def send_progress_notification(
        self,
        duration: float,
        on_cancel: Callable[[], Any],
        body: str = ...,
        icon: str | None = None,
    ) -> int: ...


class SessionController:
    """Runs the menu loop on top of the adapter, scanner, agent and orchestrator."""

    def __init__(
        self,
        controller: AdapterController,
        agent: PairingAgent,
        scanner: DiscoveryScanner,
        pairing: PairingOrchestrator,
        menu: Menu,
        notifier: Notifier | None = None,
        scan_duration: float = DEFAULT_SCAN_DURATION,
    ) -> None:
        """Initialize the session driver.

        Use ``create`` to build one from a connected session.

        Args:
            controller: Adapter state owner
            agent: Pairing agent registered with the platform
            scanner: Discovery scanner sharing the controller's scanning flag
            pairing: Device operation sequencer
            menu: Menu used for every user choice
            notifier: Optional notification sink
            scan_duration: Seconds a scan lasts
        """
        self.controller = controller
        self.agent = agent
        self.scanner = scanner
        self.pairing = pairing
        self.menu = menu
        self.notifier = notifier
        self.scan_duration = scan_duration
        self.running = False
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    async def create(
        cls,
        session: Any,
        menu: Menu,
        notifier: Notifier | None = None,
        confirmation_handler: ConfirmationHandler | None = None,
        scan_duration: float = DEFAULT_SCAN_DURATION,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT,
    ) -> SessionController:
        """Register the pairing agent and read the first adapter.

        Raises:
            NoAdapterFound: If the platform has no adapter
            AgentRegistrationFailed: If the agent cannot be registered
        """
        controller = await AdapterController.initialize(session)
        agent = PairingAgent(confirmation_handler, timeout=confirmation_timeout)
        await session.register_agent(agent)

        return cls(
            controller=controller,
            agent=agent,
            scanner=DiscoveryScanner(session, controller.name, controller.is_scanning),
            pairing=PairingOrchestrator(session, controller.name),
            menu=menu,
            notifier=notifier,
            scan_duration=scan_duration,
        )

    async def notify(
        self,
        body: str,
        icon: str | None = None,
        replaces_id: int | None = None,
        level: int = logging.INFO,
    ) -> None:
        """Log a user-facing message and show it as a notification."""
        _LOGGER.log(level, body)
        if self.notifier is None:
            return
        try:
            await self.notifier.show(body=body, icon=icon, replaces_id=replaces_id)
        except NotificationError as exc:
            _LOGGER.warning("Failed to show notification: %s", exc)

    def confirm_passkey(self) -> bool:
        """Accept the pending passkey confirmation."""
        return self.agent.confirm()

    def reject_passkey(self) -> bool:
        """Reject the pending passkey confirmation."""
        return self.agent.reject()

    async def run(self) -> None:
        """Run the menu loop until the user cancels a top-level menu."""
        self.running = True
        try:
            if not self.controller.is_powered:
                _LOGGER.info("Bluetooth adapter is powered off")
                await self.handle_adapter_options()

            while self.running:
                await self.controller.refresh()
                selection = await self.menu.show_main_menu(self.controller)
                if selection is None:
                    _LOGGER.debug("Main menu cancelled, exiting")
                    self.running = False
                    break
                try:
                    await self.handle_main_option(selection.option, selection.device)
                except BzMenuError as exc:
                    await self.notify(str(exc), icon=ICON_ERROR, level=logging.ERROR)
        finally:
            self.running = False
            await self.scanner.stop()
            for task in list(self._tasks):
                task.cancel()

    async def handle_main_option(
        self, option: MainMenuOptions, device: DeviceSnapshot | None = None
    ) -> None:
        """Dispatch a main menu selection."""
        if option is MainMenuOptions.SCAN:
            await self.perform_device_scan()
        elif option is MainMenuOptions.SETTINGS:
            await self.handle_settings_menu()
        elif option is MainMenuOptions.DEVICE and device is not None:
            await self.handle_device_menu(device)

    async def handle_adapter_options(self) -> None:
        """Offer to power the adapter on; cancelling ends the session."""
        option = await self.menu.prompt_enable_adapter()
        if option is not AdapterMenuOptions.POWER_ON_DEVICE:
            _LOGGER.debug("Adapter left powered off, exiting")
            self.running = False
            return

        await self.controller.power_on()
        await self.controller.refresh()
        await self.notify("Bluetooth adapter powered on")

    # ------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------
    def _cancel_scan(self) -> None:
        task = asyncio.create_task(self.scanner.stop())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def perform_device_scan(self) -> None:
        """Scan for devices, showing progress until the scan ends."""
        if not await self.scanner.start(self.scan_duration):
            await self.notify("Scan already in progress")
            return

        progress_id: int | None = None
        if self.notifier is not None:
            try:
                progress_id = await self.notifier.send_progress_notification(
                    self.scan_duration,
                    self._cancel_scan,
                    body="Scanning for devices...",
                    icon=ICON_SCAN,
                )
            except NotificationError as exc:
                _LOGGER.warning("Failed to show scan progress: %s", exc)

        _LOGGER.info("Scanning for devices for %s seconds", self.scan_duration)
        await self.scanner.wait_for_completion()
        await self.controller.refresh()
        await self.notify("Scan completed", replaces_id=progress_id)

    # ------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------
    async def handle_device_menu(self, device: DeviceSnapshot) -> None:
        """Show the actions of one device until the user leaves."""
        while self.running:
            try:
                device = await self.controller.get_device(device.address)
            except DeviceVanished:
                await self.notify(f"{device.alias} is no longer available")
                return

            if device.is_paired:
                options = self.menu.get_paired_device_options(device)
            else:
                options = [DeviceMenuOptions.CONNECT]

            option = await self.menu.show_device_options(options, device.alias)
            if option is None:
                return

            await self.handle_device_option(option, device)
            await self.controller.refresh()
            if option is DeviceMenuOptions.FORGET:
                return

    async def handle_device_option(
        self, option: DeviceMenuOptions, device: DeviceSnapshot
    ) -> None:
        """Run one device action."""
        if option is DeviceMenuOptions.CONNECT:
            await self.perform_device_connection(device)
        elif option is DeviceMenuOptions.DISCONNECT:
            await self.perform_device_disconnection(device)
        elif option is DeviceMenuOptions.TRUST:
            await self.perform_trust_change(device, True)
        elif option is DeviceMenuOptions.REVOKE_TRUST:
            await self.perform_trust_change(device, False)
        elif option is DeviceMenuOptions.FORGET:
            await self.perform_forget_device(device)

    async def perform_device_connection(self, device: DeviceSnapshot) -> None:
        """Pair if needed and connect, reporting failures as notifications."""
        if device.is_connected:
            _LOGGER.debug("%s is already connected", device.alias)
            return

        try:
            await self.pairing.connect_device(device)
        except PairingFailed as exc:
            await self.notify(
                f"Failed to pair with {device.alias}: {exc.error or 'unknown error'}",
                icon=ICON_ERROR,
                level=logging.WARNING,
            )
            return
        except DeviceOutOfRange:
            await self.notify(
                f"{device.alias} is out of range", icon=ICON_ERROR, level=logging.WARNING
            )
            return
        except ConnectionFailed as exc:
            await self.notify(
                f"Failed to connect to {device.alias}: {exc.error or 'unknown error'}",
                icon=ICON_ERROR,
                level=logging.WARNING,
            )
            return

        await self.notify(f"Connected to {device.alias}")

    async def perform_device_disconnection(self, device: DeviceSnapshot) -> None:
        """Disconnect a device."""
        await self.pairing.disconnect_device(device)
        await self.notify(f"Disconnected from {device.alias}")

    async def perform_trust_change(self, device: DeviceSnapshot, trusted: bool) -> None:
        """Trust a device or revoke its trust."""
        await self.pairing.trust_device(device, trusted)
        if trusted:
            await self.notify(f"Trusted {device.alias}")
        else:
            await self.notify(f"Revoked trust for {device.alias}")

    async def perform_forget_device(self, device: DeviceSnapshot) -> None:
        """Remove a device from the adapter."""
        await self.pairing.forget_device(device)
        await self.notify(f"Forgot {device.alias}")

    # ------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------
    async def handle_settings_menu(self) -> None:
        """Show adapter settings once and apply the chosen change."""
        option = await self.menu.show_settings_menu(self.controller)
        if option is None:
            return

        if option is SettingsMenuOptions.TOGGLE_DISCOVERABLE:
            discoverable = not self.controller.is_discoverable
            await self.controller.set_discoverable(discoverable)
            await self.controller.refresh()
            state = "enabled" if self.controller.is_discoverable else "disabled"
            await self.notify(f"Discoverable mode {state}")
        elif option is SettingsMenuOptions.TOGGLE_PAIRABLE:
            pairable = not self.controller.is_pairable
            await self.controller.set_pairable(pairable)
            await self.controller.refresh()
            state = "enabled" if self.controller.is_pairable else "disabled"
            await self.notify(f"Pairable mode {state}")
        elif option is SettingsMenuOptions.DISABLE_ADAPTER:
            await self.perform_adapter_disable()

    async def perform_adapter_disable(self) -> None:
        """Power the adapter off and offer to power it back on."""
        await self.scanner.stop()
        await self.controller.power_off()
        await self.controller.refresh()
        await self.notify("Bluetooth adapter disabled")
        await self.handle_adapter_options()
