"""Desktop notifications over org.freedesktop.Notifications."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
import time
from typing import Any, cast

from dbus_next import Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError, InterfaceNotFoundError

from .const import (
    APP_NAME,
    CONFIRMATION_TIMEOUT,
    DEFAULT_ICON,
    DEFAULT_NOTIFICATION_TIMEOUT_MS,
    NOTIFICATIONS_INTERFACE,
    NOTIFICATIONS_PATH,
    NOTIFICATIONS_SERVICE,
    PROGRESS_UPDATE_INTERVAL,
)
from .exceptions import NotificationError
from .helpers import OnceCallback

_LOGGER = logging.getLogger(__name__)

ACTION_CONFIRM = "confirm"
ACTION_REJECT = "reject"
ACTION_DEFAULT = "default"

# NotificationClosed reason codes
CLOSED_EXPIRED = 1
CLOSED_DISMISSED = 2
CLOSED_BY_CALL = 3


@dataclass
class _Confirmation:
    on_confirm: Callable[[], Any]
    on_reject: Callable[[], Any]


@dataclass
class _Progress:
    on_cancel: OnceCallback
    closed: bool = False


class NotificationManager:
    """Shows notifications and turns their actions into callbacks.

    Also serves as the passkey confirmation prompt of the pairing agent.
    """

    def __init__(
        self,
        bus: MessageBus | None = None,
        app_name: str = APP_NAME,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT,
    ) -> None:
        """Initialize the notification manager.

        Args:
            bus: Connected session bus, mainly for tests
            app_name: Application name shown by the notification daemon
            confirmation_timeout: Seconds a passkey notification stays visible
        """
        self._bus = bus
        self.app_name = app_name
        self.confirmation_timeout = confirmation_timeout
        self._interface: Any = None
        self._confirmations: dict[int, _Confirmation] = {}
        self._progress: dict[int, _Progress] = {}
        self._tasks: set[asyncio.Task] = set()

    async def _async_get_interface(self) -> Any:
        """Return the Notifications proxy, subscribing to its signals once."""
        if self._interface is not None:
            return self._interface

        try:
            if self._bus is None:
                self._bus = await MessageBus().connect()
                _LOGGER.debug("Connected to D-Bus session bus")
            introspection = await self._bus.introspect(
                NOTIFICATIONS_SERVICE, NOTIFICATIONS_PATH
            )
            proxy = self._bus.get_proxy_object(
                NOTIFICATIONS_SERVICE, NOTIFICATIONS_PATH, introspection
            )
            interface = cast(Any, proxy.get_interface(NOTIFICATIONS_INTERFACE))
        except (DBusError, InterfaceNotFoundError, OSError) as exc:
            raise NotificationError(
                f"Notification service unavailable: {exc}"
            ) from exc

        interface.on_action_invoked(self._on_action_invoked)
        interface.on_notification_closed(self._on_notification_closed)
        self._interface = interface
        return interface

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def show(
        self,
        summary: str | None = None,
        body: str | None = None,
        icon: str | None = None,
        timeout: int | None = None,
        replaces_id: int | None = None,
        actions: list[str] | None = None,
        hints: dict[str, Variant] | None = None,
    ) -> int:
        """Show (or replace) a notification.

        Args:
            summary: Title, defaults to the application name
            body: Message text
            icon: Icon name, defaults to the Bluetooth icon
            timeout: Milliseconds before the notification expires, 0 for never
            replaces_id: Id of a notification to update in place
            actions: Flat list of action keys and labels
            hints: Notification hints

        Returns:
            The notification id

        Raises:
            NotificationError: If the daemon cannot be reached
        """
        interface = await self._async_get_interface()
        try:
            return await interface.call_notify(
                self.app_name,
                replaces_id or 0,
                icon or DEFAULT_ICON,
                summary or self.app_name,
                body or "",
                actions or [],
                hints or {},
                DEFAULT_NOTIFICATION_TIMEOUT_MS if timeout is None else timeout,
            )
        except DBusError as exc:
            raise NotificationError(f"Failed to send notification: {exc.text}") from exc

    async def close(self, notification_id: int) -> None:
        """Close a notification."""
        interface = await self._async_get_interface()
        try:
            await interface.call_close_notification(notification_id)
        except DBusError as exc:
            raise NotificationError(
                f"Failed to close notification {notification_id}: {exc.text}"
            ) from exc

    def shutdown(self) -> None:
        """Cancel background updates and drop the session bus connection."""
        for task in list(self._tasks):
            task.cancel()
        if self._bus is not None:
            self._bus.disconnect()
            self._bus = None
        self._interface = None

    # ------------------------------------------------------------
    # Passkey confirmation
    # ------------------------------------------------------------
    def request_confirmation(
        self,
        device_address: str,
        passkey: str,
        on_confirm: Callable[[], Any],
        on_reject: Callable[[], Any],
    ) -> None:
        """Show the passkey confirmation in the background."""
        self._spawn(
            self._async_request_confirmation(
                device_address, passkey, on_confirm, on_reject
            )
        )

    async def _async_request_confirmation(
        self,
        device_address: str,
        passkey: str,
        on_confirm: Callable[[], Any],
        on_reject: Callable[[], Any],
    ) -> None:
        try:
            await self.send_pairing_confirmation(
                device_address, passkey, on_confirm, on_reject
            )
        except NotificationError as exc:
            _LOGGER.error("Failed to show passkey confirmation: %s", exc)
            on_reject()

    async def send_pairing_confirmation(
        self,
        device_address: str,
        passkey: str,
        on_confirm: Callable[[], Any],
        on_reject: Callable[[], Any],
    ) -> int:
        """Show a notification with Confirm and Cancel actions.

        Exactly one of the callbacks runs, when the user picks an action or
        dismisses the notification.
        """
        notification_id = await self.show(
            summary="Bluetooth pairing request",
            body=f"Confirm passkey {passkey} for {device_address}?",
            icon="bluetooth",
            timeout=int(self.confirmation_timeout * 1000),
            actions=[
                ACTION_DEFAULT,
                "Confirm",
                ACTION_CONFIRM,
                "Confirm",
                ACTION_REJECT,
                "Cancel",
            ],
            hints={"urgency": Variant("y", 2)},
        )
        self._confirmations[notification_id] = _Confirmation(on_confirm, on_reject)
        return notification_id

    # ------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------
    async def send_progress_notification(
        self,
        duration: float,
        on_cancel: Callable[[], Any],
        body: str = "Scanning for devices...",
        icon: str | None = None,
    ) -> int:
        """Show a progress bar that fills over ``duration`` seconds.

        Dismissing the notification calls ``on_cancel`` once.

        Returns:
            The notification id, usable as ``replaces_id`` afterwards
        """
        notification_id = await self.show(
            body=body,
            icon=icon,
            timeout=0,
            hints=self._progress_hints(0),
        )
        progress = _Progress(OnceCallback(on_cancel))
        self._progress[notification_id] = progress
        self._spawn(
            self._async_track_progress(notification_id, progress, duration, body, icon)
        )
        return notification_id

    @staticmethod
    def _progress_hints(value: int) -> dict[str, Variant]:
        return {
            "value": Variant("i", value),
            "transient": Variant("b", True),
            "category": Variant("s", "transfer"),
        }

    async def _async_track_progress(
        self,
        notification_id: int,
        progress: _Progress,
        duration: float,
        body: str,
        icon: str | None,
    ) -> None:
        start = time.monotonic()
        try:
            while not progress.closed:
                await asyncio.sleep(PROGRESS_UPDATE_INTERVAL)
                elapsed = time.monotonic() - start
                if elapsed >= duration or progress.closed:
                    break
                value = min(100, int(elapsed / duration * 100))
                try:
                    await self.show(
                        body=body,
                        icon=icon,
                        timeout=0,
                        replaces_id=notification_id,
                        hints=self._progress_hints(value),
                    )
                except NotificationError as exc:
                    _LOGGER.debug("Stopping progress updates: %s", exc)
                    break
        finally:
            self._progress.pop(notification_id, None)

    # ------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------
    def _on_action_invoked(self, notification_id: int, action_key: str) -> None:
        confirmation = self._confirmations.pop(notification_id, None)
        if confirmation is None:
            return
        _LOGGER.debug(
            "Action %s invoked on notification %s", action_key, notification_id
        )
        if action_key in (ACTION_CONFIRM, ACTION_DEFAULT):
            confirmation.on_confirm()
        else:
            confirmation.on_reject()

    def _on_notification_closed(self, notification_id: int, reason: int) -> None:
        confirmation = self._confirmations.pop(notification_id, None)
        if confirmation is not None:
            _LOGGER.debug("Passkey notification closed (reason %s)", reason)
            confirmation.on_reject()

        progress = self._progress.get(notification_id)
        if progress is not None:
            progress.closed = True
            if reason == CLOSED_DISMISSED:
                _LOGGER.debug("Progress notification dismissed by user")
                progress.on_cancel()
