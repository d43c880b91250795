"""Pairing agent handling BlueZ passkey confirmation requests."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any, Protocol

from dbus_next.errors import DBusError
from dbus_next.service import ServiceInterface, method

from .const import AGENT_INTERFACE, CONFIRMATION_TIMEOUT
from .exceptions import (
    BzMenuError,
    ConfirmationAlreadyPending,
    ConfirmationRejected,
    ConfirmationTimeout,
)
from .helpers import Flag

_LOGGER = logging.getLogger(__name__)

REJECTED_ERROR = "org.bluez.Error.Rejected"


def format_passkey(passkey: int) -> str:
    """Return the passkey as the 6-digit string shown to the user."""

    return f"{passkey:06d}"


class ConfirmationHandler(Protocol):
    """Shows a passkey to the user and reports the answer.

    Implementations must call exactly one of the two completions, or none
    at all; the agent times out on its own.
    """

    def request_confirmation(
        self,
        device_address: str,
        passkey: str,
        on_confirm: Callable[[], Any],
        on_reject: Callable[[], Any],
    ) -> None: ...


@dataclass
class ConfirmationRequest:
    """A single outstanding passkey confirmation."""

    address: str
    passkey: int
    outcome: asyncio.Future[bool]
    created_at: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _resolved: bool = field(default=False, repr=False)

    @property
    def passkey_text(self) -> str:
        """Zero-padded passkey."""
        return format_passkey(self.passkey)

    @property
    def resolved(self) -> bool:
        """Return True once an answer was delivered."""
        with self._lock:
            return self._resolved

    def confirm(self) -> bool:
        """Accept the passkey. Returns False if already answered."""
        return self._resolve(True)

    def reject(self) -> bool:
        """Reject the passkey. Returns False if already answered."""
        return self._resolve(False)

    def _resolve(self, accepted: bool) -> bool:
        with self._lock:
            if self._resolved:
                return False
            self._resolved = True
        # Completions may be called from another thread by the prompt UI
        self.outcome.get_loop().call_soon_threadsafe(self._set_outcome, accepted)
        return True

    def _set_outcome(self, accepted: bool) -> None:
        if not self.outcome.done():
            self.outcome.set_result(accepted)


class PairingAgent:
    """Turns BlueZ confirmation requests into a user prompt.

    At most one request is outstanding at any time; a second request that
    arrives meanwhile is rejected and the first one is kept.
    """

    def __init__(
        self,
        handler: ConfirmationHandler | None = None,
        timeout: float = CONFIRMATION_TIMEOUT,
    ) -> None:
        """Initialize the agent.

        Args:
            handler: Prompt used to ask the user; without one, requests can
                only be answered through ``confirm``/``reject``
            timeout: Seconds to wait for an answer before rejecting
        """
        self.handler = handler
        self.timeout = timeout
        self.confirmation_required = Flag()
        self._pending: ConfirmationRequest | None = None

    @property
    def pending_request(self) -> ConfirmationRequest | None:
        """The outstanding request, if any."""
        return self._pending

    async def request_confirmation(self, address: str, passkey: int) -> None:
        """Ask the user to confirm ``passkey`` for ``address``.

        Returns normally when the user accepted.

        Raises:
            ConfirmationAlreadyPending: Another request is outstanding
            ConfirmationTimeout: Nobody answered within the timeout
            ConfirmationRejected: The user rejected the passkey
        """
        if not self.confirmation_required.set():
            _LOGGER.warning(
                "Rejecting confirmation for %s, another request is pending", address
            )
            raise ConfirmationAlreadyPending(address)

        request = ConfirmationRequest(
            address=address,
            passkey=passkey,
            outcome=asyncio.get_running_loop().create_future(),
        )
        self._pending = request
        _LOGGER.info(
            "Confirm passkey %s for device %s", request.passkey_text, address
        )

        try:
            if self.handler is not None:
                try:
                    self.handler.request_confirmation(
                        address, request.passkey_text, request.confirm, request.reject
                    )
                except BzMenuError as exc:
                    _LOGGER.error("Failed to prompt for passkey confirmation: %s", exc)
                    raise ConfirmationRejected(address, str(exc)) from exc
            try:
                accepted = await asyncio.wait_for(
                    asyncio.shield(request.outcome), timeout=self.timeout
                )
            except TimeoutError as exc:
                request.reject()
                _LOGGER.info("Passkey confirmation for %s timed out", address)
                raise ConfirmationTimeout(address) from exc
        finally:
            self._pending = None
            self.confirmation_required.clear()

        if not accepted:
            _LOGGER.info("Passkey for %s rejected", address)
            raise ConfirmationRejected(address)
        _LOGGER.info("Passkey for %s confirmed", address)

    def confirm(self) -> bool:
        """Accept the pending request out-of-band.

        Returns:
            False if no request was pending or it was already answered
        """
        request = self._pending
        return request.confirm() if request is not None else False

    def reject(self) -> bool:
        """Reject the pending request out-of-band.

        Returns:
            False if no request was pending or it was already answered
        """
        request = self._pending
        return request.reject() if request is not None else False


class BluezAgentInterface(ServiceInterface):
    """D-Bus object implementing org.bluez.Agent1 for bzmenu.

    Passkey confirmations are delegated to the PairingAgent. PIN and
    passkey entry are refused since no text input is available.
    """

    def __init__(self, agent: PairingAgent) -> None:
        """Initialize the D-Bus agent.

        Args:
            agent: Core agent answering confirmation requests
        """
        super().__init__(AGENT_INTERFACE)
        self.agent = agent

    @staticmethod
    def _address(device: str) -> str:
        return device.rsplit("/dev_", maxsplit=1)[-1].replace("_", ":")

    @method()
    async def RequestConfirmation(self, device: "o", passkey: "u"):
        """Handle confirmation request from BlueZ.

        Args:
            device: D-Bus object path of the device
            passkey: Passkey to confirm
        """
        try:
            await self.agent.request_confirmation(self._address(device), passkey)
        except ConfirmationRejected as exc:
            raise DBusError(REJECTED_ERROR, str(exc)) from exc

    @method()
    def RequestPinCode(self, device: "o") -> "s":
        """Refuse PIN code entry."""
        _LOGGER.info("PIN code requested for device: %s", device)
        raise DBusError(REJECTED_ERROR, "PIN code entry is not supported")

    @method()
    def RequestPasskey(self, device: "o") -> "u":
        """Refuse passkey entry."""
        _LOGGER.info("Passkey requested for device: %s", device)
        raise DBusError(REJECTED_ERROR, "Passkey entry is not supported")

    @method()
    def DisplayPinCode(self, device: "o", pincode: "s"):
        """Display PIN code (informational)."""
        _LOGGER.info("Display PIN code %s for device: %s", pincode, device)

    @method()
    def DisplayPasskey(self, device: "o", passkey: "u", entered: "q"):
        """Display passkey (informational)."""
        _LOGGER.info(
            "Display passkey %06d for device: %s (entered: %d)",
            passkey,
            device,
            entered,
        )

    @method()
    def RequestAuthorization(self, device: "o"):
        """Authorize pairing without confirmation."""
        _LOGGER.info("Authorization requested for device: %s", device)

    @method()
    def AuthorizeService(self, device: "o", uuid: "s"):
        """Authorize a service connection."""
        _LOGGER.info(
            "Service authorization requested for device %s, UUID: %s", device, uuid
        )

    @method()
    def Cancel(self):
        """Handle cancellation of pairing by BlueZ."""
        _LOGGER.warning("Pairing cancelled by BlueZ or device")
        self.agent.reject()

    @method()
    def Release(self):
        """Handle agent release."""
        _LOGGER.info("Agent released")
