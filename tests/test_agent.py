"""Test the pairing agent."""
from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

from dbus_next.errors import DBusError
import pytest

from bzmenu.agent import (
    REJECTED_ERROR,
    BluezAgentInterface,
    PairingAgent,
    format_passkey,
)
from bzmenu.exceptions import (
    ConfirmationAlreadyPending,
    ConfirmationRejected,
    ConfirmationTimeout,
    NotificationError,
)

ADDRESS = "AA:BB:CC:DD:EE:FF"
DEVICE_PATH = "/org/bluez/hci0/dev_AA_BB_CC_DD_EE_FF"


def answering_handler(answer: str) -> MagicMock:
    """Create a handler that answers immediately with confirm or reject."""

    def request(address, passkey, on_confirm, on_reject):
        if answer == "confirm":
            on_confirm()
        else:
            on_reject()

    handler = MagicMock()
    handler.request_confirmation = MagicMock(side_effect=request)
    return handler


async def wait_for_pending(agent: PairingAgent) -> None:
    """Yield until the agent has an outstanding request."""
    for _ in range(100):
        if agent.pending_request is not None:
            return
        await asyncio.sleep(0)
    raise AssertionError("no pending request")


def test_format_passkey() -> None:
    """Test passkeys are zero-padded to six digits."""
    assert format_passkey(1234) == "001234"
    assert format_passkey(999999) == "999999"
    assert format_passkey(0) == "000000"


class TestRequestConfirmation:
    """Tests for PairingAgent.request_confirmation."""

    @pytest.mark.asyncio
    async def test_confirm(self) -> None:
        """Test a confirmed passkey returns normally."""
        handler = answering_handler("confirm")
        agent = PairingAgent(handler)

        await agent.request_confirmation(ADDRESS, 1234)

        handler.request_confirmation.assert_called_once()
        args = handler.request_confirmation.call_args.args
        assert args[0] == ADDRESS
        assert args[1] == "001234"
        assert agent.confirmation_required.is_set() is False
        assert agent.pending_request is None

    @pytest.mark.asyncio
    async def test_reject(self) -> None:
        """Test a rejected passkey raises ConfirmationRejected."""
        agent = PairingAgent(answering_handler("reject"))

        with pytest.raises(ConfirmationRejected) as exc_info:
            await agent.request_confirmation(ADDRESS, 1234)

        assert not isinstance(exc_info.value, ConfirmationTimeout)
        assert exc_info.value.address == ADDRESS
        assert agent.confirmation_required.is_set() is False

    @pytest.mark.asyncio
    async def test_confirm_then_reject_keeps_first_answer(self) -> None:
        """Test only the first completion counts."""
        results: list[bool] = []

        def request(address, passkey, on_confirm, on_reject):
            results.append(on_confirm())
            results.append(on_reject())

        handler = MagicMock()
        handler.request_confirmation = MagicMock(side_effect=request)
        agent = PairingAgent(handler)

        await agent.request_confirmation(ADDRESS, 42)

        assert results == [True, False]

    @pytest.mark.asyncio
    async def test_timeout_clears_guard(self) -> None:
        """Test an unanswered request times out and leaves the agent idle."""
        handler = MagicMock()
        agent = PairingAgent(handler, timeout=0.05)

        with pytest.raises(ConfirmationTimeout):
            await agent.request_confirmation(ADDRESS, 1234)

        assert agent.confirmation_required.is_set() is False
        assert agent.pending_request is None

    @pytest.mark.asyncio
    async def test_late_answer_after_timeout_is_ignored(self) -> None:
        """Test a completion fired after the timeout is a no-op."""
        captured = {}

        def request(address, passkey, on_confirm, on_reject):
            captured["confirm"] = on_confirm

        handler = MagicMock()
        handler.request_confirmation = MagicMock(side_effect=request)
        agent = PairingAgent(handler, timeout=0.05)

        with pytest.raises(ConfirmationTimeout):
            await agent.request_confirmation(ADDRESS, 1234)

        assert captured["confirm"]() is False

    @pytest.mark.asyncio
    async def test_second_request_rejected_while_pending(self) -> None:
        """Test a second request does not overwrite the pending one."""
        agent = PairingAgent(timeout=1)
        first = asyncio.create_task(agent.request_confirmation(ADDRESS, 111111))
        await wait_for_pending(agent)

        with pytest.raises(ConfirmationAlreadyPending):
            await agent.request_confirmation("11:22:33:44:55:66", 222222)

        assert agent.pending_request.address == ADDRESS
        assert agent.confirm() is True
        await asyncio.wait_for(first, 1)
        assert agent.confirmation_required.is_set() is False

    @pytest.mark.asyncio
    async def test_handler_failure_rejects(self) -> None:
        """Test a prompt that cannot be shown rejects the request."""
        handler = MagicMock()
        handler.request_confirmation = MagicMock(
            side_effect=NotificationError("no daemon")
        )
        agent = PairingAgent(handler)

        with pytest.raises(ConfirmationRejected):
            await agent.request_confirmation(ADDRESS, 1234)

        assert agent.confirmation_required.is_set() is False


class TestOutOfBand:
    """Tests for PairingAgent.confirm and reject."""

    def test_nothing_pending(self) -> None:
        """Test answering without a pending request is a no-op."""
        agent = PairingAgent()

        assert agent.confirm() is False
        assert agent.reject() is False

    @pytest.mark.asyncio
    async def test_reject_out_of_band(self) -> None:
        """Test a pending request can be rejected directly."""
        agent = PairingAgent(timeout=1)
        task = asyncio.create_task(agent.request_confirmation(ADDRESS, 1234))
        await wait_for_pending(agent)

        assert agent.reject() is True
        assert agent.confirm() is False

        with pytest.raises(ConfirmationRejected):
            await asyncio.wait_for(task, 1)

    @pytest.mark.asyncio
    async def test_answer_from_other_thread(self) -> None:
        """Test a completion delivered from another thread is accepted."""
        agent = PairingAgent(timeout=1)
        task = asyncio.create_task(agent.request_confirmation(ADDRESS, 1234))
        await wait_for_pending(agent)

        assert await asyncio.to_thread(agent.confirm) is True
        await asyncio.wait_for(task, 1)


class TestBluezAgentInterface:
    """Tests for the org.bluez.Agent1 D-Bus object."""

    @pytest.mark.asyncio
    async def test_confirmation_accepted(self) -> None:
        """Test an accepted passkey returns without error."""
        agent = PairingAgent(answering_handler("confirm"))
        interface = BluezAgentInterface(agent)

        await BluezAgentInterface.RequestConfirmation.__wrapped__(
            interface, DEVICE_PATH, 1234
        )

    @pytest.mark.asyncio
    async def test_confirmation_rejected(self) -> None:
        """Test a rejection becomes org.bluez.Error.Rejected."""
        handler = answering_handler("reject")
        agent = PairingAgent(handler)
        interface = BluezAgentInterface(agent)

        with pytest.raises(DBusError) as exc_info:
            await BluezAgentInterface.RequestConfirmation.__wrapped__(
                interface, DEVICE_PATH, 1234
            )

        assert exc_info.value.type == REJECTED_ERROR
        assert handler.request_confirmation.call_args.args[0] == ADDRESS

    def test_passkey_entry_refused(self) -> None:
        """Test PIN and passkey entry are refused."""
        interface = BluezAgentInterface(PairingAgent())

        with pytest.raises(DBusError):
            BluezAgentInterface.RequestPinCode.__wrapped__(interface, DEVICE_PATH)
        with pytest.raises(DBusError):
            BluezAgentInterface.RequestPasskey.__wrapped__(interface, DEVICE_PATH)

    @pytest.mark.asyncio
    async def test_cancel_rejects_pending(self) -> None:
        """Test Cancel from BlueZ rejects the outstanding request."""
        agent = PairingAgent(timeout=1)
        interface = BluezAgentInterface(agent)
        task = asyncio.create_task(agent.request_confirmation(ADDRESS, 1234))
        await wait_for_pending(agent)

        BluezAgentInterface.Cancel.__wrapped__(interface)

        with pytest.raises(ConfirmationRejected):
            await asyncio.wait_for(task, 1)
