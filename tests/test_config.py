"""Test configuration validation and the command line."""
from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import voluptuous as vol

from bzmenu.__main__ import async_run, build_parser, main
from bzmenu.config import BzMenuConfig


class TestBzMenuConfig:
    """Tests for BzMenuConfig.from_dict."""

    def test_defaults(self) -> None:
        """Test an empty configuration uses the defaults."""
        config = BzMenuConfig.from_dict({})

        assert config == BzMenuConfig()
        assert config.menu == "dmenu"
        assert config.scan_duration == 10
        assert config.confirmation_timeout == 30.0
        assert config.notifications is True

    def test_none_values_are_unset(self) -> None:
        """Test argparse's None values fall back to defaults."""
        config = BzMenuConfig.from_dict({"menu": None, "scan_duration": None})

        assert config.menu == "dmenu"
        assert config.scan_duration == 10

    @pytest.mark.parametrize("duration", [0, 301, -5])
    def test_scan_duration_range(self, duration: int) -> None:
        """Test the scan duration must be between 1 and 300 seconds."""
        with pytest.raises(vol.Invalid):
            BzMenuConfig.from_dict({"scan_duration": duration})

    def test_unknown_menu(self) -> None:
        """Test only known launchers are accepted."""
        with pytest.raises(vol.Invalid):
            BzMenuConfig.from_dict({"menu": "zenity"})

    def test_custom_menu_requires_command(self) -> None:
        """Test the custom launcher needs a command line."""
        with pytest.raises(vol.Invalid):
            BzMenuConfig.from_dict({"menu": "custom"})

        config = BzMenuConfig.from_dict(
            {"menu": "custom", "menu_command": "tofi --prompt-text '{prompt}'"}
        )
        assert config.menu_command == "tofi --prompt-text '{prompt}'"

    def test_extra_keys_refused(self) -> None:
        """Test unknown settings are reported."""
        with pytest.raises(vol.Invalid):
            BzMenuConfig.from_dict({"colour": "blue"})


class TestCommandLine:
    """Tests for the argparse entry point."""

    def test_parser_maps_to_config(self) -> None:
        """Test parsed arguments validate into a config."""
        args = build_parser().parse_args(
            ["-l", "fuzzel", "-s", "20", "--no-notifications", "-v"]
        )

        config = BzMenuConfig.from_dict(vars(args))

        assert config.menu == "fuzzel"
        assert config.scan_duration == 20
        assert config.notifications is False
        assert config.verbose is True

    def test_invalid_value_is_usage_error(self) -> None:
        """Test validation errors exit with status 2."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--scan-duration", "0"])

        assert exc_info.value.code == 2

    def test_main_returns_run_status(self) -> None:
        """Test main returns the status of the session."""
        with patch("bzmenu.__main__.setup_colored_logging"), patch(
            "bzmenu.__main__.async_run", AsyncMock(return_value=1)
        ) as mock_run:
            assert main(["--no-notifications"]) == 1

        config = mock_run.await_args.args[0]
        assert config.notifications is False

    @pytest.mark.asyncio
    async def test_no_adapter_exits_with_one(self) -> None:
        """Test a missing adapter ends the run with status 1."""
        from bzmenu.exceptions import NoAdapterFound

        with patch("bzmenu.__main__.BluezSession") as mock_session_class, patch(
            "bzmenu.__main__.SessionController.create",
            AsyncMock(side_effect=NoAdapterFound()),
        ):
            session = mock_session_class.return_value
            session.open = AsyncMock()
            session.close = AsyncMock()

            status = await async_run(BzMenuConfig(notifications=False))

        assert status == 1
        session.close.assert_awaited_once()
