"""Command line entry point for bzmenu."""

import argparse
import asyncio
import logging
import sys

import voluptuous as vol

from . import __version__
from .agent import ConfirmationHandler
from .app import SessionController
from .colored_logging import setup_colored_logging
from .config import BzMenuConfig
from .const import CONFIRM_WITH_TYPES, MAX_SCAN_DURATION, MENU_TYPES
from .exceptions import AgentRegistrationFailed, BzMenuError, NoAdapterFound
from .menu import CommandMenu, Menu, MenuConfirmationHandler
from .notification import NotificationManager
from .session import BluezSession

_LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the command line parser."""
    parser = argparse.ArgumentParser(
        prog="bzmenu",
        description="Manage Bluetooth devices through a dmenu-style launcher",
    )
    parser.add_argument(
        "-l",
        "--launcher",
        dest="menu",
        choices=MENU_TYPES,
        help="Menu launcher to use (default: dmenu)",
    )
    parser.add_argument(
        "--launcher-command",
        dest="menu_command",
        help="Command line for the custom launcher; {prompt} and {placeholder} "
        "are substituted",
    )
    parser.add_argument(
        "-s",
        "--scan-duration",
        type=int,
        help=f"Seconds a device scan lasts, 1-{MAX_SCAN_DURATION} (default: 10)",
    )
    parser.add_argument(
        "--confirmation-timeout",
        type=float,
        help="Seconds to wait for a passkey confirmation (default: 30)",
    )
    parser.add_argument(
        "--confirm-with",
        choices=CONFIRM_WITH_TYPES,
        help="Where passkey confirmations are asked (default: notification)",
    )
    parser.add_argument(
        "--no-notifications",
        dest="notifications",
        action="store_false",
        default=None,
        help="Do not show desktop notifications",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


async def async_run(config: BzMenuConfig) -> int:
    """Run one bzmenu session.

    Returns:
        Process exit status
    """
    menu = Menu(CommandMenu(config.menu, config.menu_command))
    notifier = (
        NotificationManager(confirmation_timeout=config.confirmation_timeout)
        if config.notifications
        else None
    )
    confirmation_handler: ConfirmationHandler
    if config.confirm_with == "notification" and notifier is not None:
        confirmation_handler = notifier
    else:
        confirmation_handler = MenuConfirmationHandler(
            menu, timeout=config.confirmation_timeout
        )

    session = BluezSession()
    try:
        await session.open()
        app = await SessionController.create(
            session,
            menu,
            notifier=notifier,
            confirmation_handler=confirmation_handler,
            scan_duration=config.scan_duration,
            confirmation_timeout=config.confirmation_timeout,
        )
        await app.run()
    except NoAdapterFound as exc:
        _LOGGER.error("%s", exc)
        return 1
    except AgentRegistrationFailed as exc:
        _LOGGER.error("Failed to register pairing agent: %s", exc)
        return 1
    except BzMenuError as exc:
        _LOGGER.error("%s", exc)
        return 1
    finally:
        await session.close()
        if notifier is not None:
            notifier.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, set up logging and run the session."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = BzMenuConfig.from_dict(vars(args))
    except vol.Invalid as exc:
        parser.error(str(exc))

    setup_colored_logging(level=logging.DEBUG if config.verbose else logging.INFO)
    _LOGGER.debug("Configuration: %s", config.as_dict())

    try:
        return asyncio.run(async_run(config))
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted, exiting")
        return 130


if __name__ == "__main__":
    sys.exit(main())
