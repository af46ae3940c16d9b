# main.py
import argparse
import json
import os
import sys
import threading
import time

from typing import Any, Dict, List, Optional

from pyfiglet import Figlet, FontNotFound

from companion import CompanionApp
from config_validation import ConfigValidationError, validate_settings
from radio_interface import BaseRadioError
from radio_models import RadioConnectionConfig
from radio_registry import RADIO_DRIVERS
from ui_status import show_radio_data, status_clear
from utils import pretty_duration

# On Windows terminals, force UTF-8 so accents render OK.
if os.name == "nt":
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except (AttributeError, OSError):
        pass

PROGRAM_NAME = "Nextlog-Companion"
CURRENT_VERSION = "0.1.0"

# ANSI colors for terminal output
COLOR_CYAN = "\033[96m"
COLOR_YELLOW = "\033[93m"
COLOR_RESET = "\033[0m"

logger = None


def print_banner_safe(title: str = "NEXTLOG"):
    """Print a banner; plain text when NO_FIGLET=1 or no font is available."""
    if os.getenv("NO_FIGLET") == "1":
        print("\n" + title + "\n")
        return
    for font in ("slant", "standard"):
        try:
            print(Figlet(font=font, width=120).renderText(title))
            return
        except FontNotFound:
            continue
    print("\n" + title + "\n")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nextlog-companion",
        description=f"{PROGRAM_NAME}: radio status and WSJT-X contact forwarding for Nextlog",
    )
    parser.add_argument("--settings", default="settings.yml", help="Settings file (YAML)")
    parser.add_argument("--host", help="Radio host/IP (defaults to the last connected host)")
    parser.add_argument("--port", type=int, help="Radio TCP port (defaults to the last connected port)")
    parser.add_argument(
        "--type",
        dest="radio_type",
        help=f"Radio family ({', '.join(RADIO_DRIVERS.keys())})",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--clear-logs", action="store_true", help="Delete old log files and exit")
    parser.add_argument("--once", action="store_true", help="Connect, print one radio snapshot as JSON and exit")
    parser.add_argument("--no-wsjtx", action="store_true", help="Do not start the WSJT-X UDP listener")
    return parser


def radio_config_from_args(app: CompanionApp, args: argparse.Namespace) -> RadioConnectionConfig:
    """Last connected radio from settings, overridden by --type/--host/--port."""
    base = app.default_radio_config()
    data: Dict[str, Any] = {"type": base.type, "host": base.host, "port": base.port}
    if args.radio_type:
        data["type"] = args.radio_type
    if args.host:
        data["host"] = args.host
    if args.port:
        data["port"] = args.port
    return RadioConnectionConfig.from_dict(data)


def print_snapshot(app: CompanionApp) -> int:
    data = app.snapshot()
    if data is None:
        print(json.dumps({"connected": app.session.is_connected(), "data": None}))
        return 1
    print(json.dumps({"connected": True, "data": data.to_dict()}, indent=2))
    return 0


def run_live(app: CompanionApp) -> None:
    """Render live snapshots until Ctrl+C."""
    stop = threading.Event()

    def on_data(data):
        status = app.wsjtx.get_status() if app.wsjtx else None
        show_radio_data(data, status.mode if status else None)

    def on_contact(result):
        contact, response = result
        status_clear()
        state = "submitted" if response and response.success else "journaled"
        print(f"{COLOR_YELLOW}QSO {contact.callsign} {contact.band} {contact.mode} ({state}){COLOR_RESET}")

    app.session.events.subscribe("data-update", on_data)
    app.events.subscribe("contact-processed", on_contact)
    print("Press Ctrl+C to quit.\n")
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        app.session.events.unsubscribe("data-update", on_data)
        app.events.unsubscribe("contact-processed", on_contact)
        status_clear()


def graceful_exit(app: Optional[CompanionApp], started: float, show_banner: bool = True) -> None:
    if app is not None:
        app.close()
    if show_banner:
        print("\n" + "=" * 80)
        print(f"{COLOR_YELLOW}Session completed after {pretty_duration(time.monotonic() - started)}.{COLOR_RESET}")
        print("=" * 80 + "\n")
        print(COLOR_CYAN, end="")
        try:
            print_banner_safe("73")
        finally:
            print(COLOR_RESET, end="")


def main(argv: Optional[List[str]] = None) -> int:
    global logger
    args = build_arg_parser().parse_args(argv)

    from loghandler import clear_old_logs, setup_logging

    if args.clear_logs:
        clear_old_logs("logs")
        print("[logs] Old logs deleted.")
        return 0

    logger, contact_log_path = setup_logging(log_dir="logs", debug=args.debug)
    if not args.once:
        print_banner_safe("NEXTLOG")
    logger.info(f"{PROGRAM_NAME} - v{CURRENT_VERSION}")
    logger.debug(f"Contacts journal: {contact_log_path}")

    started = time.monotonic()
    app = CompanionApp(args.settings, enable_wsjtx=False if args.no_wsjtx or args.once else None)
    try:
        validate_settings(app.settings.get_all_settings(), logger)
        config = radio_config_from_args(app, args)
        app.start()

        if not app.connect_radio(config):
            logger.error(f"[FATAL] Could not connect to radio: {app.session.last_error}")
            if args.once:
                return 1
            logger.info("Continuing without radio; WSJT-X contacts are still forwarded.")

        if args.once:
            return print_snapshot(app)

        run_live(app)
        return 0
    finally:
        graceful_exit(app, started, show_banner=not args.once)


def run() -> None:
    try:
        sys.exit(main())
    except ConfigValidationError as e:
        logger and logger.error(f"[CONFIG ERROR] {e}")
        sys.exit(2)
    except BaseRadioError as e:
        logger and logger.error(f"[FATAL] Radio error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
