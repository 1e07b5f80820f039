#!/usr/bin/env python3
"""
FormSheet Command Line Interface
================================

Manual operations on the submission store.

Usage:
    formsheet serve          Start the HTTP server
    formsheet setup          Create the header row if missing
    formsheet test-submit    Record a sample submission
    formsheet notify         Send a notification for the last row
    formsheet export         Export the store as CSV
    formsheet about          Show version and contact
    formsheet config         Show the effective configuration
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .config import FormSheetConfig, config_to_dict, load_config
from .coordinator import SubmissionCoordinator
from .errors import FormSheetError
from .export import export_csv
from .logging_utils import SubmissionLogger, setup_logging
from .notifier import SubmissionNotifier
from .parser import request_from_fields, utc_now_iso
from .responses import to_response
from .schema import ensure_schema
from .store import HeaderStyle, create_store
from .version import __version__, get_banner

# =============================================================================
# ANSI Colors
# =============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[0;34m'
    CYAN = '\033[0;36m'
    BOLD = '\033[1m'
    NC = '\033[0m'  # No Color

    @classmethod
    def disable(cls):
        """Disable colors (for non-TTY output)."""
        cls.RED = cls.GREEN = cls.YELLOW = cls.BLUE = ''
        cls.CYAN = cls.BOLD = cls.NC = ''


def print_ok(msg: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.NC} {msg}")


def print_warn(msg: str) -> None:
    print(f"{Colors.YELLOW}⚠{Colors.NC} {msg}")


def print_error(msg: str) -> None:
    print(f"{Colors.RED}✗{Colors.NC} {msg}")


def print_info(msg: str) -> None:
    print(f"{Colors.BLUE}ℹ{Colors.NC} {msg}")


def print_header(msg: str) -> None:
    print(f"\n{Colors.BOLD}{Colors.CYAN}{msg}{Colors.NC}")
    print("=" * len(msg))


SAMPLE_SUBMISSION = {
    "nom": "Test",
    "prenom": "User",
    "email": "test@example.com",
    "telephone": "+216 12 345 678",
    "universite": "ESPRIT",
    "facebookLink": "https://facebook.com/testuser",
}


def _load(args: argparse.Namespace) -> FormSheetConfig:
    config = load_config(Path(args.config) if args.config else None)
    setup_logging(config.logging.level)
    return config


# =============================================================================
# CLI Commands
# =============================================================================

def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP server."""
    config = _load(args)
    if args.host:
        config.web.host = args.host
    if args.port:
        config.web.port = args.port

    from formsheet_web.server import run_server

    print_header(f"{config.form.title} - FormSheet v{__version__}")
    print_info(f"URL: http://{config.web.host}:{config.web.port}")
    run_server(config)
    return 0


def cmd_setup(args: argparse.Namespace) -> int:
    """Create the header row if the store has none."""
    config = _load(args)
    store = create_store(config)
    print_header("Header setup")
    try:
        with store.exclusive(config.store.lock_timeout):
            headers = ensure_schema(
                store,
                style=HeaderStyle(column_width=config.store.column_width),
                destructive_reset=config.store.destructive_reset,
            )
    except FormSheetError as e:
        print_error(e.message)
        return 1
    print_ok(f"{len(headers)} columns: {', '.join(headers)}")
    return 0


def cmd_test_submit(args: argparse.Namespace) -> int:
    """Record a sample submission and print the response."""
    config = _load(args)
    store = create_store(config)
    coordinator = SubmissionCoordinator(
        store,
        config,
        SubmissionLogger(Path(config.logging.log_dir), mask_secrets_enabled=config.logging.mask_secrets),
    )

    fields = dict(SAMPLE_SUBMISSION, timestamp=utc_now_iso())
    response = to_response(coordinator.handle_submission(request_from_fields(fields)))

    print_header("Test submission")
    print(json.dumps(response, ensure_ascii=False, indent=2))
    return 0 if response["result"] == "success" else 1


def cmd_notify(args: argparse.Namespace) -> int:
    """Send the notification for the store's last row."""
    config = _load(args)
    store = create_store(config)
    notifier = SubmissionNotifier(store, config)
    try:
        sent = notifier.notify_last_row()
    finally:
        notifier.shutdown()

    if sent:
        print_ok(f"Notification sent to {config.notify.recipient}")
        return 0
    print_warn("No notification sent (no submission row or delivery failure, see logs)")
    return 1


def cmd_export(args: argparse.Namespace) -> int:
    """Export the store as CSV."""
    config = _load(args)
    store = create_store(config)
    directory = Path(args.output or config.export.directory)
    try:
        path = export_csv(store, directory, config.export.filename_prefix, tz=config.tzinfo())
    except FormSheetError as e:
        print_error(e.message)
        return 1
    print_ok("Export réussi!")
    print_info(f"Fichier: {path.name}")
    print_info(str(path.resolve()))
    return 0


def cmd_about(args: argparse.Namespace) -> int:
    """Show version and contact."""
    config = _load(args)
    print(get_banner(config.form.title))
    print(config.form.subtitle)
    print(f"Version {__version__}")
    print(f"Contact: {config.form.contact}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show the effective configuration."""
    config = _load(args)
    print_header("FormSheet Configuration")
    print(yaml.dump(config_to_dict(config), default_flow_style=False, sort_keys=False, allow_unicode=True))
    return 0


# =============================================================================
# Main Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formsheet",
        description="FormSheet - Form submissions recorded in a shared sheet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  formsheet serve -p 8080     Start the HTTP server
  formsheet setup             Create the header row
  formsheet test-submit       Record a sample submission
  formsheet export -o out/    Export as CSV
        """
    )
    parser.add_argument("-c", "--config", help="Path to formsheet.yaml")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sub = subparsers.add_parser("serve", help="Start the HTTP server")
    sub.add_argument("--host", help="Bind address")
    sub.add_argument("-p", "--port", type=int, help="Port number")
    sub.set_defaults(func=cmd_serve)

    sub = subparsers.add_parser("setup", help="Create the header row if missing")
    sub.set_defaults(func=cmd_setup)

    sub = subparsers.add_parser("test-submit", help="Record a sample submission")
    sub.set_defaults(func=cmd_test_submit)

    sub = subparsers.add_parser("notify", help="Send a notification for the last row")
    sub.set_defaults(func=cmd_notify)

    sub = subparsers.add_parser("export", help="Export the store as CSV")
    sub.add_argument("-o", "--output", help="Output directory")
    sub.set_defaults(func=cmd_export)

    sub = subparsers.add_parser("about", help="Show version and contact")
    sub.set_defaults(func=cmd_about)

    sub = subparsers.add_parser("config", help="Show the effective configuration")
    sub.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    if not sys.stdout.isatty():
        Colors.disable()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
