#!/usr/bin/env python3
"""
ICS Relay CLI.

Runs the relay server, performs a one-shot download, or checks the
configuration.
"""

import argparse
from dataclasses import replace
import logging
from pathlib import Path
import sys
from typing import Optional

from .config import Config
from .exceptions import ConfigurationError, UpstreamFetchError
from .fetcher import download_calendar

logger = logging.getLogger("ics_relay")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all CLI commands."""
    parser = argparse.ArgumentParser(
        prog="ics-relay",
        description="ICS Relay: authenticated pass-through for an upstream calendar",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ics-relay serve                  # Serve /calendar.ics (default)
  ics-relay serve --port 9000      # Serve on a different port
  ics-relay serve --no-auth        # Serve without the access token
  ics-relay fetch -o out.ics       # Download once and write to a file
  ics-relay check                  # Validate configuration
  ics-relay --version              # Show version information

Environment:
  ICS_URL, ACCESS_TOKEN, PORT, HOST, UPSTREAM_TIMEOUT, AUTH_ENABLED
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {_get_version()}"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="optional YAML configuration file (environment is used otherwise)",
    )
    parser.add_argument("--debug", action="store_true", help="enable debug output")

    subparsers = parser.add_subparsers(
        dest="command", help="available commands", required=False
    )

    serve_parser = subparsers.add_parser("serve", help="run the relay HTTP server")
    serve_parser.add_argument("--host", type=str, help="interface to bind to")
    serve_parser.add_argument("--port", type=int, help="port to listen on")
    serve_parser.add_argument(
        "--no-auth",
        action="store_true",
        help="serve the calendar without requiring the access token",
    )

    fetch_parser = subparsers.add_parser(
        "fetch", help="download the calendar once and write it to a file"
    )
    fetch_parser.add_argument(
        "-o", "--output", type=str, help="output file (default: calendar.ics)"
    )

    subparsers.add_parser("check", help="validate configuration and exit")

    return parser


def _get_version() -> str:
    """Get the package version."""
    try:
        from ics_relay import __version__

        return __version__
    except ImportError:
        return "0.0.0-dev"


def _setup_logging(debug: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_config(config_path: Optional[str]) -> Config:
    if config_path:
        return Config.from_file(config_path)
    return Config.from_defaults()


def _mask(token: Optional[str]) -> str:
    if not token:
        return "(none)"
    if len(token) <= 4:
        return "*" * len(token)
    return f"{token[:2]}{'*' * (len(token) - 4)}{token[-2:]}"


def cmd_serve(config: Config, args) -> int:
    """Handle the serve command."""
    from .web import IcsRelayServer

    require_token = False if getattr(args, "no_auth", False) else None
    settings = config.to_settings(require_token=require_token)

    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        if not 1 <= args.port <= 65535:
            raise ConfigurationError(
                [f"--port must be between 1 and 65535, got {args.port}"]
            )
        overrides["port"] = args.port
    if overrides:
        settings = replace(settings, **overrides)

    if not settings.auth_enabled:
        logger.warning("Authentication disabled: calendar is served to anyone")

    IcsRelayServer(settings).run()
    return 0


def cmd_fetch(config: Config, args) -> int:
    """Handle the one-shot fetch command."""
    settings = config.to_settings(require_token=False)
    output = Path(args.output or settings.fetch_output)

    try:
        content = download_calendar(settings)
    except UpstreamFetchError as e:
        print(f"❌ Download failed: {e}")
        return 1

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(content)
    except OSError as e:
        print(f"❌ Could not write {output}: {e}")
        return 1

    print(f"✅ Calendar saved to {output} ({len(content)} bytes)")
    return 0


def cmd_check(config: Config, args) -> int:
    """Validate configuration and print a summary."""
    settings = config.to_settings()

    print("🔧 ICS Relay configuration")
    print(f"   Source:       {config.config_path}")
    print(f"   Upstream URL: {settings.ics_url}")
    print(f"   Auth:         {'enabled' if settings.auth_enabled else 'disabled'}")
    print(f"   Token:        {_mask(settings.access_token)}")
    print(f"   Binding:      {settings.host}:{settings.port}")
    print(f"   Timeout:      {settings.upstream_timeout:g}s")
    print("✅ Configuration is valid")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.debug)

    command = args.command or "serve"

    try:
        config = _load_config(args.config)

        if command == "serve":
            return cmd_serve(config, args)
        elif command == "fetch":
            return cmd_fetch(config, args)
        elif command == "check":
            return cmd_check(config, args)
        else:
            print(f"❌ Unknown command: {command}")
            return 1

    except ConfigurationError as e:
        for problem in e.problems:
            logger.error("Configuration error: %s", problem)
        return 1
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
