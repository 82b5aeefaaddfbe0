"""
=============================================================================
USER SERVICE CLI
=============================================================================

    python -m userservice                       # 127.0.0.1:8080
    python -m userservice --port 3000
    python -m userservice --host 0.0.0.0        # containers
    python -m userservice --workers 8           # 8-16 worker threads
    python -m userservice --log-format json     # JSON access log

Unset options fall back to USERSERVICE_* environment variables, then to
the ServerConfig defaults.

Exit status is 0 after a clean shutdown (Ctrl+C, SIGTERM) and 1 when the
server could not start.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .server import UserServer


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userservice",
        description="In-memory user registry over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m userservice                      # Run with defaults
  python -m userservice --port 3000          # Custom port
  python -m userservice --host 0.0.0.0       # Listen on all interfaces
  python -m userservice --workers 8          # 8 worker threads
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on, 0 for any free port (default: {defaults.port})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (max will be 2x this)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level,
        help=f"Logging level (default: {defaults.log_level})"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=defaults.log_format,
        help=f"Access log format (default: {defaults.log_format})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"userservice {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, defaults: ServerConfig) -> ServerConfig:
    """Overlay parsed CLI arguments on top of the environment defaults."""
    min_workers, max_workers = defaults.min_workers, defaults.max_workers
    if args.workers is not None:
        min_workers, max_workers = args.workers, args.workers * 2

    return ServerConfig(
        host=args.host,
        port=args.port,
        timeout=defaults.timeout,
        min_workers=min_workers,
        max_workers=max_workers,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv: Optional[List[str]] = None) -> int:
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"userservice: invalid environment: {e}", file=sys.stderr)
        return 1

    args = build_parser(defaults).parse_args(argv)

    try:
        server = UserServer(config_from_args(args, defaults))
        server.run(banner=True)
    except (OSError, ValueError) as e:
        print(f"userservice: failed to start: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
