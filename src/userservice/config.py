"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of the service in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION SOURCES                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── python -m userservice --port 3000                          │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── USERSERVICE_PORT=3000 python -m userservice                │
    │                                                                     │
    │   3. Defaults below                                                 │
    │      └── 127.0.0.1:8080                                             │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


ENV_PREFIX = "USERSERVICE_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the user service.

    Development:
        ServerConfig(log_level="DEBUG")

    Tests (let the OS pick a port):
        ServerConfig(port=0, min_workers=2, max_workers=4)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """TCP port. 0 asks the OS for a free one."""

    backlog: int = 128
    """Pending connections the kernel queues before refusing new ones."""

    buffer_size: int = 8192
    """Bytes read per recv() call."""

    timeout: Optional[float] = 30.0
    """Seconds a client gets to send its request. None waits forever."""

    max_request_size: int = 1024 * 1024
    """Largest request accepted, headers plus body. Larger ones get 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    queue_size: int = 100
    """Connections waiting for a worker. When full, clients get 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: "text" (Apache-like) or "json"."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "userservice/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from environment variables.

            USERSERVICE_HOST        bind address      (127.0.0.1)
            USERSERVICE_PORT        port              (8080)
            USERSERVICE_WORKERS     max workers       (16)
            USERSERVICE_TIMEOUT     read timeout, s   (30)
            USERSERVICE_LOG_LEVEL   logging level     (INFO)
            USERSERVICE_LOG_FORMAT  text | json       (text)

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        defaults = cls()
        max_workers = int(_env("WORKERS", str(defaults.max_workers)))

        return cls(
            host=_env("HOST", defaults.host),
            port=int(_env("PORT", str(defaults.port))),
            min_workers=min(defaults.min_workers, max_workers),
            max_workers=max_workers,
            timeout=float(_env("TIMEOUT", str(defaults.timeout))),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            log_format=_env("LOG_FORMAT", defaults.log_format).lower(),
        )

    def validate(self) -> None:
        """
        Reject impossible values at startup rather than at first use.

        Raises:
            ValueError: Describing the first invalid setting found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)
