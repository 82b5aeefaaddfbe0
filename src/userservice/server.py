"""
=============================================================================
USER SERVICE SERVER
=============================================================================

Ties the pieces together:

    ┌──────────────┐   Connection   ┌────────────┐   Connection   ┌────────┐
    │ SocketServer │ ─────────────► │ ThreadPool │ ─────────────► │ worker │
    └──────────────┘                └────────────┘                └───┬────┘
                                                                      │
         read_request() → RequestParser → middleware → Dispatcher ◄───┘
                                                           │
                                                           ▼
                                                      UserStore

One UserStore lives for as long as the server does. Every worker shares
it; the store's own lock serializes access.

=============================================================================
FAILURE MAP
=============================================================================

    ┌──────────────────────────────────┬───────────────────────────────────┐
    │ What happened                    │ Client sees                       │
    ├──────────────────────────────────┼───────────────────────────────────┤
    │ worker queue full                │ 503 Service Unavailable           │
    │ client too slow                  │ 408 Request Timeout               │
    │ request over max_request_size    │ 413 Payload Too Large             │
    │ malformed request                │ 400 / 505 (from the parser)       │
    │ exception inside a handler       │ 500 Internal Server Error         │
    │ client hung up                   │ nothing, connection closed        │
    │ address already in use           │ run() raises OSError              │
    └──────────────────────────────────┴───────────────────────────────────┘

Keep-alive is not offered. Every response carries "Connection: close" and
the socket is closed after it is sent.

=============================================================================
"""

import logging
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .dispatch import Dispatcher
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, error_response,
)
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline
from .store import UserStore


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class UserServer:
    """
    HTTP front end for a UserStore.

        server = UserServer(ServerConfig(port=8080))
        server.run()  # Blocks until SIGINT/SIGTERM or shutdown()

    From another thread (tests):

        server = UserServer(ServerConfig(port=0))
        threading.Thread(target=server.run, daemon=True).start()
        server.wait_until_ready(5)
        host, port = server.address
        ...
        server.shutdown()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[UserStore] = None,
        access_log: bool = True
    ):
        """
        Args:
            config: Server configuration; defaults to ServerConfig().
            store: Store to serve. A new empty one when omitted.
            access_log: Install LoggingMiddleware in config.log_format.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._store = store if store is not None else UserStore()
        self._dispatcher = Dispatcher(self._store)

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            max_queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._middleware = MiddlewarePipeline()
        if access_log:
            self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

    @property
    def store(self) -> UserStore:
        return self._store

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once started with port 0."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    def use(self, middleware: Middleware) -> "UserServer":
        """Add middleware inside the ones already installed. Returns self."""
        self._middleware.add(middleware)
        self._handler = None
        return self

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run a parsed request through the middleware and the dispatcher."""
        if self._handler is None:
            self._handler = self._middleware.wrap(self._dispatcher.handle)
        return self._handler(request)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        banner: bool = False
    ):
        """
        Serve until shutdown() or SIGINT/SIGTERM (blocking).

        Args:
            host: Override config.host.
            port: Override config.port.
            banner: Print a startup banner to stdout.

        Raises:
            OSError: If the address cannot be bound.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._thread_pool.start()

        logger.info(f"Starting user service on {self.config.host}:{self.config.port}")
        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections; run() returns once workers drain."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _print_startup_banner(self):
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"║  {self.config.server_name} running")
        print(f"║  http://{self.config.host}:{self.config.port}")
        print(f"║  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("║  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        logging.getLogger("userservice").setLevel(level)

    def _shutdown(self):
        stats = self._thread_pool.stats
        logger.info(
            f"Shutting down server... "
            f"({stats['tasks']['completed']} connections served, "
            f"{stats['tasks']['failed']} failed, "
            f"{stats['tasks']['queued']} queued, "
            f"{stats['workers']['busy']}/{stats['workers']['total']} workers busy)"
        )
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool, or answer 503 if it is full."""
        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                timeout=self.config.timeout,
                block=False,
            )
        except RuntimeError:
            submitted = False  # Pool already shutting down

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Read, answer and close one request (runs in a worker thread)."""
        with conn:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except ValueError as e:
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                return
            except OSError as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return  # Client hung up

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                self._send_error(conn, HTTPStatus(e.status_code), str(e))
                return

            conn.state = ConnectionState.PROCESSING

            try:
                response = self.handle(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = error_response(
                    HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"
                )

            response.set_header("Connection", "close")
            conn.send_response(response.to_bytes(self.config.server_name))

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Answer a request that never reached the dispatcher."""
        response = error_response(status, message)
        conn.send_response(response.to_bytes(self.config.server_name))

