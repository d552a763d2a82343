"""
One-shot loopback listener for the OAuth redirect.

The listener binds the port from the registered redirect URI, answers every
request with the same plain-text confirmation so the browser tab can be
closed, and turns only the first request into a CallbackResult, after which
it shuts itself down. It runs a Flask app on a threaded Werkzeug server in a
background thread and can be stopped from any thread, including the one
delivering the result.
"""

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from flask import Flask, Response, request
from werkzeug.serving import BaseWSGIServer, make_server

from .exceptions import CallbackBindError

logger = logging.getLogger(__name__)

CONFIRMATION_MESSAGE = "OK. Authorization finished, you can close this tab."


@dataclass
class CallbackResult:
    """
    The redirect request received by the callback listener.

    Attributes:
        authorization_code: Authorization code from the query string
        error: Error code from the OAuth provider (or "missing_code")
        error_description: Human-readable error description
    """

    authorization_code: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.authorization_code)

    @classmethod
    def from_query(cls, args: Mapping[str, str]) -> "CallbackResult":
        """Build a result from redirect query parameters; an error wins over a code."""
        error = args.get("error")
        if error:
            return cls(
                error=error,
                error_description=args.get("error_description", "Unknown error"),
            )

        code = args.get("code")
        if not code:
            return cls(
                error="missing_code",
                error_description="No authorization code received",
            )

        return cls(authorization_code=code)


class CallbackListener:
    """
    Local HTTP server that receives exactly one OAuth redirect.

    Lifecycle: start() binds synchronously (raising CallbackBindError if the
    port is taken), the first request is answered, the listener stops itself
    and only then hands the result to the on_result callback. stop() releases
    the port early, e.g. on timeout or cancel.
    """

    def __init__(
        self,
        host: str,
        port: int,
        confirmation_message: str = CONFIRMATION_MESSAGE,
    ):
        """
        Initialize callback listener.

        Args:
            host: Interface to bind (from the redirect URI)
            port: Port to bind; 0 picks a free port
            confirmation_message: Plain-text body sent to the browser
        """
        if not isinstance(port, int) or not (0 <= port <= 65535):
            raise ValueError(f"port must be between 0 and 65535, got {port}")

        self.host = host
        self._port = port
        self.confirmation_message = confirmation_message
        self.result: Optional[CallbackResult] = None

        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)
        self.app.add_url_rule(
            "/",
            "oauth_callback",
            self._handle_callback,
            defaults={"path": ""},
            methods=["GET", "POST"],
        )
        self.app.add_url_rule(
            "/<path:path>",
            "oauth_callback_path",
            self._handle_callback,
            methods=["GET", "POST"],
        )

        self._server: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None
        self._on_result: Optional[Callable[[CallbackResult], None]] = None
        self._lock = threading.Lock()
        self._consumed = False
        self._received = threading.Event()

    @property
    def port(self) -> int:
        """The bound port once listening, otherwise the requested port."""
        if self._server is not None:
            return self._server.port
        return self._port

    @property
    def is_listening(self) -> bool:
        return self._server is not None

    def start(self, on_result: Callable[[CallbackResult], None]) -> "CallbackListener":
        """
        Bind the port and start serving in a background thread.

        Args:
            on_result: Called once with the first request's CallbackResult

        Returns:
            self, as the listening handle

        Raises:
            CallbackBindError: If the port cannot be bound
            RuntimeError: If the listener was already started
        """
        with self._lock:
            if self._server is not None or self._consumed:
                raise RuntimeError("CallbackListener is single-use and already started")

            try:
                sock = socket.create_server((self.host, self._port))
            except OSError as e:
                logger.error(f"Could not bind callback port {self.host}:{self._port}: {e}")
                raise CallbackBindError(
                    f"Callback port {self._port} on {self.host} is unavailable: {e}"
                ) from e

            try:
                self._server = make_server(
                    self.host, self._port, self.app, threaded=True, fd=sock.fileno()
                )
            finally:
                sock.close()

            self._on_result = on_result
            self._thread = threading.Thread(
                target=self._server.serve_forever,
                name=f"oauth-callback-{self._server.port}",
                daemon=True,
            )
            self._thread.start()

        logger.info(f"OAuth callback listener started on {self.host}:{self.port}")
        return self

    def _handle_callback(self, path: str = "") -> Response:
        """Answer any request; convert only the first one into a result."""
        response = Response(
            self.confirmation_message,
            status=200,
            content_type="text/plain; charset=utf-8",
        )

        with self._lock:
            first = not self._consumed
            self._consumed = True

        if not first:
            logger.debug(f"Ignoring extra request to /{path} after the callback")
            return response

        result = CallbackResult.from_query(request.args)
        self.result = result
        if result.success:
            logger.info("Authorization code received")
        else:
            logger.warning(
                f"OAuth callback carried an error: {result.error} - {result.error_description}"
            )

        response.call_on_close(lambda: self._deliver(result))
        return response

    def _deliver(self, result: CallbackResult) -> None:
        # The port is released before anyone is told about the result.
        self.stop()
        self._received.set()
        if self._on_result is not None:
            self._on_result(result)

    def wait_for_callback(self, timeout: Optional[float] = None) -> Optional[CallbackResult]:
        """
        Block until the first request arrives.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            The CallbackResult, or None on timeout
        """
        if self._received.wait(timeout=timeout):
            return self.result
        return None

    def stop(self) -> None:
        """
        Stop serving and release the port. Safe to call more than once and
        from the thread that delivers the result.
        """
        with self._lock:
            server, thread = self._server, self._thread
            self._server = None
            self._thread = None
            if server is not None:
                # A stopped listener never produces a result.
                self._consumed = True

        if server is None:
            return

        server.shutdown()
        server.server_close()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        logger.info("OAuth callback listener stopped")
