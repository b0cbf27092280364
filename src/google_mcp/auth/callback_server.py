"""Loopback HTTP listener for the OAuth redirect.

The listener runs ``http.server`` in an executor thread and reports
back through callables supplied by the session manager. It only binds
to 127.0.0.1 and lives for a single interactive flow.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

from google_mcp.auth.errors import CallbackError
from google_mcp.auth.ports import LOOPBACK_HOST

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth2callback"
HANDLER_TIMEOUT_SECONDS = 5.0

SUCCESS_PAGE = b"""<html>
  <body style="font-family: system-ui; display: flex; justify-content: center; align-items: center; height: 100vh; margin: 0; background: #1a1a2e;">
    <div style="text-align: center; color: #eee;">
      <h1 style="color: #4ade80;">Authentication Successful!</h1>
      <p>You can close this window and return to your application.</p>
    </div>
  </body>
</html>"""

FAILURE_PAGE = (
    b"<html><body><h1>Authentication Failed</h1>"
    b"<p>No authorization code received. Please close this window and try again.</p>"
    b"</body></html>"
)

ERROR_PAGE = (
    b"<html><body><h1>Authentication Error</h1>"
    b"<p>The authorization code could not be exchanged. Please try again.</p>"
    b"</body></html>"
)


def build_redirect_uri(port: int, host: str = LOOPBACK_HOST) -> str:
    """Redirect URI for a listener on ``port``.

    Desktop OAuth clients accept any loopback port, so a new URI is
    built for every attempt.
    """
    return f"http://{host}:{port}{CALLBACK_PATH}"


@dataclass
class PendingAuthorization:
    """State of one interactive authorization.

    ``outcome`` is settled at most once, with True for success and False
    for failure or timeout. Only touch it from the event loop thread.
    """

    port: int
    redirect_uri: str
    deadline: float
    outcome: "asyncio.Future[bool]"
    server: "OAuthCallbackServer | None" = field(default=None, repr=False)

    def resolve(self, success: bool) -> bool:
        """Settle the outcome.

        Returns:
            True if this call settled it, False if it was already settled.
        """
        if self.outcome.done():
            return False
        self.outcome.set_result(success)
        return True


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect."""

    server: "OAuthCallbackServer"

    # Browsers open speculative connections that never send a request
    timeout = HANDLER_TIMEOUT_SECONDS

    def log_message(self, format: str, *args) -> None:
        """Route request logs to the module logger."""
        logger.debug("OAuth callback: " + format, *args)

    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:
        """Handle GET request from OAuth redirect."""
        request = urlparse(self.path)

        # Stray requests (favicon etc.) must not end the flow
        if request.path != self.server.callback_path:
            self._respond(404, b"Not Found")
            return

        params = parse_qs(request.query)

        if "error" in params:
            self._respond(400, FAILURE_PAGE)
            reason = f"Authorization denied: {params['error'][0]}"
            self.server.on_failure(CallbackError(reason))
            return

        code = params.get("code", [""])[0]
        if not code:
            self._respond(400, FAILURE_PAGE)
            self.server.on_failure(CallbackError("No authorization code received"))
            return

        try:
            accepted = self.server.on_code(code)
        except Exception as e:  # anything raised while handing the code over
            logger.error("OAuth callback error: %s", e)
            self.server.on_failure(CallbackError(str(e)))
            accepted = False

        if accepted:
            self._respond(200, SUCCESS_PAGE)
        else:
            self._respond(500, ERROR_PAGE)


class OAuthCallbackServer(ThreadingHTTPServer):
    """Single-flow OAuth redirect listener.

    Each connection is handled on its own daemon thread, so an idle
    connection cannot hold up the redirect or the shutdown.

    Attributes:
        callback_path: Path that carries the redirect.
        on_code: Called from the server thread with the authorization code.
            Blocks until the code is exchanged; returns True on success.
        on_failure: Called from the server thread with a CallbackError when the
            redirect carries no usable code.
    """

    daemon_threads = True

    def __init__(
        self,
        port: int,
        on_code: Callable[[str], bool],
        on_failure: Callable[[CallbackError], None],
        host: str = LOOPBACK_HOST,
        callback_path: str = CALLBACK_PATH,
    ) -> None:
        self.on_code = on_code
        self.on_failure = on_failure
        self.callback_path = callback_path
        super().__init__((host, port), OAuthCallbackHandler)


@asynccontextmanager
async def serving(
    server: OAuthCallbackServer, on_error: Callable[[BaseException], None]
) -> AsyncIterator[OAuthCallbackServer]:
    """Run ``server`` in the default executor for the duration of the block.

    The server is shut down and its socket closed on every exit path.

    Args:
        server: A bound callback server.
        on_error: Called on the event loop if the serve loop dies.
    """
    loop = asyncio.get_running_loop()
    serve_task = loop.run_in_executor(None, server.serve_forever)

    def _report(future: "asyncio.Future[None]") -> None:
        if not future.cancelled() and future.exception() is not None:
            on_error(future.exception())

    serve_task.add_done_callback(_report)
    try:
        yield server
    finally:
        # shutdown() waits for serve_forever, so skip it if the loop already died
        if not serve_task.done():
            await loop.run_in_executor(None, server.shutdown)
        server.server_close()
        logger.debug("OAuth callback server on port %d closed", server.server_port)
