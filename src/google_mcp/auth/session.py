"""OAuth session manager for Google Workspace.

The session manager owns the authentication state of the process:

    uninitialized --initialize()--> initialized | authenticated
    initialized  --authenticate()--> authenticated | initialized
    authenticated --logout()--> initialized

One instance is created by the process entry point and handed to the
API wrappers, which call ``get_client()`` or ``get_credentials()`` at
request time.

No exception leaves the public methods. Failures are logged and
reported as False/None so callers can treat "not authenticated" as a
plain state check.
"""

import asyncio
import logging
import sys
import webbrowser
from pathlib import Path

import httpx
from google.oauth2.credentials import Credentials

from google_mcp.auth.callback_server import (
    OAuthCallbackServer,
    PendingAuthorization,
    build_redirect_uri,
    serving,
)
from google_mcp.auth.client import OAuthClient
from google_mcp.auth.credential_store import CredentialStore
from google_mcp.auth.errors import (
    AuthTimeoutError,
    CallbackError,
    ConfigurationAbsentError,
    NoPortAvailableError,
    TokenRefreshError,
)
from google_mcp.auth.models import ClientCredentials, SessionState, TokenSet
from google_mcp.auth.ports import PORT_RANGE_END, PORT_RANGE_START, find_available_port

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 300.0
CREDENTIALS_HELP_URL = "https://console.cloud.google.com/apis/credentials"


class SessionManager:
    """Authentication state machine for one process.

    Attributes:
        store: Credential and token storage.
        scopes: Scopes requested during authorization.
        port_range: Inclusive range searched for the callback listener.
        auth_timeout: Seconds an interactive flow may wait for the redirect.
        open_browser: Whether to launch the system browser.

    Example:
        ```python
        session = SessionManager()
        if not await session.initialize():
            await session.authenticate()

        if session.is_ready():
            credentials = session.get_credentials()
        ```
    """

    def __init__(
        self,
        store: CredentialStore | None = None,
        scopes: list[str] | None = None,
        port_range: tuple[int, int] = (PORT_RANGE_START, PORT_RANGE_END),
        auth_timeout: float = AUTH_TIMEOUT_SECONDS,
        open_browser: bool = True,
    ) -> None:
        self.store = store or CredentialStore()
        self.scopes = scopes
        self.port_range = port_range
        self.auth_timeout = auth_timeout
        self.open_browser = open_browser

        self._client: OAuthClient | None = None
        self._authenticated = False
        self._pending: PendingAuthorization | None = None
        self._flow_lock = asyncio.Lock()

        self.store.ensure_directories()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self._client is None:
            return SessionState.UNINITIALIZED
        if self._authenticated:
            return SessionState.AUTHENTICATED
        return SessionState.INITIALIZED

    @property
    def pending(self) -> PendingAuthorization | None:
        """The interactive flow in progress, if any."""
        return self._pending

    @property
    def credentials_path(self) -> Path:
        return self.store.credentials_path

    @property
    def token_path(self) -> Path:
        return self.store.token_path

    def is_ready(self) -> bool:
        """Check whether API calls may proceed."""
        return self._authenticated and self._client is not None

    def get_client(self) -> OAuthClient | None:
        """Get the client handle, authenticated or not."""
        return self._client

    def get_credentials(self) -> Credentials | None:
        """Get Google credentials for API use.

        Returns:
            Google OAuth2 credentials, or None if not authenticated.
        """
        if not self.is_ready():
            return None
        return self._client.credentials  # type: ignore[union-attr]

    def get_auth_url(self) -> str | None:
        """Authorization URL for the current client handle, or None if there is none."""
        if self._client is None:
            return None
        return self._client.authorization_url()

    # ------------------------------------------------------------------
    # Initialization and refresh
    # ------------------------------------------------------------------

    def _load_client_credentials(self) -> ClientCredentials:
        client = self.store.load_client_credentials()
        if client is None:
            raise ConfigurationAbsentError(
                f"No credentials found. Please place your Google OAuth credentials at: "
                f"{self.credentials_path}"
            )
        return client

    def _bind(self, client: OAuthClient, tokens: TokenSet, persist: bool) -> None:
        client.set_tokens(tokens)
        if persist:
            self.store.save_tokens(tokens)
        self._client = client
        self._authenticated = True

    async def initialize(self) -> bool:
        """Load credentials and tokens, refreshing expired tokens.

        Returns:
            True if the session is authenticated.
        """
        try:
            client_credentials = self._load_client_credentials()
        except ConfigurationAbsentError as e:
            logger.error("%s", e)
            logger.error("You can download credentials from: %s", CREDENTIALS_HELP_URL)
            return False

        try:
            client = OAuthClient.from_client_credentials(client_credentials, scopes=self.scopes)
        except ValueError as e:
            logger.error("Invalid OAuth client configuration: %s", e)
            return False

        self._client = client
        self._authenticated = False

        tokens = self.store.load_tokens()
        if tokens is None:
            logger.info("No stored tokens; interactive authentication required")
            return False

        client.set_tokens(tokens)
        if not tokens.is_expired():
            self._authenticated = True
            return True

        logger.info("Access token expired, attempting refresh...")
        try:
            refreshed = await self._refresh(client)
        except TokenRefreshError as e:
            logger.error("Error refreshing token, re-authentication required: %s", e)
            # The token file is left alone; only logout() deletes it
            client.clear_tokens()
            return False

        self._bind(client, refreshed, persist=True)
        logger.info("Access token refreshed")
        return True

    async def _refresh(self, client: OAuthClient) -> TokenSet:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, client.refresh)
        except TokenRefreshError:
            raise
        except Exception as e:  # transport errors from google-auth/requests
            raise TokenRefreshError(str(e)) from e

    async def initialize_with_auth(self) -> bool:
        """Initialize, then run the interactive flow if no session could be restored.

        Returns:
            True if the session is authenticated.
        """
        if await self.initialize():
            return True

        if self._client is not None:
            logger.info("No valid tokens found, starting authentication flow...")
            return await self.authenticate()

        return False

    # ------------------------------------------------------------------
    # Interactive authorization
    # ------------------------------------------------------------------

    async def authenticate(self) -> bool:
        """Run the interactive browser flow.

        Concurrent calls are serialized; a call that waited for another
        flow returns True if that flow succeeded.

        Returns:
            True if the session is authenticated.
        """
        if self.is_ready():
            return True

        async with self._flow_lock:
            if self.is_ready():
                return True
            try:
                return await self._run_interactive_flow()
            except (ConfigurationAbsentError, NoPortAvailableError) as e:
                logger.error("Authentication aborted: %s", e)
            except OSError as e:
                logger.error("OAuth callback server error: %s", e)
            except Exception as e:  # provider and library errors end the flow
                logger.exception("Authentication failed: %s", e)
            return False

    async def _run_interactive_flow(self) -> bool:
        if self._client is None:
            await self.initialize()
            if self._client is None:
                raise ConfigurationAbsentError("OAuth client credentials are unavailable")
            if self.is_ready():
                return True

        port = find_available_port(*self.port_range)
        logger.info("Found available port: %d", port)

        # Credentials are re-read because the redirect URI changes per attempt.
        # The same client exchanges the code, so it can hold the PKCE verifier.
        redirect_uri = build_redirect_uri(port)
        client = OAuthClient.from_client_credentials(
            self._load_client_credentials(),
            redirect_uri=redirect_uri,
            scopes=self.scopes,
            use_pkce=True,
        )
        self._client = client
        auth_url = client.authorization_url()

        loop = asyncio.get_running_loop()
        pending = PendingAuthorization(
            port=port,
            redirect_uri=redirect_uri,
            deadline=loop.time() + self.auth_timeout,
            outcome=loop.create_future(),
        )

        def on_code(code: str) -> bool:
            future = asyncio.run_coroutine_threadsafe(
                self._complete_callback(client, pending, code), loop
            )
            return future.result()

        def on_failure(error: CallbackError) -> None:
            logger.error("OAuth callback failed: %s", error)
            loop.call_soon_threadsafe(pending.resolve, False)

        def on_error(error: BaseException) -> None:
            logger.error("OAuth server error: %s", error)
            pending.resolve(False)

        pending.server = OAuthCallbackServer(port, on_code, on_failure)
        self._pending = pending
        try:
            async with serving(pending.server, on_error):
                logger.info("OAuth callback server listening on port %d", port)
                self._launch_browser(auth_url)
                return await self._wait_for_outcome(pending)
        finally:
            self._pending = None

    async def _wait_for_outcome(self, pending: PendingAuthorization) -> bool:
        loop = asyncio.get_running_loop()
        remaining = max(pending.deadline - loop.time(), 0)
        try:
            await asyncio.wait_for(asyncio.shield(pending.outcome), timeout=remaining)
        except asyncio.TimeoutError:
            error = AuthTimeoutError(f"No OAuth redirect within {self.auth_timeout:.0f}s")
            logger.error("Authentication timeout - closing OAuth server: %s", error)
            pending.resolve(False)
        return pending.outcome.result()

    async def _complete_callback(
        self, client: OAuthClient, pending: PendingAuthorization, code: str
    ) -> bool:
        if pending.outcome.done():
            return False

        loop = asyncio.get_running_loop()
        try:
            tokens = await loop.run_in_executor(None, client.exchange_code, code)
        except Exception as e:  # oauthlib, requests and google-auth errors
            logger.error("Error exchanging auth code: %s", e)
            pending.resolve(False)
            return False

        # The flow may have timed out while the exchange was running
        if not pending.resolve(True):
            return False

        self._bind(client, tokens, persist=True)
        logger.info("Authentication successful")
        return True

    def _launch_browser(self, auth_url: str) -> None:
        print("Opening browser for Google authorization...", file=sys.stderr)
        print(f"If browser doesn't open, visit: {auth_url}", file=sys.stderr)
        if not self.open_browser:
            return
        try:
            if not webbrowser.open(auth_url):
                logger.warning("Could not launch a browser; open the URL manually")
        except webbrowser.Error as e:
            logger.warning("Could not launch a browser: %s", e)

    async def set_auth_code(self, code: str) -> bool:
        """Exchange an authorization code obtained out-of-band.

        Args:
            code: Authorization code copied from the redirect.

        Returns:
            True if the session is authenticated.
        """
        if self._client is None:
            await self.initialize()
        if self._client is None:
            return False

        client = self._client
        loop = asyncio.get_running_loop()
        try:
            tokens = await loop.run_in_executor(None, client.exchange_code, code)
        except Exception as e:  # oauthlib, requests and google-auth errors
            logger.error("Error exchanging auth code: %s", e)
            return False

        self._bind(client, tokens, persist=True)
        return True

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def _revocation_client(self) -> OAuthClient | None:
        """Client holding the grant to revoke.

        Falls back to the stored tokens, unrefreshed, when none are bound,
        for example after a failed refresh or before ``initialize()``.
        """
        if self._client is not None and self._client.tokens is not None:
            return self._client

        tokens = self.store.load_tokens()
        if tokens is None:
            return self._client

        client = self._client
        if client is None:
            client_credentials = self.store.load_client_credentials()
            if client_credentials is None:
                return None
            try:
                client = OAuthClient.from_client_credentials(client_credentials, scopes=self.scopes)
            except ValueError as e:
                logger.error("Invalid OAuth client configuration: %s", e)
                return None
        client.set_tokens(tokens)
        return client

    async def logout(self) -> None:
        """Delete stored tokens, end the session and revoke the grant.

        Revocation is best effort; the local session ends regardless.
        """
        client = self._revocation_client()

        try:
            if self.store.delete_tokens():
                logger.info("Deleted token file: %s", self.token_path)
        except OSError as e:
            logger.error("Error deleting token file %s: %s", self.token_path, e)

        self._authenticated = False
        if client is None:
            return

        try:
            await client.revoke()
        except httpx.HTTPError as e:
            logger.debug("Token revocation failed (ignored): %s", e)
        finally:
            client.clear_tokens()
