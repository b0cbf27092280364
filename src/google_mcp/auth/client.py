"""OAuth client handle for Google Workspace.

``OAuthClient`` pairs a google-auth-oauthlib ``Flow`` (authorization URL
and code exchange) with the google-auth ``Credentials`` bound to the
current token set. API wrappers take the handle from the session
manager and authorize their requests with ``client.credentials``.
"""

import logging
from datetime import datetime, timezone

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from google_mcp.auth.errors import TokenRefreshError
from google_mcp.auth.models import ClientCredentials, TokenSet

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105 - public endpoint
GOOGLE_REVOKE_URI = "https://oauth2.googleapis.com/revoke"

DEFAULT_REDIRECT_URI = "http://localhost:3000/oauth2callback"

# Requested together on every interactive authorization
GOOGLE_WORKSPACE_SCOPES = [
    # Workspace core
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/tasks",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/contacts",
    "https://www.googleapis.com/auth/presentations",
    # YouTube
    "https://www.googleapis.com/auth/youtube",
    # Forms
    "https://www.googleapis.com/auth/forms.body",
    "https://www.googleapis.com/auth/forms.responses.readonly",
    # Chat
    "https://www.googleapis.com/auth/chat.spaces",
    "https://www.googleapis.com/auth/chat.spaces.create",
    "https://www.googleapis.com/auth/chat.messages",
    "https://www.googleapis.com/auth/chat.messages.create",
    "https://www.googleapis.com/auth/chat.memberships",
    # Meet
    "https://www.googleapis.com/auth/meetings.space.created",
    "https://www.googleapis.com/auth/meetings.space.readonly",
]


def tokens_from_credentials(
    credentials: Credentials, previous: TokenSet | None = None
) -> TokenSet:
    """Convert google-auth Credentials to a TokenSet.

    Args:
        credentials: Credentials after a code exchange or refresh.
        previous: Token set being replaced. Its refresh token is kept
            when the provider does not issue a new one.

    Returns:
        TokenSet with the credential data.
    """
    expiry_date = None
    if credentials.expiry:
        expires_at = credentials.expiry
        # google-auth stores naive UTC datetimes
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        expiry_date = int(expires_at.timestamp() * 1000)

    refresh_token = credentials.refresh_token
    if not refresh_token and previous is not None:
        refresh_token = previous.refresh_token

    scopes = credentials.scopes or (previous.scopes if previous else None)

    return TokenSet(  # nosec B106 - "Bearer" is OAuth token type, not a password
        access_token=credentials.token,
        refresh_token=refresh_token,
        expiry_date=expiry_date,
        scope=" ".join(scopes) if scopes else None,
        token_type="Bearer",
    )


class OAuthClient:
    """An OAuth client bound to one redirect URI and, optionally, a token set.

    Attributes:
        client_id: OAuth client ID.
        redirect_uri: Redirect URI used for authorization and code exchange.
        scopes: Scopes requested by ``authorization_url``.
        flow: google-auth-oauthlib Flow for this client.
        use_pkce: Whether the consent URL carries a PKCE challenge. The verifier
            only lives on ``flow``, so the code must be exchanged by this same
            client. Leave it off for codes pasted back into another process.
        tokens: Bound token set, or None.
        credentials: google-auth Credentials for the bound tokens, or None.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        scopes: list[str] | None = None,
        use_pkce: bool = False,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes or GOOGLE_WORKSPACE_SCOPES)
        self.use_pkce = use_pkce
        self.flow = Flow.from_client_config(
            {
                "installed": {
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "auth_uri": GOOGLE_AUTH_URI,
                    "token_uri": GOOGLE_TOKEN_URI,
                    "redirect_uris": [redirect_uri],
                }
            },
            scopes=self.scopes,
            redirect_uri=redirect_uri,
            autogenerate_code_verifier=use_pkce,
        )
        self.tokens: TokenSet | None = None
        self.credentials: Credentials | None = None

    @classmethod
    def from_client_credentials(
        cls,
        client: ClientCredentials,
        redirect_uri: str | None = None,
        scopes: list[str] | None = None,
        use_pkce: bool = False,
    ) -> "OAuthClient":
        """Create a client from stored credentials.

        Args:
            client: Loaded client credentials.
            redirect_uri: Redirect URI override. Defaults to the first
                registered URI, or DEFAULT_REDIRECT_URI if there is none.
            scopes: Scopes to request.
            use_pkce: Add a PKCE challenge to the consent URL.
        """
        if redirect_uri is None:
            redirect_uri = client.redirect_uris[0] if client.redirect_uris else DEFAULT_REDIRECT_URI
        return cls(client.client_id, client.client_secret, redirect_uri, scopes, use_pkce)

    def authorization_url(self) -> str:
        """Build the consent URL.

        Requests offline access and forces the consent prompt so a refresh
        token is issued on every authorization.
        """
        url, _state = self.flow.authorization_url(access_type="offline", prompt="consent")
        return url

    def set_tokens(self, tokens: TokenSet) -> None:
        """Bind a token set to this client."""
        self.tokens = tokens
        self.credentials = Credentials(  # nosec B106 - token_uri is public Google OAuth endpoint
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self._client_secret,
            scopes=tokens.scopes or self.scopes,
            expiry=_naive_utc(tokens.expires_at),
        )

    def clear_tokens(self) -> None:
        """Unbind the current token set."""
        self.tokens = None
        self.credentials = None

    def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens (blocking).

        The new tokens are not bound; the caller decides whether to keep them.

        Args:
            code: Authorization code from the OAuth redirect.

        Returns:
            TokenSet issued by the provider.
        """
        self.flow.fetch_token(code=code)
        return tokens_from_credentials(self.flow.credentials)

    def refresh(self) -> TokenSet:
        """Refresh the bound access token (blocking).

        The refreshed tokens are not bound; the caller decides whether to keep them.

        Returns:
            TokenSet with the new access token and expiry.

        Raises:
            TokenRefreshError: If no refresh token is bound or Google rejects it.
        """
        if self.tokens is None or self.credentials is None:
            raise TokenRefreshError("No tokens bound to the client")
        if not self.tokens.can_refresh:
            raise TokenRefreshError("Token expired and no refresh token is available")

        try:
            self.credentials.refresh(Request())
        except GoogleAuthError as e:
            raise TokenRefreshError(str(e)) from e

        return tokens_from_credentials(self.credentials, previous=self.tokens)

    async def revoke(self) -> None:
        """Ask Google to revoke the bound grant.

        Raises:
            httpx.HTTPError: If the revocation request fails.
        """
        if self.tokens is None:
            return

        token = self.tokens.refresh_token or self.tokens.access_token
        async with httpx.AsyncClient(timeout=httpx.Timeout(10.0)) as http:
            response = await http.post(
                GOOGLE_REVOKE_URI,
                data={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)
