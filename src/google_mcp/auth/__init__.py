"""OAuth authentication for the Google Workspace tool server.

This package owns the OAuth2 session of the process: client credential
and token storage, the interactive browser flow, and token refresh.

Quick Start:
    ```python
    from google_mcp.auth import SessionManager

    session = SessionManager()

    # Restore a stored session, or run the browser flow
    ready = await session.initialize_with_auth()

    # Hand credentials to an API wrapper
    credentials = session.get_credentials()
    ```
"""

from google_mcp.auth.client import GOOGLE_WORKSPACE_SCOPES, OAuthClient
from google_mcp.auth.credential_store import CredentialStore
from google_mcp.auth.errors import (
    AuthError,
    AuthTimeoutError,
    CallbackError,
    ConfigurationAbsentError,
    FilesystemError,
    InvalidCredentialFormatError,
    NoPortAvailableError,
    TokenRefreshError,
)
from google_mcp.auth.models import ClientCredentials, SessionState, TokenSet, TokenStatus
from google_mcp.auth.paths import PlatformPaths, resolve_paths
from google_mcp.auth.ports import find_available_port
from google_mcp.auth.session import SessionManager

__all__ = [
    "SessionManager",
    "CredentialStore",
    "OAuthClient",
    "ClientCredentials",
    "TokenSet",
    "SessionState",
    "TokenStatus",
    "PlatformPaths",
    "resolve_paths",
    "find_available_port",
    "GOOGLE_WORKSPACE_SCOPES",
    "AuthError",
    "AuthTimeoutError",
    "CallbackError",
    "ConfigurationAbsentError",
    "FilesystemError",
    "InvalidCredentialFormatError",
    "NoPortAvailableError",
    "TokenRefreshError",
]
