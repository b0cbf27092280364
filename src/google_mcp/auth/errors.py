"""Error types for the OAuth session layer.

Leaf helpers raise these; ``SessionManager`` catches them at each public
operation and reports a boolean or ``None`` result instead.
"""


class AuthError(Exception):
    """Base class for authentication errors."""


class ConfigurationAbsentError(AuthError):
    """No OAuth client credentials were found in any source."""


class InvalidCredentialFormatError(AuthError):
    """A credential or token source exists but does not match the schema."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid credential format in {source}: {reason}")


class TokenRefreshError(AuthError):
    """The provider rejected a refresh, or no refresh token was available."""


class NoPortAvailableError(AuthError):
    """Every port in the requested range is in use."""

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(f"No available ports found in range {start}-{end}")


class CallbackError(AuthError):
    """The OAuth redirect was malformed, denied, or the code exchange failed."""


class AuthTimeoutError(AuthError):
    """The interactive flow was not completed before its deadline."""


class FilesystemError(AuthError):
    """A credentials directory or file could not be created or written."""
