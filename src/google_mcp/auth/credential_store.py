"""Storage for OAuth client credentials and tokens.

Environment variables take precedence over files, which lets a host
process inject per-tenant credentials without touching the filesystem:

    GOOGLE_CREDENTIALS_JSON: Raw client credentials JSON ("installed" or "web").
    GOOGLE_TOKENS_JSON: Raw token JSON. When set, tokens are managed
        externally and refreshed tokens are not written to disk.

File locations come from ``resolve_paths``:

    <config-dir>/credentials.json   client credentials (user supplied)
    <data-dir>/tokens.json          tokens (written with 0600 permissions)
"""

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from google_mcp.auth.errors import FilesystemError, InvalidCredentialFormatError
from google_mcp.auth.models import ClientCredentials, CredentialsFile, TokenSet, TokenStatus
from google_mcp.auth.paths import PlatformPaths, resolve_paths

logger = logging.getLogger(__name__)

CREDENTIALS_ENV_VAR = "GOOGLE_CREDENTIALS_JSON"
TOKENS_ENV_VAR = "GOOGLE_TOKENS_JSON"

DIR_MODE = 0o700
FILE_MODE = 0o600


def parse_client_credentials(raw: str, source: str) -> ClientCredentials:
    """Validate client credentials JSON.

    Raises:
        InvalidCredentialFormatError: If the JSON is malformed or lacks
            a usable "installed"/"web" block.
    """
    try:
        return CredentialsFile.model_validate_json(raw).client
    except ValidationError as e:
        raise InvalidCredentialFormatError(source, _describe(e)) from e


def parse_tokens(raw: str, source: str) -> TokenSet:
    """Validate token JSON.

    Raises:
        InvalidCredentialFormatError: If the JSON is malformed or has no access token.
    """
    try:
        return TokenSet.model_validate_json(raw)
    except ValidationError as e:
        raise InvalidCredentialFormatError(source, _describe(e)) from e


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']}"


def _make_private_dir(directory: Path) -> None:
    # mkdir(parents=True) only applies the mode to the leaf
    missing = [path for path in (directory, *directory.parents) if not path.exists()]
    for path in reversed(missing):
        try:
            path.mkdir(mode=DIR_MODE, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Error creating directory {path}: {e}") from e
        logger.info("Created directory: %s", path)


def _write_private_file(path: Path, content: str) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        # os.open only applies the mode on creation
        path.chmod(FILE_MODE)
    except OSError as e:
        raise FilesystemError(f"Error saving tokens to {path}: {e}") from e


class CredentialStore:
    """Loads client credentials and tokens, persists tokens.

    The store keeps no state beyond the resolved paths and a flag
    recording that the directories were created.

    Attributes:
        paths: Resolved config and data directories.

    Example:
        ```python
        store = CredentialStore()
        client = store.load_client_credentials()
        tokens = store.load_tokens()
        if tokens and tokens.is_expired():
            ...
        ```
    """

    def __init__(self, paths: PlatformPaths | None = None) -> None:
        """Initialize the store.

        Args:
            paths: Directories to use. Resolved for the running platform if not provided.
        """
        self.paths = paths or resolve_paths()
        self._directories_initialized = False

    @property
    def credentials_path(self) -> Path:
        return self.paths.credentials_path

    @property
    def token_path(self) -> Path:
        return self.paths.token_path

    @property
    def tokens_managed_externally(self) -> bool:
        """True when tokens come from GOOGLE_TOKENS_JSON."""
        return bool(os.environ.get(TOKENS_ENV_VAR))

    def ensure_directories(self) -> None:
        """Create the config and data directories with owner-only access.

        Failures are logged; later reads and writes report absence instead.
        """
        if self._directories_initialized:
            return

        try:
            for directory in (self.paths.config_dir, self.paths.data_dir):
                _make_private_dir(directory)
            self._directories_initialized = True
        except FilesystemError as e:
            logger.error("%s", e)

    def _read_source(self, env_var: str, path: Path) -> tuple[str, str] | None:
        raw = os.environ.get(env_var)
        if raw:
            return raw, env_var
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8"), str(path)
        except UnicodeDecodeError as e:
            raise InvalidCredentialFormatError(str(path), f"not valid UTF-8 ({e.reason})") from e

    def load_client_credentials(self) -> ClientCredentials | None:
        """Load OAuth client credentials.

        Returns:
            ClientCredentials, or None if no source exists or it is invalid.
        """
        try:
            found = self._read_source(CREDENTIALS_ENV_VAR, self.credentials_path)
            if found is None:
                return None
            return parse_client_credentials(*found)
        except InvalidCredentialFormatError as e:
            logger.error("%s", e)
        except OSError as e:
            logger.error("Error loading credentials: %s", e)
        return None

    def load_tokens(self) -> TokenSet | None:
        """Load the stored token set.

        Returns:
            TokenSet, or None if no source exists or it is invalid.
        """
        try:
            found = self._read_source(TOKENS_ENV_VAR, self.token_path)
            if found is None:
                return None
            return parse_tokens(*found)
        except InvalidCredentialFormatError as e:
            logger.error("%s", e)
        except OSError as e:
            logger.error("Error loading tokens: %s", e)
        return None

    def save_tokens(self, tokens: TokenSet) -> bool:
        """Write tokens to the token file.

        Does nothing when tokens are managed externally.

        Args:
            tokens: Token set to persist.

        Returns:
            True if the file was written.
        """
        if self.tokens_managed_externally:
            logger.debug("Tokens supplied via %s; skipping save", TOKENS_ENV_VAR)
            return False

        self.ensure_directories()

        content = tokens.model_dump_json(indent=2, exclude_none=True)
        try:
            _write_private_file(self.token_path, content)
        except FilesystemError as e:
            logger.error("%s", e)
            return False
        return True

    def delete_tokens(self) -> bool:
        """Remove the token file.

        Returns:
            True if a file was deleted, False if none existed.
        """
        try:
            self.token_path.unlink()
        except FileNotFoundError:
            return False
        return True

    def get_token_status(self) -> TokenStatus:
        """Get the status of the token source.

        Returns:
            TokenStatus for the environment or file token source.
        """
        if not os.environ.get(TOKENS_ENV_VAR) and not self.token_path.exists():
            return TokenStatus.MISSING

        tokens = self.load_tokens()
        if tokens is None:
            return TokenStatus.INVALID
        if tokens.is_expired():
            return TokenStatus.EXPIRED
        return TokenStatus.VALID
