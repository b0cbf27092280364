"""Shared pytest fixtures for google-mcp tests.

This module provides reusable fixtures for credential files, token
sets, storage and session managers rooted in temporary directories.
"""

import json
import socket
import time
from pathlib import Path

import pytest

from google_mcp.auth.credential_store import CredentialStore
from google_mcp.auth.models import TokenSet
from google_mcp.auth.paths import PlatformPaths
from google_mcp.auth.session import SessionManager

# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from real credentials and the user's home directory."""
    monkeypatch.delenv("GOOGLE_CREDENTIALS_JSON", raising=False)
    monkeypatch.delenv("GOOGLE_TOKENS_JSON", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))


# =============================================================================
# Credential Fixtures
# =============================================================================


@pytest.fixture
def client_credentials_data() -> dict:
    """Contents of a desktop-app credentials.json."""
    return {
        "installed": {
            "client_id": "id",
            "client_secret": "secret",  # pragma: allowlist secret
            "redirect_uris": ["http://localhost"],
        }
    }


@pytest.fixture
def paths(tmp_path: Path) -> PlatformPaths:
    """Config and data directories under tmp_path."""
    return PlatformPaths(config_dir=tmp_path / "config", data_dir=tmp_path / "data")


@pytest.fixture
def store(paths: PlatformPaths) -> CredentialStore:
    """Create a CredentialStore with temporary directories."""
    store = CredentialStore(paths=paths)
    store.ensure_directories()
    return store


@pytest.fixture
def credentials_file(store: CredentialStore, client_credentials_data: dict) -> Path:
    """Write client credentials to the store's credentials path."""
    store.credentials_path.write_text(json.dumps(client_credentials_data))
    return store.credentials_path


# =============================================================================
# Token Fixtures
# =============================================================================


def _epoch_ms(offset_seconds: float) -> int:
    return int((time.time() + offset_seconds) * 1000)


@pytest.fixture
def valid_tokens() -> TokenSet:
    """Create a valid, non-expired token set."""
    return TokenSet(
        access_token="test_access_token_abc123",
        refresh_token="test_refresh_token_xyz789",
        expiry_date=_epoch_ms(3600),
        scope="https://www.googleapis.com/auth/drive https://www.googleapis.com/auth/calendar",
        token_type="Bearer",
    )


@pytest.fixture
def expired_tokens() -> TokenSet:
    """Create an expired token set with a refresh token."""
    return TokenSet(
        access_token="expired_access_token",
        refresh_token="test_refresh_token",
        expiry_date=_epoch_ms(-3600),
        scope="https://www.googleapis.com/auth/drive",
        token_type="Bearer",
    )


@pytest.fixture
def refreshed_tokens() -> TokenSet:
    """Token set returned by a successful refresh."""
    return TokenSet(
        access_token="refreshed_access_token",
        refresh_token="test_refresh_token",
        expiry_date=_epoch_ms(3600),
        scope="https://www.googleapis.com/auth/drive",
        token_type="Bearer",
    )


@pytest.fixture
def exchanged_tokens() -> TokenSet:
    """Token set returned by an authorization code exchange."""
    return TokenSet(
        access_token="exchanged_access_token",
        refresh_token="exchanged_refresh_token",
        expiry_date=_epoch_ms(3600),
        token_type="Bearer",
    )


@pytest.fixture
def write_tokens(store: CredentialStore):
    """Write a token set directly to the store's token file."""

    def _write(tokens: TokenSet) -> None:
        store.token_path.write_text(tokens.model_dump_json(exclude_none=True))

    return _write


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def free_port() -> int:
    """A loopback port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def session(store: CredentialStore, free_port: int) -> SessionManager:
    """Create a SessionManager that never opens a browser."""
    return SessionManager(
        store=store,
        port_range=(free_port, free_port),
        auth_timeout=5.0,
        open_browser=False,
    )


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
