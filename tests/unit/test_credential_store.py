"""Unit tests for CredentialStore.

Tests cover source precedence, token persistence, permissions and
error handling.
"""

import json
import os
from pathlib import Path

import pytest

from google_mcp.auth.credential_store import CredentialStore
from google_mcp.auth.models import TokenSet, TokenStatus
from google_mcp.auth.paths import PlatformPaths


@pytest.mark.unit
class TestCredentialStoreDirectories:
    """Tests for directory creation."""

    def test_should_create_directories_with_owner_only_access(
        self, paths: PlatformPaths
    ) -> None:
        store = CredentialStore(paths=paths)

        store.ensure_directories()

        assert paths.config_dir.stat().st_mode & 0o777 == 0o700
        assert paths.data_dir.stat().st_mode & 0o777 == 0o700

    def test_should_create_missing_parents_with_owner_only_access(self, tmp_path: Path) -> None:
        root = tmp_path / "fresh"
        store = CredentialStore(
            paths=PlatformPaths(
                config_dir=root / "config" / "google-mcp", data_dir=root / "data" / "google-mcp"
            )
        )

        store.ensure_directories()

        for directory in (root, root / "config", root / "data", store.paths.data_dir):
            assert directory.stat().st_mode & 0o777 == 0o700

    def test_should_be_idempotent(self, paths: PlatformPaths) -> None:
        store = CredentialStore(paths=paths)

        store.ensure_directories()
        store.ensure_directories()

        assert paths.data_dir.is_dir()

    def test_should_swallow_creation_errors(self, tmp_path: Path) -> None:
        """Verify a file blocking the directory is logged, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = CredentialStore(
            paths=PlatformPaths(config_dir=blocker / "config", data_dir=blocker / "data")
        )

        store.ensure_directories()

        assert store._directories_initialized is False

    def test_should_use_platform_paths_by_default(self, tmp_path: Path) -> None:
        """Verify the default store follows the (patched) XDG variables."""
        store = CredentialStore()

        assert str(tmp_path) in str(store.token_path)
        assert store.token_path.name == "tokens.json"


@pytest.mark.unit
class TestLoadClientCredentials:
    """Tests for CredentialStore.load_client_credentials()."""

    def test_should_return_none_without_sources(self, store: CredentialStore) -> None:
        assert store.load_client_credentials() is None

    def test_should_load_from_file(self, store: CredentialStore, credentials_file: Path) -> None:
        client = store.load_client_credentials()

        assert client is not None
        assert client.client_id == "id"

    def test_should_prefer_environment_variable(
        self,
        store: CredentialStore,
        credentials_file: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        env = {"web": {"client_id": "env-id", "client_secret": "env-secret"}}
        monkeypatch.setenv("GOOGLE_CREDENTIALS_JSON", json.dumps(env))

        client = store.load_client_credentials()

        assert client is not None
        assert client.client_id == "env-id"

    def test_should_return_none_for_malformed_json(self, store: CredentialStore) -> None:
        store.credentials_path.write_text("{not json")

        assert store.load_client_credentials() is None

    def test_should_return_none_for_missing_fields(self, store: CredentialStore) -> None:
        store.credentials_path.write_text(json.dumps({"installed": {"client_id": "id"}}))

        assert store.load_client_credentials() is None

    def test_should_return_none_for_non_utf8_file(self, store: CredentialStore) -> None:
        store.credentials_path.write_bytes(b'{"installed": {"client_id": "\xff"}}')

        assert store.load_client_credentials() is None


@pytest.mark.unit
class TestLoadTokens:
    """Tests for CredentialStore.load_tokens()."""

    def test_should_return_none_without_sources(self, store: CredentialStore) -> None:
        assert store.load_tokens() is None

    def test_should_prefer_environment_variable(
        self,
        store: CredentialStore,
        valid_tokens: TokenSet,
        write_tokens,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        write_tokens(valid_tokens)
        monkeypatch.setenv("GOOGLE_TOKENS_JSON", json.dumps({"access_token": "from-env"}))

        tokens = store.load_tokens()

        assert tokens is not None
        assert tokens.access_token == "from-env"

    def test_should_return_none_for_corrupted_file(self, store: CredentialStore) -> None:
        store.token_path.write_text("[]")

        assert store.load_tokens() is None

    def test_should_return_none_for_non_utf8_file(self, store: CredentialStore) -> None:
        store.token_path.write_bytes(b'{"access_token": "\xff\xfe"}')

        assert store.load_tokens() is None


@pytest.mark.unit
class TestSaveTokens:
    """Tests for CredentialStore.save_tokens()."""

    def test_should_round_trip_tokens(self, store: CredentialStore, valid_tokens: TokenSet) -> None:
        assert store.save_tokens(valid_tokens) is True

        assert store.load_tokens() == valid_tokens

    def test_should_write_token_file_shape(
        self, store: CredentialStore, valid_tokens: TokenSet
    ) -> None:
        store.save_tokens(valid_tokens)

        data = json.loads(store.token_path.read_text())
        assert data["access_token"] == valid_tokens.access_token
        assert data["expiry_date"] == valid_tokens.expiry_date
        assert data["token_type"] == "Bearer"

    def test_should_omit_absent_fields(self, store: CredentialStore) -> None:
        store.save_tokens(TokenSet(access_token="abc"))

        assert json.loads(store.token_path.read_text()) == {"access_token": "abc"}

    def test_should_set_secure_file_permissions(
        self, store: CredentialStore, valid_tokens: TokenSet
    ) -> None:
        store.save_tokens(valid_tokens)

        assert store.token_path.stat().st_mode & 0o777 == 0o600

    def test_should_fix_existing_file_permissions(
        self, store: CredentialStore, valid_tokens: TokenSet
    ) -> None:
        store.token_path.write_text("{}")
        os.chmod(store.token_path, 0o644)

        store.save_tokens(valid_tokens)

        assert store.token_path.stat().st_mode & 0o777 == 0o600

    def test_should_create_missing_directory(
        self, paths: PlatformPaths, valid_tokens: TokenSet
    ) -> None:
        store = CredentialStore(paths=paths)

        assert store.save_tokens(valid_tokens) is True
        assert store.token_path.exists()

    def test_should_skip_save_when_tokens_come_from_environment(
        self,
        store: CredentialStore,
        valid_tokens: TokenSet,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("GOOGLE_TOKENS_JSON", json.dumps({"access_token": "from-env"}))

        assert store.tokens_managed_externally is True
        assert store.save_tokens(valid_tokens) is False
        assert not store.token_path.exists()

    def test_should_leave_existing_file_untouched_in_env_mode(
        self,
        store: CredentialStore,
        valid_tokens: TokenSet,
        expired_tokens: TokenSet,
        write_tokens,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        write_tokens(expired_tokens)
        before = store.token_path.read_text()
        monkeypatch.setenv("GOOGLE_TOKENS_JSON", json.dumps({"access_token": "from-env"}))

        store.save_tokens(valid_tokens)

        assert store.token_path.read_text() == before

    def test_should_return_false_on_write_error(
        self, tmp_path: Path, valid_tokens: TokenSet
    ) -> None:
        """Verify a token path that is a directory fails softly."""
        paths = PlatformPaths(config_dir=tmp_path / "c", data_dir=tmp_path / "d")
        paths.token_path.mkdir(parents=True)
        store = CredentialStore(paths=paths)

        assert store.save_tokens(valid_tokens) is False


@pytest.mark.unit
class TestDeleteTokens:
    """Tests for CredentialStore.delete_tokens()."""

    def test_should_delete_existing_file(
        self, store: CredentialStore, valid_tokens: TokenSet
    ) -> None:
        store.save_tokens(valid_tokens)

        assert store.delete_tokens() is True
        assert not store.token_path.exists()

    def test_should_be_idempotent(self, store: CredentialStore) -> None:
        assert store.delete_tokens() is False
        assert store.delete_tokens() is False


@pytest.mark.unit
class TestGetTokenStatus:
    """Tests for CredentialStore.get_token_status()."""

    def test_should_report_missing(self, store: CredentialStore) -> None:
        assert store.get_token_status() == TokenStatus.MISSING

    def test_should_report_valid(
        self, store: CredentialStore, valid_tokens: TokenSet, write_tokens
    ) -> None:
        write_tokens(valid_tokens)

        assert store.get_token_status() == TokenStatus.VALID

    def test_should_report_expired(
        self, store: CredentialStore, expired_tokens: TokenSet, write_tokens
    ) -> None:
        write_tokens(expired_tokens)

        assert store.get_token_status() == TokenStatus.EXPIRED

    def test_should_report_invalid(self, store: CredentialStore) -> None:
        store.token_path.write_text("garbage")

        assert store.get_token_status() == TokenStatus.INVALID

    def test_should_report_invalid_for_non_utf8_file(self, store: CredentialStore) -> None:
        store.token_path.write_bytes(b"\xff\xfe\x00")

        assert store.get_token_status() == TokenStatus.INVALID
