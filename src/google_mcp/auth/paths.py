"""Platform-specific configuration and data directories.

Client credentials are configuration and live in the config directory;
tokens are data and live in the data directory:

- Linux: $XDG_CONFIG_HOME/google-mcp or ~/.config/google-mcp (config),
  $XDG_DATA_HOME/google-mcp or ~/.local/share/google-mcp (data)
- macOS: $XDG_CONFIG_HOME / $XDG_DATA_HOME if set, otherwise
  ~/Library/Application Support/google-mcp for both
- Windows: %APPDATA%/google-mcp for both
"""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "google-mcp"
CREDENTIALS_FILENAME = "credentials.json"
TOKENS_FILENAME = "tokens.json"


@dataclass(frozen=True)
class PlatformPaths:
    """Resolved directories for credentials and tokens."""

    config_dir: Path
    data_dir: Path

    @property
    def credentials_path(self) -> Path:
        return self.config_dir / CREDENTIALS_FILENAME

    @property
    def token_path(self) -> Path:
        return self.data_dir / TOKENS_FILENAME


def _env_path(environ: Mapping[str, str], name: str) -> Path | None:
    value = environ.get(name)
    return Path(value) if value else None


def resolve_paths(
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> PlatformPaths:
    """Resolve the config and data directories for a platform.

    Args:
        platform: A ``sys.platform`` identifier. Defaults to the running platform.
        environ: Environment variables. Defaults to ``os.environ``.
        home: Home directory. Defaults to ``Path.home()``.

    Returns:
        PlatformPaths with the config and data directories.
    """
    if platform is None:
        platform = sys.platform
    if environ is None:
        environ = os.environ
    if home is None:
        home = Path.home()

    if platform == "win32":
        app_data = _env_path(environ, "APPDATA") or home / "AppData" / "Roaming"
        return PlatformPaths(config_dir=app_data / APP_NAME, data_dir=app_data / APP_NAME)

    if platform == "darwin":
        support = home / "Library" / "Application Support"
        config_base = _env_path(environ, "XDG_CONFIG_HOME") or support
        data_base = _env_path(environ, "XDG_DATA_HOME") or support
        return PlatformPaths(config_dir=config_base / APP_NAME, data_dir=data_base / APP_NAME)

    config_base = _env_path(environ, "XDG_CONFIG_HOME") or home / ".config"
    data_base = _env_path(environ, "XDG_DATA_HOME") or home / ".local" / "share"
    return PlatformPaths(config_dir=config_base / APP_NAME, data_dir=data_base / APP_NAME)
