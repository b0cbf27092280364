"""Google Workspace tool server: OAuth session layer."""

from google_mcp.__version__ import __version__

__all__ = ["__version__"]
