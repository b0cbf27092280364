"""Free port lookup for the OAuth callback listener."""

import logging
import socket

from google_mcp.auth.errors import NoPortAvailableError

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
PORT_RANGE_START = 3000
PORT_RANGE_END = 3100


def is_port_available(port: int, host: str = LOOPBACK_HOST) -> bool:
    """Check whether a TCP listener can bind to ``host:port``.

    The probe socket is closed immediately.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(
    start: int = PORT_RANGE_START,
    end: int = PORT_RANGE_END,
    host: str = LOOPBACK_HOST,
) -> int:
    """Find the first bindable port in an inclusive range.

    Args:
        start: First port to try.
        end: Last port to try.
        host: Interface to probe. Loopback by default.

    Returns:
        The first available port.

    Raises:
        NoPortAvailableError: If every port in the range is in use.
    """
    for port in range(start, end + 1):
        if is_port_available(port, host):
            logger.debug("Found available port: %d", port)
            return port
    raise NoPortAvailableError(start, end)
