"""
Relay server configuration.

A global config instance that is set once at startup and then only read.

Usage:
    from wsrelay.relay.config import config

    # Modify configuration before starting
    config.TOKEN = "secret"
    config.PORT = 9000
"""

from dataclasses import dataclass

from wsrelay.models.enums import LogLevel


@dataclass
class RelayConfig:
    """
    Relay server configuration.

    Attributes:
        BIND_IP: IP address to bind the server to.
        PORT: Listening port for the WebSocket endpoint.
        TOKEN: Shared secret expected verbatim in the Authorization header.
        TARGET_HEADER: Header carrying the host:port to tunnel to.
        CONNECT_TIMEOUT: Seconds allowed for the outbound TCP connect.
        READ_CHUNK_SIZE: Maximum bytes read from the target per message.
        LOG_LEVEL: Logging verbosity level.
    """

    # Network Configuration
    BIND_IP: str = "0.0.0.0"
    PORT: int = 8080

    # Auth Configuration
    TOKEN: str = ""

    # Tunnel Configuration
    TARGET_HEADER: str = "X-Proxy-Target"
    CONNECT_TIMEOUT: float = 10.0
    READ_CHUNK_SIZE: int = 65536

    # Logging Configuration
    LOG_LEVEL: LogLevel = LogLevel.INFO

    def get_listen_url(self) -> str:
        """Get the WebSocket URL clients connect to."""
        host = "127.0.0.1" if self.BIND_IP == "0.0.0.0" else self.BIND_IP
        return f"ws://{host}:{self.PORT}/"


# Global config instance
config = RelayConfig()
