"""Relay error classes."""


class RelayServerError(Exception):
    """Base exception for relay operations."""

    status_code: int = 500


class AuthError(RelayServerError):
    """Credential missing or mismatched."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ProtocolError(RelayServerError):
    """Upgrade header missing or not 'websocket'."""

    status_code = 426

    def __init__(self, message: str = "Expected Upgrade: websocket"):
        super().__init__(message)


class AddressParseError(RelayServerError):
    """Target address header missing, malformed or out of range."""

    status_code = 400

    def __init__(self, message: str, value: str | None = None):
        self.value = value
        super().__init__(message)


class ConnectError(RelayServerError):
    """Outbound connection could not be established."""

    status_code = 500

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Failed to connect to {host}:{port}: {reason}")


class RelayError(RelayServerError):
    """Read or write failure after the tunnel was established."""

    def __init__(self, direction: str, reason: str):
        self.direction = direction
        self.reason = reason
        super().__init__(f"{direction} failed: {reason}")
