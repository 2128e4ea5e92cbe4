"""
Enumeration types for wsrelay.

This module defines the enumeration types shared across the relay server,
the tunnel lifecycle and the CLI.
"""

from enum import Enum


# =============================================================================
# Tunnel-Related Enums
# =============================================================================


class TunnelState(str, Enum):
    """
    Tunnel lifecycle state.

    State transitions:
        INIT -> CONNECTING -> RELAYING -> CLOSED
        CONNECTING -> CLOSED (outbound connect failed)
    A tunnel never leaves CLOSED; each request creates a new tunnel.
    """

    INIT = "init"  # Created, nothing opened yet
    CONNECTING = "connecting"  # Opening the outbound TCP connection
    RELAYING = "relaying"  # Both pumps running
    CLOSED = "closed"  # Terminal


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels for wsrelay components.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
