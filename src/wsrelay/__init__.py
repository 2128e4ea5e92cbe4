"""
wsrelay: authenticated TCP-over-WebSocket relay.

A single endpoint that upgrades an incoming WebSocket into a raw byte tunnel
toward a caller-specified TCP host:port.
"""

__version__ = "0.1.0"
