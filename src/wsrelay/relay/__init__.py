"""
Relay server: the authenticated WebSocket-to-TCP tunnel endpoint.
"""
