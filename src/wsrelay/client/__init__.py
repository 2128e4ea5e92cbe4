"""
Client side of the relay: local TCP listeners tunnelled through wsrelay.
"""
