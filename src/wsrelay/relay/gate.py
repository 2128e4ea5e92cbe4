"""
Auth/upgrade gate for incoming tunnel requests.

Validates the credential, the upgrade token and the target address before
any outbound connection is attempted. Checks run in that order and stop at
the first failure.
"""

import secrets
from collections.abc import Mapping

from pydantic import ValidationError

from wsrelay.models.requests import TargetAddress
from wsrelay.relay.exceptions import AddressParseError, AuthError, ProtocolError
from wsrelay.utils.logger import get_logger

logger = get_logger(__name__)

EXPECTED_UPGRADE = "websocket"


def check_credential(authorization: str | None, token: str) -> None:
    """
    Compare the Authorization value against the configured secret.

    Exact match only, in constant time. An unset secret rejects everything.

    Raises:
        AuthError: If the credential is missing or does not match.
    """
    if not token or authorization is None:
        raise AuthError()
    if not secrets.compare_digest(authorization.encode(), token.encode()):
        raise AuthError()


def check_upgrade(upgrade: str | None) -> None:
    """
    Require the Upgrade header to be exactly 'websocket'.

    Raises:
        ProtocolError: If the header is absent or carries another protocol.
    """
    if upgrade != EXPECTED_UPGRADE:
        raise ProtocolError()


def parse_target(value: str | None) -> TargetAddress:
    """
    Parse a 'host:port' string into a TargetAddress.

    The value must split on ':' into exactly two non-empty parts and the
    port must be a decimal integer in [1, 65535].

    Raises:
        AddressParseError: If the value is missing or malformed.
    """
    if value is None:
        raise AddressParseError("Missing target address")

    parts = value.strip().split(":")
    if len(parts) != 2:
        raise AddressParseError(f"Target must be host:port, got {value!r}", value)

    host, port_str = parts
    if not host or not port_str:
        raise AddressParseError(f"Target must be host:port, got {value!r}", value)
    if not port_str.isascii() or not port_str.isdigit():
        raise AddressParseError(f"Invalid port {port_str!r}", value)

    try:
        return TargetAddress(host=host, port=int(port_str))
    except ValidationError as e:
        raise AddressParseError(f"Port out of range: {port_str}", value) from e


def authorize(
    headers: Mapping[str, str],
    token: str,
    target_header: str = "X-Proxy-Target",
) -> TargetAddress:
    """
    Run all pre-upgrade checks on a request's headers.

    Args:
        headers: Request headers (case-insensitive mapping).
        token: Configured shared secret.
        target_header: Name of the header carrying host:port.

    Returns:
        The validated target address.

    Raises:
        AuthError: Bad or missing credential (401).
        ProtocolError: Missing or wrong Upgrade header (426).
        AddressParseError: Missing or malformed target (400).
    """
    try:
        check_credential(headers.get("authorization"), token)
    except AuthError:
        logger.warning("[Gate] Rejected request: bad or missing credential")
        raise

    try:
        check_upgrade(headers.get("upgrade"))
    except ProtocolError:
        logger.warning(
            f"[Gate] Rejected request: Upgrade={headers.get('upgrade')!r}"
        )
        raise

    try:
        target = parse_target(headers.get(target_header.lower()))
    except AddressParseError as e:
        logger.warning(f"[Gate] Rejected request: {e}")
        raise

    logger.debug(f"[Gate] Request authorized for target {target}")
    return target
