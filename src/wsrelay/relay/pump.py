"""
Unidirectional byte pumps between a WebSocket front and a TCP back stream.

A tunnel is two of these running as independent tasks. Each pump returns a
PumpResult when its source ends cleanly and raises RelayError when a read or
write fails.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass

from starlette.websockets import WebSocket, WebSocketDisconnect

from wsrelay.relay.exceptions import RelayError

# End reasons
FRONT_CLOSED = "front_closed"  # Client closed the WebSocket
BACK_EOF = "back_eof"  # Target closed its side of the TCP connection

FRONT_TO_BACK = "front->back"
BACK_TO_FRONT = "back->front"


@dataclass
class PumpResult:
    """Outcome of a pump that ended without error."""

    reason: str
    messages: int = 0
    nbytes: int = 0


async def iter_front_messages(front: WebSocket) -> AsyncIterator[bytes]:
    """
    Yield every inbound WebSocket message as bytes until the client closes.

    Binary frames are yielded as-is, text frames UTF-8 encoded. Empty
    messages are yielded too.
    """
    while True:
        message = await front.receive()
        if message["type"] == "websocket.disconnect":
            return
        data = message.get("bytes")
        if data is None:
            data = (message.get("text") or "").encode("utf-8")
        yield data


async def pump_front_to_back(
    front: WebSocket,
    writer: asyncio.StreamWriter,
) -> PumpResult:
    """
    Write each front message to the TCP writer, in arrival order.

    Every write is drained before the next message is read, so a slow
    target throttles the client instead of buffering in memory.
    """
    result = PumpResult(FRONT_CLOSED)
    try:
        async for data in iter_front_messages(front):
            writer.write(data)
            await writer.drain()
            result.messages += 1
            result.nbytes += len(data)
    except WebSocketDisconnect:
        pass
    except (OSError, RuntimeError) as e:
        raise RelayError(FRONT_TO_BACK, str(e) or type(e).__name__) from e
    return result


async def pump_back_to_front(
    reader: asyncio.StreamReader,
    front: WebSocket,
    read_size: int = 65536,
) -> PumpResult:
    """
    Send each chunk read from the TCP reader as one binary message.

    Chunk boundaries are whatever the transport yields. Returns on EOF from
    the target, or FRONT_CLOSED if the client went away mid-send.
    """
    result = PumpResult(BACK_EOF)
    while True:
        try:
            data = await reader.read(read_size)
        except OSError as e:
            raise RelayError(BACK_TO_FRONT, str(e) or type(e).__name__) from e
        if not data:
            return result

        try:
            await front.send_bytes(data)
        except WebSocketDisconnect:
            result.reason = FRONT_CLOSED
            return result
        except (OSError, RuntimeError) as e:
            raise RelayError(BACK_TO_FRONT, str(e) or type(e).__name__) from e
        result.messages += 1
        result.nbytes += len(data)
