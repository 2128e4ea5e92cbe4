"""
Tunnel handler.

A Tunnel pairs one accepted WebSocket (front) with one outbound TCP
connection (back) and runs a pump in each direction until either side ends.
Each request gets its own Tunnel; nothing is shared between tunnels.
"""

import asyncio
from collections.abc import Awaitable, Callable

from starlette.websockets import WebSocket

from wsrelay.models.enums import TunnelState
from wsrelay.models.requests import TargetAddress
from wsrelay.relay.exceptions import ConnectError, RelayError
from wsrelay.relay.pump import (
    BACK_TO_FRONT,
    FRONT_CLOSED,
    FRONT_TO_BACK,
    PumpResult,
    pump_back_to_front,
    pump_front_to_back,
)
from wsrelay.utils.logger import get_logger

logger = get_logger(__name__)

Opener = Callable[
    [str, int], Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]
]

# WebSocket close codes
CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011

_TRANSITIONS = {
    TunnelState.INIT: {TunnelState.CONNECTING, TunnelState.CLOSED},
    TunnelState.CONNECTING: {TunnelState.RELAYING, TunnelState.CLOSED},
    TunnelState.RELAYING: {TunnelState.CLOSED},
    TunnelState.CLOSED: set(),
}


class Tunnel:
    """
    One front/back byte relay session.

    Usage:
        tunnel = Tunnel(websocket, target)
        await tunnel.open()    # raises ConnectError, front untouched
        await tunnel.relay()   # accepts front, pumps until either side ends
    """

    def __init__(
        self,
        front: WebSocket,
        target: TargetAddress,
        opener: Opener | None = None,
        connect_timeout: float = 10.0,
        read_size: int = 65536,
    ):
        """
        Initialize a tunnel.

        Args:
            front: Not-yet-accepted WebSocket from the client.
            target: Validated destination address.
            opener: Coroutine opening the back connection, defaults to
                asyncio.open_connection.
            connect_timeout: Seconds allowed for the outbound connect.
            read_size: Maximum bytes per read from the back stream.
        """
        self.front = front
        self.target = target
        self._opener = opener or asyncio.open_connection
        self.connect_timeout = connect_timeout
        self.read_size = read_size

        self._state = TunnelState.INIT
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._log_prefix = f"[Tunnel {target}]"

        self.error: RelayError | None = None
        self.results: dict[str, PumpResult] = {}

    @property
    def state(self) -> TunnelState:
        return self._state

    def _transition(self, new_state: TunnelState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Invalid tunnel transition {self._state.value} -> {new_state.value}"
            )
        logger.debug(f"{self._log_prefix} {self._state.value} -> {new_state.value}")
        self._state = new_state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        """
        Open the outbound TCP connection.

        Raises:
            ConnectError: DNS failure, invalid hostname, refusal or timeout. The tunnel is
                CLOSED and nothing is left open.
        """
        self._transition(TunnelState.CONNECTING)
        host, port = self.target.host, self.target.port
        logger.debug(f"{self._log_prefix} Connecting to target...")

        try:
            self._reader, self._writer = await asyncio.wait_for(
                self._opener(host, port), timeout=self.connect_timeout
            )
        except asyncio.TimeoutError:
            self._transition(TunnelState.CLOSED)
            logger.warning(f"{self._log_prefix} Timeout connecting to target.")
            raise ConnectError(host, port, "connection timed out")
        except (OSError, UnicodeError) as e:
            # UnicodeError: hostname rejected by the IDNA codec before lookup
            self._transition(TunnelState.CLOSED)
            logger.warning(f"{self._log_prefix} Connection failed: {e}")
            raise ConnectError(host, port, str(e) or type(e).__name__) from e

        logger.info(f"{self._log_prefix} Outbound connection established.")

    async def relay(self) -> None:
        """
        Accept the front stream and relay bytes until either side ends.

        Always leaves the tunnel CLOSED with both endpoints released. A relay
        failure is recorded in self.error and reported to the client as an
        abnormal close (1011), never raised.
        """
        if self._state != TunnelState.CONNECTING or self._writer is None:
            raise RuntimeError(f"Cannot relay from state {self._state.value}")

        try:
            await self.front.accept()
        except BaseException:
            await self._close_back()
            self._transition(TunnelState.CLOSED)
            raise

        self._transition(TunnelState.RELAYING)
        logger.info(f"{self._log_prefix} Starting bidirectional relay.")

        front_to_back = asyncio.create_task(
            pump_front_to_back(self.front, self._writer)
        )
        back_to_front = asyncio.create_task(
            pump_back_to_front(self._reader, self.front, self.read_size)
        )
        tasks = {front_to_back: FRONT_TO_BACK, back_to_front: BACK_TO_FRONT}
        front_open = True

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

            for task in done:
                exc = task.exception()
                if isinstance(exc, RelayError):
                    logger.warning(f"{self._log_prefix} Relay failed: {exc}")
                    self.error = exc
                elif exc is not None:
                    logger.opt(exception=exc).error(
                        f"{self._log_prefix} Unexpected error in {tasks[task]}"
                    )
                    self.error = RelayError(tasks[task], str(exc))
                else:
                    result = task.result()
                    self.results[tasks[task]] = result
                    if result.reason == FRONT_CLOSED:
                        front_open = False
                    logger.debug(
                        f"{self._log_prefix} {tasks[task]} ended ({result.reason}, "
                        f"{result.messages} messages, {result.nbytes} bytes)"
                    )
        finally:
            pending = {task for task in tasks if not task.done()}
            for task in pending:
                task.cancel()
            # Release the socket before any await, teardown may be cancelled too
            self._writer.close()

            try:
                if pending:
                    await asyncio.wait(pending)
                await self._close_back()
                if front_open:
                    code = CLOSE_INTERNAL_ERROR if self.error else CLOSE_NORMAL
                    await self._close_front(code)
            finally:
                self._transition(TunnelState.CLOSED)
                logger.info(f"{self._log_prefix} Relay ended.")

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    async def _close_back(self) -> None:
        if self._writer is None:
            return
        self._writer.close()
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout=1.0)
        except (OSError, asyncio.TimeoutError):
            pass

    async def _close_front(self, code: int) -> None:
        try:
            await self.front.close(code=code)
        except Exception as e:
            logger.debug(f"{self._log_prefix} Front already closed: {e}")
