"""
Local port forwarder.

Listens on a local TCP port and opens one relay WebSocket per accepted
connection, so any TCP client (ssh, psql, curl...) can reach a target
through a wsrelay server.
"""

import asyncio
import socket

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus

from wsrelay.utils.logger import get_logger

logger = get_logger(__name__)


class LocalForwarder:
    """Manages the local TCP server and one relay WebSocket per connection."""

    def __init__(
        self,
        relay_url: str,
        target: str,
        token: str,
        local_host: str = "127.0.0.1",
        local_port: int = 0,
        target_header: str = "X-Proxy-Target",
        read_size: int = 65536,
    ):
        """
        Initialize the forwarder.

        Args:
            relay_url: WebSocket URL of the relay (ws:// or wss://).
            target: host:port the relay should connect to.
            token: Shared secret sent as the Authorization header.
            local_host: Local address to bind to.
            local_port: Local port to listen on (0 for auto).
            target_header: Header name carrying the target.
            read_size: Maximum bytes per local read.
        """
        self.relay_url = relay_url
        self.target = target
        self.token = token
        self.local_host = local_host
        self.local_port = local_port
        self.target_header = target_header
        self.read_size = read_size
        self._server: asyncio.Server | None = None

        if not self.local_port:
            # Find free port
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind((self.local_host, 0))
                self.local_port = s.getsockname()[1]

    def _headers(self) -> dict[str, str]:
        return {"Authorization": self.token, self.target_header: self.target}

    async def _local_to_relay(self, reader: asyncio.StreamReader, ws) -> None:
        while True:
            data = await reader.read(self.read_size)
            if not data:
                break
            await ws.send(data)

    async def _relay_to_local(self, ws, writer: asyncio.StreamWriter) -> None:
        try:
            async for message in ws:
                if isinstance(message, str):
                    message = message.encode("utf-8")
                writer.write(message)
                await writer.drain()
        except ConnectionClosed:
            pass

    async def handle_local_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Tunnel a single local connection through the relay."""
        peer = writer.get_extra_info("peername")
        log_prefix = f"[Forward {peer}]"
        logger.info(f"{log_prefix} New local connection.")

        try:
            async with websockets.connect(
                self.relay_url,
                additional_headers=self._headers(),
                max_size=None,
            ) as ws:
                logger.debug(f"{log_prefix} Relay tunnel to {self.target} open.")

                tasks = [
                    asyncio.create_task(self._local_to_relay(reader, ws)),
                    asyncio.create_task(self._relay_to_local(ws, writer)),
                ]
                done, pending = await asyncio.wait(
                    tasks, return_when=asyncio.FIRST_COMPLETED
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

                for task in done:
                    exc = task.exception()
                    if exc and not isinstance(exc, ConnectionClosed):
                        logger.warning(f"{log_prefix} Forwarding error: {exc}")

        except InvalidStatus as e:
            status = e.response.status_code
            logger.error(
                f"{log_prefix} Relay refused tunnel to {self.target} (HTTP {status})."
            )
        except InvalidHandshake as e:
            logger.error(f"{log_prefix} Handshake with relay {self.relay_url} failed: {e}")
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"{log_prefix} Cannot reach relay {self.relay_url}: {e}")

        finally:
            writer.close()
            try:
                await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
            except (OSError, asyncio.TimeoutError):
                pass
            logger.info(f"{log_prefix} Connection closed.")

    async def start(self) -> asyncio.Server:
        """Start listening on the local port."""
        self._server = await asyncio.start_server(
            self.handle_local_client, self.local_host, self.local_port
        )
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets)
        logger.info(f"Forwarding {addrs} -> {self.target} via {self.relay_url}")
        return self._server

    async def serve_forever(self) -> None:
        """Start the local server and run until cancelled."""
        server = await self.start()
        try:
            async with server:
                await server.serve_forever()
        except asyncio.CancelledError:
            logger.info("Local forwarder stopped.")
            raise
