"""
wsrelay FastAPI Application.

Exposes the tunnel endpoint at '/' (WebSocket) plus a plain HTTP fallback on
the same path and a health check.
"""

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse

from wsrelay import __version__
from wsrelay.models.enums import LogLevel
from wsrelay.models.requests import HealthResponse
from wsrelay.relay.config import config
from wsrelay.relay.exceptions import ConnectError, RelayServerError
from wsrelay.relay.gate import authorize
from wsrelay.relay.tunnel import Opener, Tunnel
from wsrelay.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

# WebSocket close codes used when the server cannot send an HTTP denial
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011

DENIAL_EXTENSION = "websocket.http.response"


# =============================================================================
# Handlers
# =============================================================================


async def deny_websocket(websocket: WebSocket, error: RelayServerError) -> None:
    """
    Reject a WebSocket handshake with the error's HTTP status.

    Falls back to a close frame when the ASGI server lacks the denial
    response extension.
    """
    if DENIAL_EXTENSION in websocket.scope.get("extensions", {}):
        response = PlainTextResponse(str(error), status_code=error.status_code)
        await websocket.send_denial_response(response)
        return

    code = CLOSE_INTERNAL_ERROR if error.status_code >= 500 else CLOSE_POLICY_VIOLATION
    await websocket.close(code=code, reason=str(error)[:120])


async def handle_tunnel(websocket: WebSocket, opener: Opener | None = None) -> None:
    """
    Authorize, connect and relay one tunnel request.

    Every failure before the upgrade is answered with a status code. After
    the upgrade, failures only show up as the WebSocket closing.
    """
    client = websocket.client
    log_prefix = f"[Client {client.host}:{client.port}]" if client else "[Client]"

    try:
        target = authorize(websocket.headers, config.TOKEN, config.TARGET_HEADER)
    except RelayServerError as e:
        logger.info(f"{log_prefix} Handshake rejected ({e.status_code}).")
        await deny_websocket(websocket, e)
        return

    logger.info(f"{log_prefix} Tunnel requested to {target}.")
    tunnel = Tunnel(
        websocket,
        target,
        opener=opener,
        connect_timeout=config.CONNECT_TIMEOUT,
        read_size=config.READ_CHUNK_SIZE,
    )

    try:
        await tunnel.open()
    except ConnectError as e:
        logger.warning(f"{log_prefix} {e}")
        await deny_websocket(websocket, e)
        return

    await tunnel.relay()
    logger.info(f"{log_prefix} Tunnel to {target} closed.")


# =============================================================================
# Application
# =============================================================================


def create_app(opener: Opener | None = None) -> FastAPI:
    """
    Build the relay application.

    Args:
        opener: Coroutine used to open outbound connections, defaults to
            asyncio.open_connection.
    """
    app = FastAPI(
        title="wsrelay",
        description="Authenticated TCP-over-WebSocket relay",
        version=__version__,
    )
    app.state.opener = opener

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Liveness check."""
        return HealthResponse(version=__version__)

    @app.websocket("/")
    async def websocket_tunnel(websocket: WebSocket):
        """WebSocket endpoint opening a TCP tunnel to X-Proxy-Target."""
        await handle_tunnel(websocket, app.state.opener)

    @app.api_route("/", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"])
    async def plain_request(request: Request):
        """Requests that were not upgraded get 401 or 426."""
        try:
            authorize(request.headers, config.TOKEN, config.TARGET_HEADER)
        except RelayServerError as e:
            return PlainTextResponse(str(e), status_code=e.status_code)
        # Headers were fine but the server did not perform the upgrade
        return PlainTextResponse("Expected Upgrade: websocket", status_code=426)

    return app


app = create_app()


# =============================================================================
# Server Entry Points
# =============================================================================


def run():
    """Run the relay server using uvicorn."""
    import uvicorn

    # Configure logging before starting uvicorn
    configure_logging(config.LOG_LEVEL)

    # Map log levels to uvicorn levels
    uvicorn_level_map = {
        LogLevel.FULL: "debug",
        LogLevel.DEBUG: "debug",
        LogLevel.INFO: "info",
        LogLevel.WARNING: "warning",
    }
    uvicorn_level = uvicorn_level_map.get(config.LOG_LEVEL, "info")

    logger.info(f"Starting relay on {config.BIND_IP}:{config.PORT}")

    uvicorn.run(
        app,
        host=config.BIND_IP,
        port=config.PORT,
        log_level=uvicorn_level,
        log_config=None,  # Disable uvicorn's default logging config (use loguru)
    )


def main():
    """Entry point for the relay server."""
    run()


if __name__ == "__main__":
    main()
