"""Relay server command."""

from typing import Annotated

import typer

from wsrelay.cli.output import console, print_error
from wsrelay.models.enums import LogLevel
from wsrelay.relay.config import config


def serve(
    host: Annotated[
        str,
        typer.Option("--host", "-H", help="Address to bind to", envvar="WSRELAY_HOST"),
    ] = config.BIND_IP,
    port: Annotated[
        int,
        typer.Option("--port", "-P", help="Port to listen on", envvar="WSRELAY_PORT"),
    ] = config.PORT,
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            "-t",
            help="Shared secret expected in the Authorization header",
            envvar="WSRELAY_TOKEN",
            show_default=False,
        ),
    ] = None,
    connect_timeout: Annotated[
        float,
        typer.Option("--connect-timeout", help="Outbound connect timeout (seconds)"),
    ] = config.CONNECT_TIMEOUT,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Logging verbosity"),
    ] = config.LOG_LEVEL,
):
    """
    Start the relay.

    Clients connect with a WebSocket carrying Authorization, Upgrade and
    X-Proxy-Target headers and get a raw TCP tunnel to the target.
    """
    if not token:
        print_error("A token is required (--token or WSRELAY_TOKEN).")
        raise typer.Exit(1)

    if not 1 <= port <= 65535:
        print_error(f"Invalid port: {port}")
        raise typer.Exit(1)

    config.BIND_IP = host
    config.PORT = port
    config.TOKEN = token
    config.CONNECT_TIMEOUT = connect_timeout
    config.LOG_LEVEL = log_level

    console.print(
        f"[bold green]Relay listening[/bold green] on "
        f"[cyan]{config.get_listen_url()}[/cyan]"
    )

    from wsrelay.relay.app import run

    run()
