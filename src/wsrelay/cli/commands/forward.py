"""
Port forwarding command.

Creates a local TCP server whose connections are tunnelled through a
wsrelay server to a target host:port.

Example:
    # Reach db.internal:5432 on local port 15432
    wsrelay forward wss://relay.example.com/ db.internal:5432 -l 15432
"""

import asyncio
from typing import Annotated

import typer

from wsrelay.cli.output import console, print_error
from wsrelay.client.forwarder import LocalForwarder
from wsrelay.models.enums import LogLevel
from wsrelay.relay.exceptions import AddressParseError
from wsrelay.relay.gate import parse_target
from wsrelay.utils.logger import configure_logging


def forward(
    relay_url: Annotated[
        str, typer.Argument(help="Relay WebSocket URL, e.g. ws://relay:8080/")
    ],
    target: Annotated[str, typer.Argument(help="Target as host:port")],
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            "-t",
            help="Shared secret for the relay",
            envvar="WSRELAY_TOKEN",
            show_default=False,
        ),
    ] = None,
    local_port: Annotated[
        int,
        typer.Option(
            "--local-port",
            "-l",
            help="Local port to listen on (default: target port)",
        ),
    ] = 0,
    local_host: Annotated[
        str,
        typer.Option("--local-host", "-H", help="Local address to bind to"),
    ] = "127.0.0.1",
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", help="Logging verbosity"),
    ] = LogLevel.INFO,
):
    """
    Forward a local port to a target through the relay.

    Every local connection gets its own WebSocket tunnel.
    """
    if not token:
        print_error("A token is required (--token or WSRELAY_TOKEN).")
        raise typer.Exit(1)

    if not relay_url.startswith(("ws://", "wss://")):
        print_error(f"Relay URL must start with ws:// or wss://, got {relay_url}")
        raise typer.Exit(1)

    try:
        address = parse_target(target)
    except AddressParseError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not local_port:
        local_port = address.port

    configure_logging(log_level)
    forwarder = LocalForwarder(
        relay_url,
        str(address),
        token,
        local_host=local_host,
        local_port=local_port,
    )

    console.print(
        f"[bold green]Forwarding[/bold green] "
        f"[cyan]{local_host}:{local_port}[/cyan] "
        f"[dim]→[/dim] "
        f"[yellow]{address}[/yellow] "
        f"[dim]via {relay_url}[/dim]"
    )
    console.print("[dim]Press Ctrl+C to stop.[/dim]")

    try:
        asyncio.run(forwarder.serve_forever())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
    except OSError as e:
        if "Address already in use" in str(e):
            print_error(f"Port {local_port} is already in use.")
        else:
            print_error(f"Error: {e}")
        raise typer.Exit(1)
