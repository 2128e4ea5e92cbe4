"""
wsrelay CLI entry point.

Usage:
    wsrelay [OPTIONS] COMMAND [ARGS]...

Commands:
    serve     Run the relay server
    forward   Forward a local port through a relay
    version   Show version information
"""

import typer

from wsrelay.cli.commands import forward, serve
from wsrelay.cli.output import console

app = typer.Typer(
    name="wsrelay",
    help="Authenticated TCP-over-WebSocket relay",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register commands
app.command("serve", help="Run the relay server")(serve.serve)
app.command("forward", help="Forward a local port through a relay")(forward.forward)


@app.command("version")
def version():
    """Show version information."""
    from wsrelay import __version__

    console.print(f"wsrelay v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
