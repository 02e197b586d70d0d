"""Email Assistant CLI."""

import json

import typer

from email_assistant import __version__
from email_assistant.config import get_settings

app = typer.Typer(
    name="email-assistant",
    help="Email Assistant - inbox summaries with undoable bulk delete.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"email-assistant {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Email Assistant - inbox summaries with undoable bulk delete."""
    pass


def _mask(secret: str | None) -> str | None:
    if not secret:
        return secret
    return secret[:4] + "***" if len(secret) > 8 else "***"


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from settings)"),
) -> None:
    """Run the HTTP API server."""
    from email_assistant.main import run

    run(host=host, port=port)


@app.command()
def config(
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Show the effective configuration."""
    settings = get_settings()
    data = settings.model_dump(mode="json")
    data["api_token"] = _mask(settings.api_token)

    if output_json:
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo("Email Assistant configuration")
    typer.echo("=" * 30)
    for key, value in data.items():
        typer.echo(f"{key:<22} {value}")


if __name__ == "__main__":
    app()
