"""Root CLI application for reddock."""

import typer

from reddock import __version__
from reddock.cli import addons

app = typer.Typer(
    name="reddock",
    help="Build and extend redroid Android containers with vendor add-ons.",
    no_args_is_help=True,
)

# Register subcommands
app.add_typer(addons.app, name="addons", help="Prepare, bake and inject add-ons")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"reddock {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """reddock - redroid add-on manager."""
    pass


if __name__ == "__main__":
    app()
