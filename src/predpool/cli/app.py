"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from predpool.config import get_settings
from predpool.config.settings import configure_logging

app = typer.Typer(
    name="predpool",
    help="predpool - Parimutuel odds, bet placement, live odds and gossip for social prediction markets.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from predpool.cli import bet, gossip, odds, watch  # noqa: E402

app.add_typer(odds.app, name="odds")
app.add_typer(bet.app, name="bet")
app.add_typer(gossip.app, name="gossip")
app.command("watch")(watch.watch)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
