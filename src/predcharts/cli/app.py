"""Root CLI app - entry point and command registration."""

import typer

from predcharts.config import get_settings
from predcharts.config.settings import configure_logging

app = typer.Typer(
    name="predcharts",
    help="predcharts - futarchy market charts: proposal resolution, candles, composite spot prices.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "profile": profile}


# Subcommands registered from other modules
from predcharts.cli import api_cmd, query  # noqa: E402

app.add_typer(api_cmd.app, name="serve")
app.command("resolve")(query.resolve)
app.command("chart")(query.chart)
app.command("prices")(query.prices)
app.command("spot")(query.spot)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
