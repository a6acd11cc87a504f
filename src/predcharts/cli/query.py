"""One-shot queries: resolve a proposal, build a chart, read prices, evaluate a spot ticker."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

import typer

from predcharts.errors import PredChartsError
from predcharts.service import ChartQuery, Runtime, open_runtime


def _run(ctx: typer.Context, fn: Callable[[Runtime], Awaitable[Any]]) -> Any:
    settings = ctx.obj["settings"]

    async def _go() -> Any:
        async with open_runtime(settings) as runtime:
            return await fn(runtime)

    try:
        return asyncio.run(_go())
    except PredChartsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def resolve(
    ctx: typer.Context,
    proposal_id: str = typer.Argument(..., help="Snapshot proposal id or trading address"),
) -> None:
    """Resolve a proposal identifier to its trading address and configuration."""
    identity = _run(ctx, lambda rt: rt.adapter.resolve_proposal(proposal_id))
    _echo_json(identity.model_dump())


def chart(
    ctx: typer.Context,
    proposal_id: str = typer.Argument(..., help="Snapshot proposal id or trading address"),
    min_ts: int = typer.Option(0, "--min", help="Window start (unix seconds)"),
    max_ts: int | None = typer.Option(None, "--max", help="Window end (unix seconds, default now)"),
    spot: bool = typer.Option(True, "--spot/--no-spot", help="Include the spot series"),
    full: bool = typer.Option(False, "--full", help="Print the whole response instead of a summary"),
) -> None:
    """Build the chart response for a proposal."""
    query = ChartQuery(proposal_id=proposal_id, min_timestamp=min_ts, max_timestamp=max_ts, include_spot=spot)
    response = _run(ctx, lambda rt: rt.service.get_chart(query))
    if full:
        _echo_json(response.model_dump())
        return
    market = response.market
    typer.echo(f"Proposal {market.event_id}")
    typer.echo(
        f"  YES {market.conditional_yes.price_usd:.6f}  NO {market.conditional_no.price_usd:.6f}"
        f"  SPOT {market.spot.price_usd if market.spot.price_usd is not None else '-'}"
    )
    typer.echo(
        f"  Tokens {market.company_tokens.base.tokenSymbol}/{market.company_tokens.currency.tokenSymbol}"
        f"  chain {market.timeline.chain_id}"
    )
    typer.echo(
        f"  Candles YES={len(response.candles.yes)} NO={len(response.candles.no)} SPOT={len(response.candles.spot)}"
    )


def prices(
    ctx: typer.Context,
    proposal_id: str = typer.Argument(..., help="Snapshot proposal id or trading address"),
) -> None:
    """Current market prices for a proposal (no candles)."""
    summary = _run(ctx, lambda rt: rt.service.get_prices(proposal_id))
    _echo_json(summary.model_dump())


def spot(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Ticker, e.g. PNK/WETH+!sDAI/WETH-hour-500-xdai"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Override the sample limit"),
    tail: int = typer.Option(10, "--tail", help="Points to print"),
) -> None:
    """Evaluate a composite spot ticker."""
    result = _run(ctx, lambda rt: rt.spot_engine.fetch_spot_candles(ticker, limit))
    if result.error:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Pool {result.pool}  price {result.price}  rate {result.rate}  points {len(result.candles)}")
    for point in result.candles[-tail:]:
        typer.echo(f"  {point.time}  {point.value}")
