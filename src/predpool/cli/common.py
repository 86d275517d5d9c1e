"""Helpers shared by CLI subcommands: client/service construction and option parsing."""

from __future__ import annotations

from typing import NoReturn

import typer

from predpool.client.http import TychesClient
from predpool.config.settings import Settings
from predpool.errors import PredpoolError
from predpool.odds.calculator import OddsCalculator


def make_client(settings: Settings) -> TychesClient:
    return TychesClient(
        base_url=settings.api_base_url,
        timeout=settings.api_timeout_sec,
        session_cookie=settings.session_cookie,
    )


def make_calculator(settings: Settings) -> OddsCalculator:
    return OddsCalculator(
        low_liquidity_floor=settings.low_liquidity_floor,
        low_liquidity_ratio=settings.low_liquidity_ratio,
    )


def parse_pairs(values: list[str] | None, option: str) -> dict[str, float]:
    """Parse repeated ``KEY=NUMBER`` options, keeping order."""
    pairs: dict[str, float] = {}
    for raw in values or []:
        key, sep, number = raw.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=NUMBER, got {raw!r}", param_hint=option)
        try:
            pairs[key] = float(number)
        except ValueError:
            raise typer.BadParameter(f"{number!r} is not a number", param_hint=option) from None
    return pairs


def fail(error: PredpoolError) -> NoReturn:
    """Print a domain error and exit non-zero."""
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1)
