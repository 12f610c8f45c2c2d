"""CLI entrypoint for the staking valuation engine."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from .adapters import (
    BasePriceSource,
    CoinGeckoPriceSource,
    SnapshotDocument,
    SnapshotEarningsSource,
    SnapshotPositionSource,
    SnapshotPriceSource,
    SnapshotReserveSource,
)
from .constants import Chain
from .domain import VaultConfig
from .errors import InputValidationError, ValuationError
from .logger import setup_logging
from .pipeline import PositionValuationPipeline, select_vaults
from .pricing import LpFairPriceCalculator, estimate_price_impact
from .rewards import RewardAccrualCalculator
from .report import format_lp_price, format_wallet_summary, publish_json
from .settings import EngineSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Value staking positions and price LP tokens.",
)

SnapshotOption = Annotated[
    Path,
    typer.Option(
        "--snapshot",
        "-s",
        exists=True,
        dir_okay=False,
        help="JSON snapshot with prices, reserves, positions and earnings.",
    ),
]
JsonOption = Annotated[
    bool, typer.Option("--json", help="Print the result as JSON instead of tables.")
]
LivePricesOption = Annotated[
    bool,
    typer.Option(
        "--live-prices",
        help="Fetch token prices from CoinGecko instead of the snapshot.",
    ),
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("staking_valuation")


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("CLI state was not initialised")
    return state


def _build_calculator(
    state: AppState, document: SnapshotDocument, live_prices: bool
) -> LpFairPriceCalculator:
    price_source: BasePriceSource
    if live_prices:
        price_source = CoinGeckoPriceSource(state.settings)
    else:
        price_source = SnapshotPriceSource(document)
    state.logger.debug("Using %s token prices", price_source.source_name)
    return LpFairPriceCalculator(
        reserve_source=SnapshotReserveSource(document),
        price_source=price_source,
        cache=state.cache,
    )


def _merge_vaults(
    configured: list[VaultConfig], document: SnapshotDocument
) -> list[VaultConfig]:
    """Configured vaults first, then snapshot vaults not already configured."""
    merged = list(configured)
    known = {v.address.lower() for v in configured}
    for vault in document.vaults:
        if vault.address.lower() not in known:
            merged.append(vault.to_config())
            known.add(vault.address.lower())
    return merged


def _fail(error: ValuationError) -> NoReturn:
    if isinstance(error, InputValidationError):
        raise typer.BadParameter(str(error))
    typer.secho(f"Error: {error}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [staking_valuation] table).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    strict_amounts: Annotated[
        bool | None,
        typer.Option(
            "--strict-amounts/--lenient-amounts",
            help="Reject malformed token amounts instead of valuing them at zero.",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration and logging shared by every command."""
    if config_path:
        os.environ["STAKING_VALUATION_CONFIG"] = str(config_path)

    init_kwargs: dict[str, bool | str] = {}
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()
    if strict_amounts is not None:
        init_kwargs["strict_amounts"] = strict_amounts

    settings = EngineSettings(**init_kwargs)

    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command("lp-price")
def lp_price(
    ctx: typer.Context,
    lp_address: Annotated[str, typer.Argument(help="LP token address.")],
    snapshot: SnapshotOption,
    chain: Annotated[
        Chain, typer.Option("--chain", help="Chain the pool lives on.")
    ] = Chain.BASE,
    block_number: Annotated[
        int | None,
        typer.Option("--block-number", help="Require reserves at least this recent."),
    ] = None,
    live_prices: LivePricesOption = False,
    as_json: JsonOption = False,
):
    """Compute the fair USD price of one LP token."""
    state = _state(ctx)
    document = SnapshotDocument.load(snapshot)
    calculator = _build_calculator(state, document, live_prices)

    try:
        result = asyncio.run(calculator.get_lp_price(lp_address, chain, block_number))
    except ValuationError as e:
        _fail(e)

    if as_json:
        publish_json(result)
    else:
        format_lp_price(result)


@app.command("lp-impact")
def lp_impact(
    ctx: typer.Context,
    lp_address: Annotated[str, typer.Argument(help="LP token address.")],
    snapshot: SnapshotOption,
    chain: Annotated[
        Chain, typer.Option("--chain", help="Chain the pool lives on.")
    ] = Chain.BASE,
):
    """Estimate the price impact of 1% and 5% trades against a pool."""
    state = _state(ctx)
    document = SnapshotDocument.load(snapshot)
    calculator = _build_calculator(state, document, live_prices=False)

    try:
        reserves = asyncio.run(calculator.get_reserves(lp_address, chain))
    except ValuationError as e:
        _fail(e)

    publish_json(estimate_price_impact(reserves))


@app.command("positions")
def positions(
    ctx: typer.Context,
    wallet: Annotated[str, typer.Argument(help="Wallet address to value.")],
    snapshot: SnapshotOption,
    vault_id: Annotated[
        str | None, typer.Option("--vault-id", help="Only value this vault.")
    ] = None,
    search: Annotated[
        str | None,
        typer.Option("--search", help="Filter vaults by symbol, id or address."),
    ] = None,
    now: Annotated[
        int | None,
        typer.Option("--now", help="Valuation time as unix seconds."),
    ] = None,
    live_prices: LivePricesOption = False,
    as_json: JsonOption = False,
):
    """Value a wallet's staking positions and accrued rewards."""
    state = _state(ctx)
    settings = state.settings
    document = SnapshotDocument.load(snapshot)

    vaults = select_vaults(
        _merge_vaults(settings.vault_configs, document), vault_id, search
    )
    if not vaults:
        raise typer.BadParameter("No vaults match the given filters")

    pipeline = PositionValuationPipeline(
        calculator=_build_calculator(state, document, live_prices),
        position_source=SnapshotPositionSource(document),
        earnings_source=SnapshotEarningsSource(document),
        rewards=RewardAccrualCalculator(settings.reward_rate_table),
        strict_amounts=settings.strict_amounts,
        timeout_seconds=settings.global_timeout_seconds,
    )

    try:
        summary = asyncio.run(pipeline.value_wallet(wallet, vaults, now))
    except ValuationError as e:
        _fail(e)

    if as_json:
        publish_json(summary)
    else:
        format_wallet_summary(summary)


@app.command("vaults")
def vaults(
    ctx: typer.Context,
    snapshot: Annotated[
        Path | None,
        typer.Option(
            "--snapshot",
            "-s",
            exists=True,
            dir_okay=False,
            help="Also list vaults declared in this snapshot.",
        ),
    ] = None,
    search: Annotated[
        str | None,
        typer.Option("--search", help="Filter vaults by symbol, id or address."),
    ] = None,
):
    """List configured vaults and their reward rates."""
    settings = _state(ctx).settings
    configured = settings.vault_configs
    if snapshot is not None:
        configured = _merge_vaults(configured, SnapshotDocument.load(snapshot))

    rates = settings.reward_rate_table
    table = Table(title="Vaults")
    table.add_column("Vault", style="cyan", no_wrap=True)
    table.add_column("Symbol")
    table.add_column("Chain")
    table.add_column("Kind")
    table.add_column("Rate", justify="right", style="magenta")
    table.add_column("Active", justify="center")
    for vault in select_vaults(configured, search=search):
        table.add_row(
            vault.vault_id,
            vault.symbol,
            vault.chain.value,
            vault.kind.value,
            rates.describe(vault.kind, vault.symbol),
            "yes" if vault.is_active else "[dim]no[/]",
        )
    Console().print(table)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
