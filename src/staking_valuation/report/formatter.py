"""Rich console formatter for valuation results."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.columns import Columns
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..domain import LpPriceResult, VaultSummary, WalletSummary


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    return f"{address[:10]}...{address[-4:]}"


def _format_usd(value: float) -> str:
    return f"${value:,.2f}"


def _format_timestamp(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M UTC"
    )


def _key_value_table(style: str) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style=style)
    return table


def _vault_panel(vault: VaultSummary) -> Panel:
    tranche_table = Table(expand=True, show_lines=False)
    tranche_table.add_column("Tranche", style="cyan", no_wrap=True)
    tranche_table.add_column("Staked", justify="right")
    tranche_table.add_column("Value (USD)", justify="right", style="green")
    tranche_table.add_column("Lock", justify="right")
    tranche_table.add_column("Remaining", justify="right", style="yellow")
    tranche_table.add_column("Multiplier", justify="right")
    tranche_table.add_column("Earned", justify="right", style="magenta")

    for tranche in vault.tranches:
        remaining = "[dim]unlocked[/]"
        if tranche.is_locked:
            remaining = f"{tranche.remaining_lock_days}d"
        tranche_table.add_row(
            tranche.tranche_id,
            tranche.staked_amount,
            _format_usd(tranche.staked_usd),
            f"{tranche.lock_days}d",
            remaining,
            f"{tranche.accrual.multiplier_applied:.4f}x",
            f"{tranche.accrual.earned_units:,}",
        )

    tranche_table.add_row(
        "[bold]TOTAL[/]",
        f"[bold]{vault.total_staked}[/]",
        f"[bold]{_format_usd(vault.total_staked_usd)}[/]",
        "",
        "",
        "",
        f"[bold]{vault.total_earned_units:,}[/]",
        style="bold",
    )

    price = _format_usd(vault.unit_price_usd)
    if vault.price_error:
        price = f"[red]{price} ({escape(vault.price_error)})[/]"

    title = f"[bold]{vault.symbol}[/] [dim]{vault.chain.value} {vault.kind.value}[/]"
    return Panel(
        Group(f"Unit price: {price} via {vault.price_method}", tranche_table),
        title=title,
        border_style="red" if vault.price_error else "cyan",
    )


def format_wallet_summary(
    summary: WalletSummary, console: Console | None = None
) -> None:
    """Print a wallet summary dashboard: overview, then one panel per vault."""
    console = console or Console()

    wallet_table = _key_value_table("cyan")
    wallet_table.add_row("Wallet", _truncate_address(summary.wallet))
    wallet_table.add_row("Valued at", _format_timestamp(summary.valued_at))
    wallet_panel = Panel(wallet_table, title="[bold]Wallet[/]", border_style="blue")

    totals_table = _key_value_table("green")
    totals_table.add_row("Portfolio", _format_usd(summary.portfolio_value_usd))
    totals_table.add_row("Positions", str(summary.total_positions))
    totals_table.add_row("Vaults staked", str(summary.vaults_with_stakes))
    totals_table.add_row(
        "Earned", f"{summary.total_earned_units:,} ({summary.earned_source})"
    )
    totals_panel = Panel(totals_table, title="[bold]Summary[/]", border_style="green")

    top_row = Columns([wallet_panel, totals_panel], equal=True, expand=True)
    vault_panels = [_vault_panel(v) for v in summary.vaults if v.has_stake]
    if not vault_panels:
        vault_panels = ["[dim]No active staking positions[/]"]

    console.print()
    console.print(
        Panel(
            Group(top_row, "", *vault_panels),
            title="[bold white]Staking Positions[/]",
            border_style="white",
            padding=(1, 2),
        )
    )
    console.print()


def format_lp_price(result: LpPriceResult, console: Console | None = None) -> None:
    """Print an LP price breakdown."""
    console = console or Console()

    table = _key_value_table("cyan")
    table.add_row("LP token", result.lp_address)
    table.add_row("Chain", result.chain.value)
    table.add_row("Price", f"[green]{_format_usd(result.usd_price)}[/]")
    table.add_row("Method", result.method.value)
    table.add_row("Token0 reserve", _format_usd(result.reserve0_usd))
    table.add_row("Token1 reserve", _format_usd(result.reserve1_usd))
    table.add_row("Liquidity", _format_usd(result.total_liquidity_usd))
    table.add_row(
        "Weights", f"{result.token0_weight:.2%} / {result.token1_weight:.2%}"
    )
    table.add_row("Block", str(result.block_number))

    console.print(Panel(table, title="[bold]LP Fair Price[/]", border_style="blue"))
