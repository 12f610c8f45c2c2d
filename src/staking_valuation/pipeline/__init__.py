"""Wallet position valuation pipeline."""

from .context import UnitPrice, ValuationContext
from .run import (
    PositionValuationPipeline,
    fold_wallet_summary,
    group_tranches,
    select_vaults,
)
from .vaults import resolve_unit_price, summarize_vault, value_tranche

__all__ = [
    "PositionValuationPipeline",
    "UnitPrice",
    "ValuationContext",
    "fold_wallet_summary",
    "group_tranches",
    "resolve_unit_price",
    "select_vaults",
    "summarize_vault",
    "value_tranche",
]
