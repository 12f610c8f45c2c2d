from __future__ import annotations

from .lp_fair_price import LpFairPriceCalculator, compute_lp_price
from .lp_liquidity import estimate_lp_mint, estimate_price_impact, estimate_underlying

__all__ = [
    "LpFairPriceCalculator",
    "compute_lp_price",
    "estimate_lp_mint",
    "estimate_price_impact",
    "estimate_underlying",
]
