"""Liquidity estimates for two-asset pools: price impact, mint and redeem."""

from __future__ import annotations

from decimal import Decimal

from ..domain import LpMintEstimate, LpRedeemEstimate, LpReserveSnapshot, PriceImpact
from ..units import to_decimal, to_raw

IMPACT_TRADE_SIZES = (Decimal(1), Decimal(5))


def _impact(reserve: Decimal, trade_percent: Decimal) -> float:
    trade = reserve * trade_percent / 100
    if reserve + trade == 0:
        return 0.0
    return float(trade / (reserve + trade) * 100)


def estimate_price_impact(snapshot: LpReserveSnapshot) -> PriceImpact:
    """Approximate impact of buying/selling 1% and 5% of the pool reserves.

    Buying is modelled as adding token1 to the pool, selling as adding token0.
    """
    reserve0 = snapshot.reserve0.to_decimal()
    reserve1 = snapshot.reserve1.to_decimal()
    small, large = IMPACT_TRADE_SIZES
    return PriceImpact(
        buy_1_percent=_impact(reserve1, small),
        sell_1_percent=_impact(reserve0, small),
        buy_5_percent=_impact(reserve1, large),
        sell_5_percent=_impact(reserve0, large),
    )


def estimate_lp_mint(
    snapshot: LpReserveSnapshot, amount0_raw: str, amount1_raw: str
) -> LpMintEstimate:
    """LP tokens minted for depositing ``amount0_raw`` and ``amount1_raw``.

    The pool mints in proportion to the scarcer side:
    ``min(a0 / r0, a1 / r1) * supply``.
    """
    reserve0 = snapshot.reserve0.to_decimal()
    reserve1 = snapshot.reserve1.to_decimal()
    supply = snapshot.total_supply.to_decimal()
    if supply == 0 or reserve0 == 0 or reserve1 == 0:
        return LpMintEstimate(lp_amount_raw="0", share_of_pool_percent=0.0)

    amount0 = to_decimal(amount0_raw, snapshot.reserve0.decimals)
    amount1 = to_decimal(amount1_raw, snapshot.reserve1.decimals)
    minted = min(amount0 / reserve0, amount1 / reserve1) * supply
    new_supply = supply + minted
    share = minted / new_supply if new_supply > 0 else Decimal(0)

    return LpMintEstimate(
        lp_amount_raw=to_raw(minted, snapshot.total_supply.decimals),
        share_of_pool_percent=float(share * 100),
    )


def estimate_underlying(
    snapshot: LpReserveSnapshot, lp_amount_raw: str
) -> LpRedeemEstimate:
    """Token amounts received for redeeming ``lp_amount_raw`` LP tokens."""
    supply = snapshot.total_supply.to_decimal()
    lp_amount = to_decimal(lp_amount_raw, snapshot.total_supply.decimals)
    share = lp_amount / supply if supply > 0 else Decimal(0)

    token0_amount = snapshot.reserve0.to_decimal() * share
    token1_amount = snapshot.reserve1.to_decimal() * share

    return LpRedeemEstimate(
        token0_amount_raw=to_raw(token0_amount, snapshot.reserve0.decimals),
        token1_amount_raw=to_raw(token1_amount, snapshot.reserve1.decimals),
        share_of_pool_percent=float(share * 100),
    )
