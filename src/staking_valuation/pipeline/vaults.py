"""Per-vault unit of work: price resolution and tranche enrichment."""

from __future__ import annotations

import logging
from decimal import Decimal

from ..domain import (
    DepositTranche,
    LpTokenVault,
    TrancheValuation,
    VaultConfig,
    VaultSummary,
    canonical_address,
)
from ..errors import (
    InputValidationError,
    PriceComputationError,
    UpstreamUnavailableError,
)
from ..pricing import LpFairPriceCalculator
from ..rewards import RewardAccrualCalculator, remaining_lock_days, unlock_at
from ..units import to_display, to_raw, try_to_display
from ..validation import validate_address
from .context import UnitPrice, ValuationContext

logger = logging.getLogger(__name__)

UNAVAILABLE = "unavailable"


async def resolve_unit_price(
    vault: VaultConfig, calculator: LpFairPriceCalculator
) -> UnitPrice:
    """Price one share unit of ``vault``.

    LP vaults are priced by the fair-price calculator, single-asset vaults
    straight from the cached price feed. Upstream and computation failures
    degrade to a zero price with the error recorded; anything else propagates.
    """
    descriptor = vault.descriptor
    try:
        if isinstance(descriptor, LpTokenVault):
            result = await calculator.get_lp_price(
                descriptor.priced_address, vault.chain
            )
            return UnitPrice(result.usd_price, result.method.value)

        asset = descriptor.priced_address
        validate_address(asset, "asset address")
        try:
            price = await calculator.get_token_price(asset, vault.chain)
        except Exception as e:
            raise UpstreamUnavailableError(asset, str(e)) from e
        return UnitPrice(price.usd_price, price.source)
    except (UpstreamUnavailableError, PriceComputationError) as e:
        logger.warning("Failed to get price for vault %s: %s", vault.vault_id, e)
        return UnitPrice(0.0, UNAVAILABLE, str(e))


def _display_amount(
    tranche: DepositTranche, vault: VaultConfig, strict: bool
) -> str:
    decimals = vault.descriptor.decimals
    if not strict:
        return to_display(tranche.assets, decimals)

    result = try_to_display(tranche.assets, decimals)
    if not result.ok:
        raise InputValidationError(
            f"Tranche {tranche.tranche_id} in vault {vault.address}: {result.error}"
        )
    return result.value_or_zero()


def value_tranche(
    tranche: DepositTranche,
    vault: VaultConfig,
    unit_price: UnitPrice,
    rewards: RewardAccrualCalculator,
    ctx: ValuationContext,
) -> TrancheValuation:
    amount = _display_amount(tranche, vault, ctx.strict_amounts)
    staked_usd = float(Decimal(amount)) * unit_price.usd_price
    accrual = rewards.accrue(staked_usd, vault.kind, tranche.lock_days, vault.symbol)

    return TrancheValuation(
        tranche_id=tranche.tranche_id,
        staked_amount_raw=to_raw(amount, vault.descriptor.decimals),
        staked_amount=amount,
        staked_usd=staked_usd,
        accrual=accrual,
        lock_days=tranche.lock_days,
        remaining_lock_days=remaining_lock_days(
            tranche.deposited_at, tranche.lock_days, ctx.now
        ),
        deposited_at=tranche.deposited_at,
        unlock_at=unlock_at(tranche.deposited_at, tranche.lock_days),
    )


def summarize_vault(
    vault: VaultConfig,
    unit_price: UnitPrice,
    rewards: RewardAccrualCalculator,
    ctx: ValuationContext,
) -> VaultSummary:
    """Value the wallet's active tranches in ``vault`` at ``unit_price``.

    Retired tranches (zero shares) are skipped. A vault whose price could
    not be resolved still reports its staked amounts, with zero USD value.
    """
    active = [t for t in ctx.tranches_for(vault.address) if not t.is_retired]
    tranches = tuple(
        value_tranche(tranche, vault, unit_price, rewards, ctx) for tranche in active
    )

    decimals = vault.descriptor.decimals
    total_raw = sum(int(t.staked_amount_raw) for t in tranches)

    return VaultSummary(
        vault_id=vault.vault_id,
        vault_address=canonical_address(vault.address),
        symbol=vault.symbol,
        chain=vault.chain,
        kind=vault.kind,
        unit_price_usd=unit_price.usd_price,
        price_method=unit_price.method,
        total_staked_raw=str(total_raw),
        total_staked=to_display(total_raw, decimals),
        total_staked_usd=sum(t.staked_usd for t in tranches),
        position_count=len(tranches),
        total_earned_units=sum(t.accrual.earned_units for t in tranches),
        tranches=tranches,
        price_error=unit_price.error,
    )
