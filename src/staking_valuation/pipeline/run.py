"""Wallet valuation orchestration."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Sequence

from ..adapters.base import BaseEarningsSource, BasePositionSource
from ..constants import Chain
from ..domain import DepositTranche, Position, VaultConfig, VaultSummary, WalletSummary
from ..errors import InputValidationError, UpstreamUnavailableError, ValuationError
from ..pricing import LpFairPriceCalculator
from ..rewards import RewardAccrualCalculator
from ..validation import validate_address
from .context import ValuationContext
from .vaults import resolve_unit_price, summarize_vault

logger = logging.getLogger(__name__)

EARNED_FROM_HISTORY = "historical"
EARNED_FROM_ACTIVE_TRANCHES = "active_tranches"


def select_vaults(
    vaults: Sequence[VaultConfig],
    vault_id: str | None = None,
    search: str | None = None,
) -> list[VaultConfig]:
    """Filter vaults by exact ``vault_id`` and/or a case-insensitive search.

    The search term matches against symbol, vault id and vault address.
    """
    selected = list(vaults)
    if vault_id:
        selected = [v for v in selected if v.vault_id == vault_id.lower()]
    if search:
        term = search.lower()
        selected = [
            v
            for v in selected
            if term in v.symbol.lower()
            or term in v.vault_id
            or term in v.address.lower()
        ]
    return selected


def group_tranches(
    positions: Sequence[Position],
) -> dict[str, tuple[DepositTranche, ...]]:
    """Group position tranches by lowercased vault address."""
    grouped: dict[str, tuple[DepositTranche, ...]] = {}
    for position in positions:
        key = position.vault_address.lower()
        grouped[key] = grouped.get(key, ()) + tuple(position.tranches)
    return grouped


def fold_wallet_summary(
    wallet: str,
    vaults: Sequence[VaultSummary],
    valued_at: int,
    historical_earned: int | None = None,
) -> WalletSummary:
    """Combine per-vault summaries into one wallet summary.

    The earned total comes from ``historical_earned`` when known, otherwise
    it is the sum of the active tranches' earned units.
    """
    if historical_earned is None:
        total_earned = sum(v.total_earned_units for v in vaults)
        earned_source = EARNED_FROM_ACTIVE_TRANCHES
    else:
        total_earned = historical_earned
        earned_source = EARNED_FROM_HISTORY

    return WalletSummary(
        wallet=wallet,
        portfolio_value_usd=sum(v.total_staked_usd for v in vaults),
        total_positions=sum(v.position_count for v in vaults),
        vaults_with_stakes=sum(1 for v in vaults if v.has_stake),
        total_earned_units=total_earned,
        earned_source=earned_source,
        valued_at=valued_at,
        vaults=tuple(vaults),
    )


def _process_vault_results(
    vaults: Sequence[VaultConfig],
    results: Sequence[BaseException | VaultSummary],
) -> list[VaultSummary]:
    """Process asyncio.gather results from the per-vault tasks.

    Price failures are already folded into the summaries, so an exception
    here is a contract violation and fails the whole valuation.

    Raises:
        InputValidationError: If a vault failed input validation
        ValuationError: If any other vault task failed
    """
    summaries: list[VaultSummary] = []
    failures: list[tuple[str, BaseException]] = []

    for vault, result in zip(vaults, results):
        if isinstance(result, BaseException):
            logger.error("Valuation of vault '%s' failed: %s", vault.vault_id, result)
            failures.append((vault.vault_id, result))
        else:
            logger.debug(
                "Vault '%s' valued with %d active tranche(s)",
                vault.vault_id,
                result.position_count,
            )
            summaries.append(result)

    if failures:
        for _, error in failures:
            if isinstance(error, InputValidationError):
                raise error
        failure_list = ", ".join(name for name, _ in failures)
        raise ValuationError(
            f"Failed to value {len(failures)} vault(s): {failure_list}"
        ) from failures[0][1]

    return summaries


class PositionValuationPipeline:
    """Values a wallet's staking positions across configured vaults.

    Each active vault is valued in its own task; the tasks share the
    price cache through ``calculator`` and only read the shared context.
    """

    def __init__(
        self,
        calculator: LpFairPriceCalculator,
        position_source: BasePositionSource,
        earnings_source: BaseEarningsSource | None = None,
        rewards: RewardAccrualCalculator | None = None,
        strict_amounts: bool = False,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.calculator = calculator
        self.position_source = position_source
        self.earnings_source = earnings_source
        self.rewards = rewards or RewardAccrualCalculator()
        self.strict_amounts = strict_amounts
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    async def _fetch_positions(
        self, wallet: str, chains: set[Chain]
    ) -> list[Position]:
        ordered = sorted(chains, key=lambda c: c.value)
        results = await asyncio.gather(
            *[self.position_source.fetch_positions(wallet, c) for c in ordered],
            return_exceptions=True,
        )

        positions: list[Position] = []
        for chain, result in zip(ordered, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to fetch positions for %s on %s: %s",
                    wallet,
                    chain.value,
                    result,
                )
                raise UpstreamUnavailableError(wallet, str(result)) from result
            positions.extend(result)
        return positions

    async def _historical_earned(self, wallet: str) -> int | None:
        if self.earnings_source is None:
            return None
        try:
            total = await self.earnings_source.fetch_total_earned(wallet)
        except Exception as e:
            logger.warning(
                "Historical earnings unavailable for %s, summing active tranches: %s",
                wallet,
                e,
            )
            return None
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            logger.warning(
                "Ignoring invalid historical earnings %r for %s", total, wallet
            )
            return None
        return total

    async def _value_vault(
        self, vault: VaultConfig, ctx: ValuationContext
    ) -> VaultSummary:
        unit_price = await resolve_unit_price(vault, self.calculator)
        return summarize_vault(vault, unit_price, self.rewards, ctx)

    async def value_wallet(
        self,
        wallet: str,
        vaults: Sequence[VaultConfig],
        now: int | None = None,
    ) -> WalletSummary:
        """Value every active vault position of ``wallet``.

        Args:
            wallet: Wallet address (0x + 40 hex chars)
            vaults: Vault configurations to consider; inactive ones are skipped
            now: Valuation time as unix seconds, defaults to the clock

        Returns:
            WalletSummary with one VaultSummary per active vault

        Raises:
            InputValidationError: If the wallet or a tranche amount is invalid
            UpstreamUnavailableError: If positions could not be fetched
            asyncio.TimeoutError: If the configured timeout elapsed
        """
        validate_address(wallet, "wallet address")
        valued_at = int(self._clock()) if now is None else now
        active = [v for v in vaults if v.is_active]

        logger.info(
            "Valuing wallet %s across %d active vault(s)", wallet, len(active)
        )

        async def _run() -> WalletSummary:
            positions = await self._fetch_positions(wallet, {v.chain for v in active})
            ctx = ValuationContext(
                wallet=wallet,
                now=valued_at,
                strict_amounts=self.strict_amounts,
                tranches_by_vault=group_tranches(positions),
            )

            results = await asyncio.gather(
                *[self._value_vault(vault, ctx) for vault in active],
                return_exceptions=True,
            )
            summaries = _process_vault_results(active, results)
            historical = await self._historical_earned(wallet)
            return fold_wallet_summary(wallet, summaries, valued_at, historical)

        timeout_s = self.timeout_seconds
        try:
            if timeout_s is None or timeout_s <= 0:
                summary = await _run()
            else:
                async with asyncio.timeout(timeout_s):
                    summary = await _run()
        except asyncio.TimeoutError as exc:
            logger.error("Valuation of wallet %s timed out", wallet)
            raise asyncio.TimeoutError(
                f"Valuation exceeded global timeout {timeout_s}s (wallet={wallet})"
            ) from exc

        logger.info(
            "Wallet %s valued at %.2f USD over %d position(s)",
            wallet,
            summary.portfolio_value_usd,
            summary.total_positions,
        )
        return summary
