"""Fair USD price of constant-product LP tokens."""

from __future__ import annotations

import asyncio
import logging
import math

from ..adapters.base import BasePriceSource, BaseReserveSource
from ..cache import PriceCache
from ..constants import LP_PRICE_NAMESPACE, TOKEN_PRICE_NAMESPACE, Chain
from ..domain import LpPriceResult, LpReserveSnapshot, PriceMethod, TokenPrice
from ..errors import PriceComputationError, UpstreamUnavailableError
from ..validation import validate_address, validate_chain

logger = logging.getLogger(__name__)


def _geometric_price(
    reserve0: float, reserve1: float, price0: float, price1: float, supply: float
) -> float:
    try:
        return 2 * math.sqrt(reserve0 * reserve1) * math.sqrt(price0 * price1) / supply
    except (ValueError, OverflowError, ZeroDivisionError):
        return math.nan


def compute_lp_price(
    snapshot: LpReserveSnapshot,
    price0: float,
    price1: float,
    chain: Chain,
) -> LpPriceResult:
    """Price one LP token from pool reserves and constituent USD prices.

    Uses the constant-product fair value
    ``2 * sqrt(r0 * r1) * sqrt(p0 * p1) / supply``, which never exceeds the
    reserve-weighted price and is insensitive to reserve-ratio skew. Falls
    back to ``(r0 * p0 + r1 * p1) / supply`` when the primary value is not
    finite or negative. Empty pools and zero supply price at zero.

    Args:
        snapshot: Reserves and supply observed at one block
        price0: USD price of token0
        price1: USD price of token1
        chain: Chain the pool lives on

    Returns:
        LpPriceResult whose ``method`` records which path produced the price

    Raises:
        PriceComputationError: If the fallback is not finite either
    """
    reserve0 = float(snapshot.reserve0.to_decimal())
    reserve1 = float(snapshot.reserve1.to_decimal())
    supply = float(snapshot.total_supply.to_decimal())

    reserve0_usd = reserve0 * price0
    reserve1_usd = reserve1 * price1
    total_liquidity_usd = reserve0_usd + reserve1_usd
    if total_liquidity_usd > 0 and math.isfinite(total_liquidity_usd):
        token0_weight = reserve0_usd / total_liquidity_usd
        token1_weight = reserve1_usd / total_liquidity_usd
    else:
        token0_weight = token1_weight = 0.0

    def _result(usd_price: float, method: PriceMethod) -> LpPriceResult:
        return LpPriceResult(
            lp_address=snapshot.lp_address,
            chain=chain,
            usd_price=usd_price,
            method=method,
            reserve0_usd=reserve0_usd,
            reserve1_usd=reserve1_usd,
            total_liquidity_usd=total_liquidity_usd,
            token0_weight=token0_weight,
            token1_weight=token1_weight,
            block_number=snapshot.block_number,
            observed_at=snapshot.observed_at,
        )

    if reserve0 == 0 or reserve1 == 0 or supply == 0:
        logger.debug("LP token %s has no liquidity or supply", snapshot.lp_address)
        return _result(0.0, PriceMethod.ZERO)

    geometric = _geometric_price(reserve0, reserve1, price0, price1, supply)
    if math.isfinite(geometric) and geometric >= 0:
        return _result(geometric, PriceMethod.GEOMETRIC)

    arithmetic = total_liquidity_usd / supply
    logger.warning(
        "Geometric price for LP token %s is %s; falling back to arithmetic mean %s",
        snapshot.lp_address,
        geometric,
        arithmetic,
    )
    if not math.isfinite(arithmetic) or arithmetic < 0:
        raise PriceComputationError(
            f"LP token {snapshot.lp_address} has no finite price "
            f"(geometric={geometric}, arithmetic={arithmetic})"
        )
    return _result(arithmetic, PriceMethod.ARITHMETIC)


class LpFairPriceCalculator:
    """Resolves LP token prices from injected reserve and price sources.

    Token prices and computed LP prices go through the shared
    :class:`PriceCache`. A price pinned to ``block_number`` bypasses the
    cache, since cache entries are not block-scoped.
    """

    def __init__(
        self,
        reserve_source: BaseReserveSource,
        price_source: BasePriceSource,
        cache: PriceCache,
        ttl_seconds: float | None = None,
    ):
        self.reserve_source = reserve_source
        self.price_source = price_source
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def get_token_price(self, token_address: str, chain: Chain) -> TokenPrice:
        """Cached token price straight from the price source (errors unwrapped)."""

        async def _fetch() -> TokenPrice:
            price = await self.price_source.fetch_token_price(token_address, chain)
            if price.is_stale:
                logger.warning(
                    "Price for %s from %s is stale (observed %s)",
                    token_address,
                    price.source,
                    price.observed_at.isoformat(),
                )
            return price

        return await self.cache.get_or_compute(
            TOKEN_PRICE_NAMESPACE, token_address, chain, _fetch, self.ttl_seconds
        )

    async def get_reserves(
        self, lp_address: str, chain: Chain | str, block_number: int | None = None
    ) -> LpReserveSnapshot:
        """Fetch a reserve snapshot, wrapping source failures.

        Raises:
            InputValidationError: If the address or chain is invalid
            UpstreamUnavailableError: If the reserve source failed
        """
        validate_address(lp_address, "LP token address")
        resolved_chain = validate_chain(chain)
        try:
            return await self.reserve_source.fetch_reserves(
                lp_address, resolved_chain, block_number
            )
        except Exception as e:
            logger.error("Failed to get LP token data for %s: %s", lp_address, e)
            raise UpstreamUnavailableError(lp_address, str(e)) from e

    async def get_lp_price(
        self,
        lp_address: str,
        chain: Chain | str,
        block_number: int | None = None,
    ) -> LpPriceResult:
        """Compute the fair USD price of one LP token.

        Args:
            lp_address: LP token address (0x + 40 hex chars)
            chain: Supported chain identifier
            block_number: Optional block to pin the reserve snapshot to

        Returns:
            A complete LpPriceResult

        Raises:
            InputValidationError: If the address or chain is invalid
            UpstreamUnavailableError: If reserves or constituent prices could
                not be fetched
            PriceComputationError: If no finite price can be derived
        """
        validate_address(lp_address, "LP token address")
        resolved_chain = validate_chain(chain)

        if block_number is None:
            cached = self.cache.get(LP_PRICE_NAMESPACE, lp_address, resolved_chain)
            if cached is not None:
                return cached

        snapshot = await self.get_reserves(lp_address, resolved_chain, block_number)
        try:
            price0, price1 = await asyncio.gather(
                self.get_token_price(snapshot.token0, resolved_chain),
                self.get_token_price(snapshot.token1, resolved_chain),
            )
        except Exception as e:
            logger.error(
                "Failed to get constituent prices for LP token %s: %s", lp_address, e
            )
            raise UpstreamUnavailableError(lp_address, str(e)) from e

        result = compute_lp_price(
            snapshot, price0.usd_price, price1.usd_price, resolved_chain
        )
        logger.debug(
            "LP token %s priced at %s USD via %s",
            lp_address,
            result.usd_price,
            result.method.value,
        )

        if block_number is None:
            self.cache.set(
                LP_PRICE_NAMESPACE, lp_address, resolved_chain, result, self.ttl_seconds
            )
        return result

    async def get_lp_prices(
        self, lp_addresses: list[str], chain: Chain | str
    ) -> dict[str, LpPriceResult]:
        """Price several LP tokens; failures are logged and left out.

        Returns:
            Mapping of lowercased LP address to its price
        """
        results = await asyncio.gather(
            *[self.get_lp_price(address, chain) for address in lp_addresses],
            return_exceptions=True,
        )

        prices: dict[str, LpPriceResult] = {}
        for address, result in zip(lp_addresses, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to calculate price for LP token %s: %s", address, result
                )
                continue
            prices[address.lower()] = result
        return prices
