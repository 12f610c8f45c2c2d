"""Domain models for the valuation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Union

from web3 import Web3

from ..constants import Chain, VaultKind
from ..units import to_decimal, to_display


def canonical_address(address: str) -> str:
    """EIP-55 checksum an address, falling back to lowercase."""
    try:
        return Web3.to_checksum_address(address)
    except ValueError:
        return address.lower()


@dataclass(frozen=True)
class TokenAmount:
    """Raw integer token amount together with its decimal scale."""

    raw: str
    decimals: int

    @property
    def display(self) -> str:
        return to_display(self.raw, self.decimals)

    def to_decimal(self) -> Decimal:
        return to_decimal(self.raw, self.decimals)

    def is_zero(self) -> bool:
        return self.to_decimal() == 0


@dataclass(frozen=True)
class TokenPrice:
    """USD price of a token as reported by a price feed."""

    token_address: str
    chain: Chain
    usd_price: float
    source: str
    observed_at: datetime
    is_stale: bool = False
    change_24h: float | None = None


@dataclass(frozen=True)
class LpReserveSnapshot:
    """Reserves and total supply of a two-asset pool, observed at one block."""

    lp_address: str
    token0: str
    token1: str
    reserve0: TokenAmount
    reserve1: TokenAmount
    total_supply: TokenAmount
    block_number: int
    observed_at: datetime


class PriceMethod(str, Enum):
    GEOMETRIC = "geometric"
    ARITHMETIC = "arithmetic"
    ZERO = "zero"


@dataclass(frozen=True)
class LpPriceResult:
    """Fair USD price of one LP token, with per-leg breakdown."""

    lp_address: str
    chain: Chain
    usd_price: float
    method: PriceMethod
    reserve0_usd: float
    reserve1_usd: float
    total_liquidity_usd: float
    token0_weight: float
    token1_weight: float
    block_number: int
    observed_at: datetime


@dataclass(frozen=True)
class PriceImpact:
    """Approximate price impact (percent) of trading a share of the reserves."""

    buy_1_percent: float
    sell_1_percent: float
    buy_5_percent: float
    sell_5_percent: float


@dataclass(frozen=True)
class LpMintEstimate:
    lp_amount_raw: str
    share_of_pool_percent: float


@dataclass(frozen=True)
class LpRedeemEstimate:
    token0_amount_raw: str
    token1_amount_raw: str
    share_of_pool_percent: float


@dataclass(frozen=True)
class RewardAccrualResult:
    earned_units: int
    multiplier_applied: float
    base_rate_applied: float


@dataclass(frozen=True)
class SingleTokenVault:
    """Vault holding a single ERC-20 asset."""

    asset_address: str
    decimals: int

    @property
    def kind(self) -> VaultKind:
        return VaultKind.SINGLE_TOKEN

    @property
    def priced_address(self) -> str:
        return self.asset_address


@dataclass(frozen=True)
class LpTokenVault:
    """Vault holding a two-asset LP token."""

    lp_address: str
    token0: str
    token1: str
    decimals: int

    @property
    def kind(self) -> VaultKind:
        return VaultKind.LP_TOKEN

    @property
    def priced_address(self) -> str:
        return self.lp_address


VaultDescriptor = Union[SingleTokenVault, LpTokenVault]


@dataclass(frozen=True)
class VaultConfig:
    """A staking vault and the asset it holds."""

    address: str
    chain: Chain
    symbol: str
    descriptor: VaultDescriptor
    is_active: bool = True

    @property
    def kind(self) -> VaultKind:
        return self.descriptor.kind

    @property
    def vault_id(self) -> str:
        slug = self.symbol.lower().replace("/", "_").replace("-lp", "")
        return f"{slug}_vault"


@dataclass(frozen=True)
class DepositTranche:
    """One independently locked deposit inside a vault position.

    ``shares`` and ``assets`` are raw integer strings; a tranche whose share
    amount is zero has been withdrawn.
    """

    tranche_id: str
    deposited_at: int
    lock_days: int
    shares: str
    assets: str

    @property
    def is_retired(self) -> bool:
        return to_decimal(self.shares, 0) == 0


@dataclass(frozen=True)
class Position:
    wallet: str
    vault_address: str
    tranches: tuple[DepositTranche, ...] = ()


@dataclass(frozen=True)
class TrancheValuation:
    tranche_id: str
    staked_amount_raw: str
    staked_amount: str
    staked_usd: float
    accrual: RewardAccrualResult
    lock_days: int
    remaining_lock_days: int
    deposited_at: int
    unlock_at: int

    @property
    def is_locked(self) -> bool:
        return self.remaining_lock_days > 0


@dataclass(frozen=True)
class VaultSummary:
    """Valuation of one wallet's tranches in one vault."""

    vault_id: str
    vault_address: str
    symbol: str
    chain: Chain
    kind: VaultKind
    unit_price_usd: float
    price_method: str
    total_staked_raw: str
    total_staked: str
    total_staked_usd: float
    position_count: int
    total_earned_units: int
    tranches: tuple[TrancheValuation, ...] = ()
    price_error: str | None = None

    @property
    def has_stake(self) -> bool:
        return self.position_count > 0


@dataclass(frozen=True)
class WalletSummary:
    """Portfolio-level view across all vaults for one wallet."""

    wallet: str
    portfolio_value_usd: float
    total_positions: int
    vaults_with_stakes: int
    total_earned_units: int
    earned_source: str
    valued_at: int
    vaults: tuple[VaultSummary, ...] = field(default_factory=tuple)


__all__ = [
    "DepositTranche",
    "LpMintEstimate",
    "LpPriceResult",
    "LpRedeemEstimate",
    "LpReserveSnapshot",
    "LpTokenVault",
    "Position",
    "PriceImpact",
    "PriceMethod",
    "RewardAccrualResult",
    "SingleTokenVault",
    "TokenAmount",
    "TokenPrice",
    "TrancheValuation",
    "VaultConfig",
    "VaultDescriptor",
    "VaultSummary",
    "WalletSummary",
    "canonical_address",
]
