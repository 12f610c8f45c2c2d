"""Collaborators backed by a JSON snapshot document.

A snapshot captures everything the engine consumes (token prices, pool
reserves, positions and historical earnings) so a valuation can be
reproduced offline or from the CLI.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ..constants import LP_TOKEN_DECIMALS, Chain
from ..domain import (
    DepositTranche,
    LpReserveSnapshot,
    Position,
    TokenAmount,
    TokenPrice,
)
from ..settings import VaultSettings
from .base import (
    BaseEarningsSource,
    BasePositionSource,
    BasePriceSource,
    BaseReserveSource,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AmountModel(BaseModel):
    raw: str
    decimals: int = Field(default=18, ge=0)

    def to_domain(self) -> TokenAmount:
        return TokenAmount(raw=self.raw, decimals=self.decimals)


class PriceModel(BaseModel):
    token_address: str
    chain: Chain = Chain.BASE
    usd_price: float = Field(ge=0)
    source: str = "snapshot"
    observed_at: datetime = Field(default_factory=_utcnow)
    is_stale: bool = False
    change_24h: float | None = None

    def to_domain(self) -> TokenPrice:
        return TokenPrice(
            token_address=self.token_address.lower(),
            chain=self.chain,
            usd_price=self.usd_price,
            source=self.source,
            observed_at=self.observed_at,
            is_stale=self.is_stale,
            change_24h=self.change_24h,
        )


class ReserveModel(BaseModel):
    lp_address: str
    chain: Chain = Chain.BASE
    token0: str
    token1: str
    reserve0: AmountModel
    reserve1: AmountModel
    total_supply: AmountModel = Field(
        default_factory=lambda: AmountModel(raw="0", decimals=LP_TOKEN_DECIMALS)
    )
    block_number: int = 0
    observed_at: datetime = Field(default_factory=_utcnow)

    def to_domain(self) -> LpReserveSnapshot:
        return LpReserveSnapshot(
            lp_address=self.lp_address,
            token0=self.token0,
            token1=self.token1,
            reserve0=self.reserve0.to_domain(),
            reserve1=self.reserve1.to_domain(),
            total_supply=self.total_supply.to_domain(),
            block_number=self.block_number,
            observed_at=self.observed_at,
        )


class TrancheModel(BaseModel):
    tranche_id: str
    deposited_at: int
    lock_days: int = Field(default=0, ge=0)
    shares: str
    assets: str

    def to_domain(self) -> DepositTranche:
        return DepositTranche(
            tranche_id=self.tranche_id,
            deposited_at=self.deposited_at,
            lock_days=self.lock_days,
            shares=self.shares,
            assets=self.assets,
        )


class PositionModel(BaseModel):
    wallet: str
    vault_address: str
    chain: Chain = Chain.BASE
    tranches: list[TrancheModel] = Field(default_factory=list)

    def to_domain(self) -> Position:
        return Position(
            wallet=self.wallet,
            vault_address=self.vault_address,
            tranches=tuple(t.to_domain() for t in self.tranches),
        )


class SnapshotDocument(BaseModel):
    prices: list[PriceModel] = Field(default_factory=list)
    reserves: list[ReserveModel] = Field(default_factory=list)
    positions: list[PositionModel] = Field(default_factory=list)
    earnings: dict[str, int] = Field(default_factory=dict)
    vaults: list[VaultSettings] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def load(cls, path: Path) -> "SnapshotDocument":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        document = cls.model_validate(data)
        logger.debug(
            "Loaded snapshot %s: %d prices, %d pools, %d positions",
            path,
            len(document.prices),
            len(document.reserves),
            len(document.positions),
        )
        return document


class SnapshotPriceSource(BasePriceSource):
    def __init__(self, document: SnapshotDocument):
        self._prices = {
            (p.token_address.lower(), p.chain): p.to_domain() for p in document.prices
        }

    @property
    def source_name(self) -> str:
        return "snapshot"

    async def fetch_token_price(self, token_address: str, chain: Chain) -> TokenPrice:
        try:
            return self._prices[(token_address.lower(), chain)]
        except KeyError:
            raise LookupError(
                f"No price for {token_address} on {chain.value} in snapshot"
            ) from None


class SnapshotReserveSource(BaseReserveSource):
    def __init__(self, document: SnapshotDocument):
        self._reserves = {
            (r.lp_address.lower(), r.chain): r.to_domain() for r in document.reserves
        }

    @property
    def source_name(self) -> str:
        return "snapshot"

    async def fetch_reserves(
        self, lp_address: str, chain: Chain, block_number: int | None = None
    ) -> LpReserveSnapshot:
        try:
            snapshot = self._reserves[(lp_address.lower(), chain)]
        except KeyError:
            raise LookupError(
                f"No reserves for {lp_address} on {chain.value} in snapshot"
            ) from None
        if block_number is not None and snapshot.block_number < block_number:
            raise LookupError(
                f"Snapshot for {lp_address} is at block {snapshot.block_number}, "
                f"older than requested block {block_number}"
            )
        return snapshot


class SnapshotPositionSource(BasePositionSource):
    def __init__(self, document: SnapshotDocument):
        self._positions = list(document.positions)

    async def fetch_positions(self, wallet: str, chain: Chain) -> list[Position]:
        return [
            p.to_domain()
            for p in self._positions
            if p.wallet.lower() == wallet.lower() and p.chain == chain
        ]


class SnapshotEarningsSource(BaseEarningsSource):
    def __init__(self, document: SnapshotDocument):
        self._earnings = {
            wallet.lower(): total for wallet, total in document.earnings.items()
        }

    async def fetch_total_earned(self, wallet: str) -> int:
        try:
            return self._earnings[wallet.lower()]
        except KeyError:
            raise LookupError(f"No historical earnings for {wallet}") from None
