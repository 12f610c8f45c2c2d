from __future__ import annotations

from abc import ABC, abstractmethod

from ..constants import Chain
from ..domain import LpReserveSnapshot, Position, TokenPrice


class BasePriceSource(ABC):
    """Abstract base class for USD price feeds."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this source."""
        ...

    @abstractmethod
    async def fetch_token_price(self, token_address: str, chain: Chain) -> TokenPrice:
        """Fetch the USD price of a token."""
        ...


class BaseReserveSource(ABC):
    """Abstract base class for LP reserve snapshots (subgraph, RPC, ...)."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this source."""
        ...

    @abstractmethod
    async def fetch_reserves(
        self, lp_address: str, chain: Chain, block_number: int | None = None
    ) -> LpReserveSnapshot:
        """Fetch reserves and total supply of a pool, co-observed at one block."""
        ...


class BasePositionSource(ABC):
    """Abstract base class for deposit/position data."""

    @abstractmethod
    async def fetch_positions(self, wallet: str, chain: Chain) -> list[Position]:
        """Fetch every vault position of ``wallet`` with its deposit tranches."""
        ...


class BaseEarningsSource(ABC):
    """Abstract base class for the historical shard earnings of a wallet."""

    @abstractmethod
    async def fetch_total_earned(self, wallet: str) -> int:
        """Return the total shards the wallet has earned so far."""
        ...
