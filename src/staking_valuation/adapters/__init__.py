from __future__ import annotations

from .base import (
    BaseEarningsSource,
    BasePositionSource,
    BasePriceSource,
    BaseReserveSource,
)
from .coingecko import CoinGeckoPriceSource
from .snapshot_file import (
    SnapshotDocument,
    SnapshotEarningsSource,
    SnapshotPositionSource,
    SnapshotPriceSource,
    SnapshotReserveSource,
)

__all__ = [
    "BaseEarningsSource",
    "BasePositionSource",
    "BasePriceSource",
    "BaseReserveSource",
    "CoinGeckoPriceSource",
    "SnapshotDocument",
    "SnapshotEarningsSource",
    "SnapshotPositionSource",
    "SnapshotPriceSource",
    "SnapshotReserveSource",
]
