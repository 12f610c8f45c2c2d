"""Position valuation and reward accrual engine for staking vaults."""

from __future__ import annotations

__version__ = "0.1.0"
