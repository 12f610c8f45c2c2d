"""Shard accrual from staked USD value and lock duration."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_LP_TOKEN_RATE,
    DEFAULT_SINGLE_TOKEN_RATE,
    MAX_LOCK_DAYS,
    MAX_LOCK_MULTIPLIER,
    MIN_LOCK_MULTIPLIER,
    SECONDS_PER_DAY,
    USD_PER_RATE_UNIT,
    VaultKind,
)
from .domain import RewardAccrualResult


def lock_multiplier(lock_days: int) -> float:
    """Reward multiplier for a lock of ``lock_days``.

    Linear from 1.0x with no lock to 2.0x at 365 days, flat afterwards.
    """
    multiplier = 1 + lock_days / MAX_LOCK_DAYS
    return min(max(multiplier, MIN_LOCK_MULTIPLIER), MAX_LOCK_MULTIPLIER)


def earned_units(staked_usd: float, base_rate: float, lock_days: int) -> int:
    """Shards earned: floor(staked_usd / 1000 * base_rate * multiplier).

    Always floors so repeated recomputation never over-credits.
    """
    if not math.isfinite(staked_usd) or staked_usd <= 0:
        return 0
    if not math.isfinite(base_rate) or base_rate <= 0:
        return 0
    value = staked_usd / USD_PER_RATE_UNIT * base_rate * lock_multiplier(lock_days)
    return max(0, math.floor(value))


def unlock_at(deposited_at: int, lock_days: int) -> int:
    return deposited_at + max(lock_days, 0) * SECONDS_PER_DAY


def remaining_lock_days(deposited_at: int, lock_days: int, now: int) -> int:
    """Whole days (rounded up) until a tranche unlocks; 0 once unlocked."""
    if lock_days <= 0:
        return 0
    seconds_left = unlock_at(deposited_at, lock_days) - now
    return max(0, -(-seconds_left // SECONDS_PER_DAY))


@dataclass(frozen=True)
class RewardRateTable:
    """Base shard rates per $1,000 per day.

    Rates come from configuration; a symbol override takes precedence over
    the per-kind default.
    """

    single_token: float = DEFAULT_SINGLE_TOKEN_RATE
    lp_token: float = DEFAULT_LP_TOKEN_RATE
    by_symbol: dict[str, float] = field(default_factory=dict)

    def rate_for_kind(self, kind: VaultKind) -> float:
        if kind == VaultKind.LP_TOKEN:
            return self.lp_token
        return self.single_token

    def _override(self, symbol: str) -> float | None:
        normalized = symbol.upper().replace("-LP", "")
        for key, rate in self.by_symbol.items():
            if key.upper().replace("-LP", "") == normalized:
                return rate
        return None

    def rate_for_symbol(self, symbol: str) -> float:
        """Rate for a symbol alone, guessing the kind from its shape."""
        override = self._override(symbol)
        if override is not None:
            return override
        if "/" in symbol or "LP" in symbol.upper():
            return self.lp_token
        return self.single_token

    def rate_for(self, kind: VaultKind, symbol: str | None = None) -> float:
        if symbol:
            override = self._override(symbol)
            if override is not None:
                return override
        return self.rate_for_kind(kind)

    def describe(self, kind: VaultKind, symbol: str | None = None) -> str:
        return f"{self.rate_for(kind, symbol):g} Shards / $1,000 / day"


class RewardAccrualCalculator:
    """Turns staked USD value into shard accrual for a vault kind."""

    def __init__(self, rates: RewardRateTable | None = None):
        self.rates = rates or RewardRateTable()

    def accrue(
        self,
        staked_usd: float,
        kind: VaultKind,
        lock_days: int,
        symbol: str | None = None,
    ) -> RewardAccrualResult:
        base_rate = self.rates.rate_for(kind, symbol)
        return RewardAccrualResult(
            earned_units=earned_units(staked_usd, base_rate, lock_days),
            multiplier_applied=lock_multiplier(lock_days),
            base_rate_applied=base_rate,
        )
