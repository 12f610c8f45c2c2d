from __future__ import annotations

from dataclasses import dataclass, field

from ..domain import DepositTranche


@dataclass(frozen=True)
class ValuationContext:
    """Inputs shared read-only by every per-vault unit of one valuation run."""

    wallet: str
    now: int
    strict_amounts: bool = False
    tranches_by_vault: dict[str, tuple[DepositTranche, ...]] = field(
        default_factory=dict
    )

    def tranches_for(self, vault_address: str) -> tuple[DepositTranche, ...]:
        return self.tranches_by_vault.get(vault_address.lower(), ())


@dataclass(frozen=True)
class UnitPrice:
    """Resolved USD price of one vault share unit.

    ``method`` is the LP pricing method, the price source name for
    single-asset vaults, or ``"unavailable"`` when pricing failed.
    """

    usd_price: float
    method: str
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.error is None
