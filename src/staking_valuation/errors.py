"""Error taxonomy for the valuation engine."""

from __future__ import annotations


class ValuationError(Exception):
    """Base class for errors raised by the valuation engine."""


class InputValidationError(ValuationError, ValueError):
    """Raised when an address, chain or amount violates the input contract.

    Always surfaced to the caller; raised before any computation happens.
    """

    def __init__(self, message: str):
        super().__init__(message)


class UpstreamUnavailableError(ValuationError):
    """Raised when a collaborator (reserve, price or earnings source) failed.

    Attributes:
        entity: Address of the LP token, asset or wallet being resolved
    """

    def __init__(self, entity: str, reason: str | None = None):
        self.entity = entity
        self.reason = reason
        message = f"Upstream data unavailable for {entity}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PriceComputationError(ValuationError):
    """Raised when neither the primary nor the fallback formula gives a finite price."""
