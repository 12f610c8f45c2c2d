"""Input-contract checks shared by the calculator and the pipeline."""

from __future__ import annotations

from .constants import ADDRESS_PATTERN, Chain
from .errors import InputValidationError


def validate_address(address: object, label: str = "address") -> str:
    """Return ``address`` unchanged if it is a 0x-prefixed 20-byte hex string.

    Raises:
        InputValidationError: If the address is malformed
    """
    if not isinstance(address, str) or not ADDRESS_PATTERN.match(address):
        raise InputValidationError(f"Invalid {label} format: {address!r}")
    return address


def validate_chain(chain: object) -> Chain:
    """Coerce ``chain`` to a supported :class:`Chain`.

    Raises:
        InputValidationError: If the chain is not supported
    """
    if isinstance(chain, Chain):
        return chain
    if isinstance(chain, str):
        try:
            return Chain(chain.strip().lower())
        except ValueError:
            pass
    supported = ", ".join(c.value for c in Chain)
    raise InputValidationError(f"Unsupported chain: {chain!r} (supported: {supported})")
