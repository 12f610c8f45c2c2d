"""Lossless conversion between raw integer token amounts and display strings.

All conversions are done with integer arithmetic on the raw amount; binary
floating point is never involved. Display strings are canonical: no trailing
fractional zeros and no trailing decimal point (``"1.5"``, ``"42"``, ``"0"``).

The ``to_*`` functions are fail-soft and return ``"0"`` for malformed input,
including amounts too large for the interpreter to convert between ``int``
and ``str``.
Callers that need to distinguish a malformed amount from a real zero use the
``try_to_*`` variants, which return a :class:`ConversionResult`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)

ZERO = "0"

_RAW_PATTERN = re.compile(r"[0-9]+")
_DISPLAY_PATTERN = re.compile(r"([0-9]*)(?:\.([0-9]*))?")
_PREVIEW_LENGTH = 32


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a strict conversion: exactly one of value/error is set."""

    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or_zero(self) -> str:
        if self.value is None:
            return ZERO
        return self.value


def _preview(value: object) -> str:
    """Short repr for error messages; huge amounts are summarized."""
    if isinstance(value, str) and len(value) > _PREVIEW_LENGTH:
        return f"{value[:_PREVIEW_LENGTH]!r}... ({len(value)} chars)"
    try:
        return repr(value)
    except ValueError:
        # int repr is bounded by the interpreter's digit limit
        return f"<{type(value).__name__} out of range>"


def _decimals_error(decimals: object, name: str = "decimals") -> str | None:
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        return f"{name} must be a nonnegative integer, got {decimals!r}"
    return None


def _parse_raw(raw: object) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not _RAW_PATTERN.fullmatch(text):
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _join(whole: int, fraction: int, width: int) -> str:
    if width == 0 or fraction == 0:
        return str(whole)
    digits = str(fraction).rjust(width, "0").rstrip("0")
    return f"{whole}.{digits}"


def try_to_display(raw: str | int, decimals: int) -> ConversionResult:
    """Convert a raw integer amount into its display string.

    Args:
        raw: Nonnegative integer amount in the token's smallest unit
        decimals: Token decimal count

    Returns:
        ConversionResult holding the canonical display string or an error
    """
    error = _decimals_error(decimals)
    if error:
        return ConversionResult(error=error)

    value = _parse_raw(raw)
    if value is None:
        return ConversionResult(error=f"malformed raw amount: {_preview(raw)}")

    whole, fraction = divmod(value, 10**decimals)
    try:
        return ConversionResult(value=_join(whole, fraction, decimals))
    except ValueError as e:
        return ConversionResult(error=f"amount out of range: {e}")


def try_to_raw(display: str | int | Decimal, decimals: int) -> ConversionResult:
    """Convert a display amount back to a raw integer string.

    Fractional digits beyond ``decimals`` are truncated, missing ones padded.
    """
    error = _decimals_error(decimals)
    if error:
        return ConversionResult(error=error)

    malformed = ConversionResult(
        error=f"malformed display amount: {_preview(display)}"
    )
    if isinstance(display, bool):
        return malformed
    if isinstance(display, Decimal):
        if not display.is_finite():
            return malformed
        text = format(display, "f")
    elif isinstance(display, int):
        try:
            text = str(display)
        except ValueError as e:
            return ConversionResult(error=f"amount out of range: {e}")
    elif isinstance(display, str):
        text = display.strip()
    else:
        return malformed

    match = _DISPLAY_PATTERN.fullmatch(text)
    if match is None:
        return malformed
    whole, fraction = match.group(1), match.group(2) or ""
    if not whole and not fraction:
        return malformed

    fraction = fraction[:decimals].ljust(decimals, "0")
    try:
        value = int(whole or "0") * 10**decimals + int(fraction or "0")
        return ConversionResult(value=str(value))
    except ValueError as e:
        return ConversionResult(error=f"amount out of range: {e}")


def try_to_fixed(raw: str | int, decimals: int, precision: int) -> ConversionResult:
    """Convert a raw amount to a display string with exactly ``precision`` digits.

    Rounds half-up when digits are dropped, pads with zeros otherwise.
    """
    error = _decimals_error(decimals) or _decimals_error(precision, "precision")
    if error:
        return ConversionResult(error=error)

    value = _parse_raw(raw)
    if value is None:
        return ConversionResult(error=f"malformed raw amount: {_preview(raw)}")

    if precision >= decimals:
        units = value * 10 ** (precision - decimals)
    else:
        divisor = 10 ** (decimals - precision)
        units, remainder = divmod(value, divisor)
        if remainder * 2 >= divisor:
            units += 1

    whole, fraction = divmod(units, 10**precision)
    try:
        if precision == 0:
            return ConversionResult(value=str(whole))
        digits = str(fraction).rjust(precision, "0")
        return ConversionResult(value=f"{whole}.{digits}")
    except ValueError as e:
        return ConversionResult(error=f"amount out of range: {e}")


def to_display(raw: str | int, decimals: int) -> str:
    """Fail-soft :func:`try_to_display`: malformed input yields ``"0"``.

    Output is canonical, so ``to_display(to_raw(x, d), d) == x`` only holds for
    canonical input: ``"1.50"`` comes back as ``"1.5"`` and ``"007"`` as ``"7"``.
    """
    result = try_to_display(raw, decimals)
    if not result.ok:
        logger.warning(
            "Failed to format amount %s (decimals=%r): %s",
            _preview(raw),
            decimals,
            result.error,
        )
    return result.value_or_zero()


def to_raw(display: str | int | Decimal, decimals: int) -> str:
    """Fail-soft :func:`try_to_raw`: malformed input yields ``"0"``."""
    result = try_to_raw(display, decimals)
    if not result.ok:
        logger.warning(
            "Failed to parse amount %s (decimals=%r): %s",
            _preview(display),
            decimals,
            result.error,
        )
    return result.value_or_zero()


def to_fixed(raw: str | int, decimals: int, precision: int) -> str:
    """Fail-soft :func:`try_to_fixed`: malformed input yields ``"0"``."""
    result = try_to_fixed(raw, decimals, precision)
    if not result.ok:
        logger.warning(
            "Failed to format amount %s (decimals=%r, precision=%r): %s",
            _preview(raw),
            decimals,
            precision,
            result.error,
        )
    return result.value_or_zero()


def to_decimal(raw: str | int, decimals: int) -> Decimal:
    """Exact Decimal value of a raw amount (fail-soft, like :func:`to_display`)."""
    return Decimal(to_display(raw, decimals))
