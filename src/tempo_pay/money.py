"""Token amount conversion between decimal strings and integer base units."""

from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import InvalidAmount


UINT256_MAX = 2**256 - 1

# uint256 needs 78 significant digits; the default context keeps 28.
_CTX = Context(prec=100)

_CENTS = Decimal("0.01")
_THOUSAND = Decimal(1_000)
_MILLION = Decimal(1_000_000)


def parse_units(amount: str, decimals: int) -> int:
    """Convert a decimal string to base units, rejecting anything lossy."""
    raw = str(amount).strip()
    try:
        dec = Decimal(raw)
    except InvalidOperation:
        raise InvalidAmount(raw, "not a number") from None
    if not dec.is_finite():
        raise InvalidAmount(raw, "not a finite number")
    if dec <= 0:
        raise InvalidAmount(raw, "must be greater than zero")

    exponent = dec.normalize().as_tuple().exponent
    if isinstance(exponent, int) and -exponent > decimals:
        raise InvalidAmount(raw, f"more than {decimals} decimal places")

    units = int(dec.scaleb(decimals, _CTX))
    if units > UINT256_MAX:
        raise InvalidAmount(raw, "exceeds uint256 range")
    return units


def format_units(value: int | str, decimals: int) -> Decimal:
    """Convert integer base units to an exact Decimal token amount."""
    return Decimal(int(value)).scaleb(-decimals, _CTX)


def format_display(value: int | str, decimals: int) -> str:
    """Abbreviated display string: 1.50M, 12.30K or 7.25.

    The abbreviation drops precision; never parse the result back into an amount.
    """
    amount = format_units(value, decimals)
    if amount >= _MILLION:
        return f"{_CTX.divide(amount, _MILLION).quantize(_CENTS, ROUND_HALF_UP, _CTX)}M"
    if amount >= _THOUSAND:
        return f"{_CTX.divide(amount, _THOUSAND).quantize(_CENTS, ROUND_HALF_UP, _CTX)}K"
    return f"{amount.quantize(_CENTS, ROUND_HALF_UP, _CTX)}"
