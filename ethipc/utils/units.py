"""Exact conversions between hex quantities, wei and ether.

Python ints are arbitrary precision and Decimal keeps ether amounts exact,
so no float ever takes part in an on-chain value.
"""

from __future__ import annotations

import re
from decimal import Context, Decimal, Inexact, InvalidOperation
from typing import Any

from ethipc.utils.exceptions import ValidationError

WEI_DECIMALS = 18
WEI_PER_ETHER = 10**WEI_DECIMALS
UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1

_EXACT = Context(prec=100, traps=[Inexact, InvalidOperation])
_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")


def parse_hex_quantity(raw: Any) -> int:
    """Parse a 0x-prefixed hex quantity into a non-negative int."""
    if not isinstance(raw, str):
        raise ValueError(f"hex quantity must be a string, got {type(raw).__name__}")
    value = raw.strip()
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    if not value:
        return 0
    if _HEX_DIGITS.fullmatch(value) is None:
        raise ValueError(f"invalid hex quantity: {raw!r}")
    return int(value, 16)


def hex_to_uint64(raw: Any) -> int:
    out = parse_hex_quantity(raw)
    if out > UINT64_MAX:
        raise ValueError(f"hex quantity exceeds uint64: {raw!r}")
    return out


def to_hex_quantity(value: int) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("quantity must be an int")
    if value < 0:
        raise ValueError("quantity must be non-negative")
    return hex(value)


def format_wei(wei: int, decimal_point: str = ".") -> str:
    """
    Render a wei amount as an ether string with exactly 18 fractional digits.

    Short values are left padded to 19 digits so there is always at least one
    integral digit: 1 -> "0.000000000000000001".
    """
    if wei < 0:
        raise ValueError("wei amount must be non-negative")
    digits = str(wei)
    if len(digits) <= WEI_DECIMALS:
        digits = digits.rjust(WEI_DECIMALS + 1, "0")
    split = len(digits) - WEI_DECIMALS
    return f"{digits[:split]}{decimal_point}{digits[split:]}"


def hex_to_ether_str(raw: Any, decimal_point: str = ".") -> str:
    return format_wei(parse_hex_quantity(raw), decimal_point)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("transaction value cannot be boolean", field="value")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # repr gives the shortest decimal that round-trips, e.g. 0.1 -> "0.1"
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValidationError(f"invalid ether amount: {value!r}", field="value") from exc
    raise ValidationError(f"unsupported ether amount type: {type(value).__name__}", field="value")


def ether_to_wei(value: Any) -> int:
    """Scale an ether amount by 10**18, rejecting anything not a positive whole wei."""
    amount = _to_decimal(value)
    if not amount.is_finite():
        raise ValidationError("Invalid transaction value", field="value")
    if amount <= 0:
        raise ValidationError("Invalid transaction value", field="value")
    if amount.adjusted() > 60:
        raise ValidationError("ether amount exceeds uint256 wei", field="value")
    try:
        wei = amount.scaleb(WEI_DECIMALS, context=_EXACT)
    except (Inexact, InvalidOperation) as exc:
        raise ValidationError("ether amount has too many significant digits", field="value") from exc
    if wei != wei.to_integral_value(context=_EXACT):
        raise ValidationError("ether amount has more than 18 fractional digits", field="value")
    out = int(wei)
    if out > UINT256_MAX:
        raise ValidationError("ether amount exceeds uint256 wei", field="value")
    return out


def ether_to_wei_hex(value: Any) -> str:
    return to_hex_quantity(ether_to_wei(value))


def wei_to_ether(wei: int) -> Decimal:
    return Decimal(wei).scaleb(-WEI_DECIMALS, context=_EXACT)
