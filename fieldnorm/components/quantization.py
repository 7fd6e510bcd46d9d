"""
Fixed-point quantization of channel values.

A physical value is stored as an integer tick count under the channel's scale:
``encoded = round(value / scale) - offset``. The quotient is computed in
decimal arithmetic on the shortest round-trip representation of both operands,
so ``0.25 / 0.1`` is exactly ``2.5`` rather than ``2.4999999999999996``, and
ties round half away from zero. Precision grows with the magnitude of the
quotient, so every finite value has a tick count (Python ints are unbounded).
"""

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from numbers import Real
from typing import Optional

# fraction digits kept beyond the integer part of the quotient
_PRECISION = 34


def _to_decimal(value: float) -> Decimal:
    # repr() gives the shortest string that round-trips to the same float
    return Decimal(repr(float(value)))


def quantize(value: Optional[Real], scale: float, offset: int = 0) -> Optional[int]:
    """
    Convert a physical value into an integer tick count.

    Args:
        value: Physical value; None, NaN and infinities mean "unset"
        scale: Physical unit per tick, must be positive
        offset: Channel offset subtracted from the rounded tick count

    Returns:
        Encoded integer, or None when the value is unset

    Raises:
        ValueError: If scale is not positive
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    if value is None or isinstance(value, bool):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None

    dividend, divisor = _to_decimal(value), _to_decimal(scale)
    with localcontext() as ctx:
        # integer digits of the quotient, plus one for a carry when rounding
        integer_digits = max(0, dividend.adjusted() - divisor.adjusted() + 2)
        ctx.prec = integer_digits + _PRECISION
        ticks = (dividend / divisor).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(ticks) - offset


def dequantize(encoded: Optional[int], scale: float, offset: int = 0) -> Optional[float]:
    """Physical value of an encoded tick count (inverse of quantize)."""
    if encoded is None:
        return None
    return (encoded + offset) * scale
