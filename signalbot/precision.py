"""
Precision handling for order amounts

Some venues reject amounts with more decimals than they accept. Amounts are
always rounded DOWN so a truncated order never exceeds what was sized.
"""
from decimal import Decimal, ROUND_DOWN
from typing import Optional


def truncate_amount(amount: float, decimals: Optional[int]) -> float:
    """
    Truncate an amount to a fixed number of decimals.

    Args:
        amount: The amount to truncate
        decimals: Decimal places to keep; None leaves the amount untouched

    Examples:
        >>> truncate_amount(0.0123456789, 5)
        0.01234
        >>> truncate_amount(0.999999, 5)
        0.99999
    """
    if decimals is None:
        return amount
    if amount <= 0:
        return amount

    # str() first so binary float noise doesn't leak into the quantize
    decimal_amount = Decimal(str(amount))
    quantize_str = Decimal(1).scaleb(-decimals) if decimals > 0 else Decimal(1)
    return float(decimal_amount.quantize(quantize_str, rounding=ROUND_DOWN))


def format_amount(amount: float, decimals: int = 8) -> str:
    """Fixed-point string for logs (avoids 1e-05 style output)"""
    return f"{amount:.{decimals}f}"
