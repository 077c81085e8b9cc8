from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, Union

ZERO = Decimal("0.00")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money("1666.665")
        Decimal('1666.67')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Union[Decimal, float, int, str]]) -> Decimal:
    """Sum monetary values and round the total once."""
    total = Decimal("0")
    for value in values:
        total += value if isinstance(value, Decimal) else Decimal(str(value))
    return round_money(total)
