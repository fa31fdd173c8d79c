"""
Proportional quantity recomputation for shortened or extended contract periods.

A contract's estimated tonnage is spread evenly over its original period
(inclusive days). When the period changes, the new figure is the daily rate
times the days from the original start to the new end:

    new_quantity = round2(original_quantity / total_days * new_days)

Rounding is decimal half-up to 2 places. The same model serves automatic
termination (period shrinks) and extensions (period grows).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from models.contract_lifecycle import QuantityCalculation

from .calendar_dates import DateLike, inclusive_span_days, normalize

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Convert a stored quantity to Decimal (floats go through str to avoid binary drift)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Optional[Number]) -> Optional[Decimal]:
    """Round to 2 decimal places, half-up."""
    d = to_decimal(value)
    if d is None:
        return None
    return d.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _total_days(original_start, original_end) -> int:
    # Inverted base periods are degenerate rather than an error
    if original_end < original_start:
        return 0
    return inclusive_span_days(original_start, original_end)


def proportional(
    original_quantity: Optional[Number],
    original_start: Optional[DateLike],
    original_end: Optional[DateLike],
    new_end: Optional[DateLike],
) -> Optional[Decimal]:
    """
    Reallocate a quantity to a new end date with a linear daily-rate model.

    Args:
        original_quantity: Quantity over the original period (tons)
        original_start: Original period start
        original_end: Original period end
        new_end: New period end (earlier for termination, later for extension)

    Returns:
        The recomputed quantity, or None when quantity or any date is absent.
        A degenerate original period returns the original quantity.

    Raises:
        InvalidRange: If new_end precedes original_start
    """
    quantity = to_decimal(original_quantity)
    start = normalize(original_start)
    end = normalize(original_end)
    target = normalize(new_end)
    if quantity is None or start is None or end is None or target is None:
        return None

    total_days = _total_days(start, end)
    if total_days <= 0:
        return round2(quantity)

    new_days = inclusive_span_days(start, target)
    return round2(quantity / Decimal(total_days) * Decimal(new_days))


def calculate(
    original_quantity: Number,
    original_start: DateLike,
    original_end: DateLike,
    new_end: DateLike,
) -> QuantityCalculation:
    """
    Full breakdown of a proportional recomputation.

    Raises:
        ValueError: If the quantity or any date is missing
        InvalidRange: If the original period is inverted or new_end precedes the start
    """
    quantity = to_decimal(original_quantity)
    if quantity is None:
        raise ValueError("Original quantity is required")

    days_original = inclusive_span_days(original_start, original_end)
    days_new = inclusive_span_days(original_start, new_end)
    adjusted = proportional(quantity, original_start, original_end, new_end)

    return QuantityCalculation(
        original_quantity=quantity,
        days_original=days_original,
        days_new=days_new,
        tons_per_day=round2(quantity / Decimal(days_original)),
        adjusted_quantity=adjusted,
        quantity_delta=round2(adjusted - quantity),
    )


def format_summary(calc: QuantityCalculation) -> str:
    """One-line explanation of a recomputation, for amendment notes and UI text."""
    if calc.is_prolongation:
        extra_days = calc.days_new - calc.days_original
        return (
            f"Extension by {extra_days} days: {calc.tons_per_day} t/day x {extra_days} days "
            f"= +{abs(calc.quantity_delta)} t. Total: {calc.adjusted_quantity} t"
        )
    if calc.is_termination:
        return (
            f"Termination after {calc.days_new} days: {calc.tons_per_day} t/day x "
            f"{calc.days_new} days = {calc.adjusted_quantity} t "
            f"({abs(calc.quantity_delta)} t less)"
        )
    return f"Unchanged period of {calc.days_original} days: {calc.adjusted_quantity} t"
