import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .models import AggregationResult, TrailingHours

FAILURE_MESSAGE = "Failed to get solar production data"


def format_kwh(value: float) -> str:
    """
    Two decimal places, half-up (3.456 -> '3.46', 2.675 -> '2.68').
    Goes through str() so binary float error doesn't round 2.675 down.
    """
    try:
        quantized = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        quantized = Decimal("0.00")
    return f"{quantized:.2f}"


def format_failure() -> str:
    return FAILURE_MESSAGE


def format_report(result: Optional[AggregationResult]) -> str:
    """Render one status line for an aggregation result. Never raises."""
    if result is None or result.is_empty or not math.isfinite(result.total_kwh):
        return FAILURE_MESSAGE
    try:
        message = f"Solar production ({result.window_label}): {format_kwh(result.total_kwh)} kWh"
        if isinstance(result.mode, TrailingHours):
            message += f" ({result.reading_count} readings)"
        return message
    except Exception:
        return FAILURE_MESSAGE
