"""
Formula engine for production summaries.

Pure functions. Given the manual fields of a summary record, recompute
its derived fields:

    production_final_batches = round2(batch_adjusted × qty_per_batch)
    produce_batches          = round2(to_be_produced_day ÷ qty_per_batch)  (0 if qty_per_batch = 0)
    to_be_produced_batches   = produce_batches
    expiry_shortage          = round2(production_final_batches − to_be_produced_day)

balance_final_batches has no formula and is carried through.

Arithmetic runs in Decimal with ROUND_HALF_UP, so 0.125 rounds to 0.13
and the result does not depend on binary float representation.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Mapping

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a stored value (float, int, str, None) to Decimal."""
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def round2(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_derived(
    qty_per_batch: Any,
    batch_adjusted: Any,
    to_be_produced_day: Any,
) -> dict[str, float]:
    """
    Compute derived fields from manual inputs.

    Args:
        qty_per_batch: Units per production batch
        batch_adjusted: Manually adjusted batch count
        to_be_produced_day: Quantity to produce for the day

    Returns:
        Dict of derived field name to float value
    """
    qty = to_decimal(qty_per_batch)
    batches = to_decimal(batch_adjusted)
    to_produce = to_decimal(to_be_produced_day)

    production_final = round2(batches * qty)
    produce = round2(to_produce / qty) if qty > 0 else Decimal("0.00")
    shortage = round2(production_final - to_produce)

    return {
        "production_final_batches": float(production_final),
        "produce_batches": float(produce),
        "to_be_produced_batches": float(produce),
        "expiry_shortage": float(shortage),
    }


def apply_formulas(record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a copy of `record` with derived fields recomputed.

    Idempotent: apply_formulas(apply_formulas(r)) == apply_formulas(r).
    """
    result = dict(record)
    result.update(compute_derived(
        qty_per_batch=record.get("qty_per_batch"),
        batch_adjusted=record.get("batch_adjusted"),
        to_be_produced_day=record.get("to_be_produced_day"),
    ))
    result.setdefault("balance_final_batches", 0.0)
    return result
