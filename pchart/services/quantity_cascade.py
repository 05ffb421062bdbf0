"""
Quantity cascade rules.

Output of an operation is its input minus every no-good unit. Rework units
are repaired in place and never reduce output. Replacement units are
counted only on the first operation of the sequence.
"""
from typing import Iterable, Protocol

from pchart.services.errors import DomainValidationError


class DefectQuantityLike(Protocol):
    quantity_nogood: int
    quantity_replacement: int


def compute_output_quantity(
    input_quantity: int,
    entries: Iterable[DefectQuantityLike],
    is_first_operation: bool,
) -> int:
    """Return max(0, input - sum(NG) + sum(RP) when first operation)."""
    total_nogood = 0
    total_replacement = 0
    for entry in entries:
        total_nogood += entry.quantity_nogood or 0
        total_replacement += entry.quantity_replacement or 0

    output = input_quantity - total_nogood
    if is_first_operation:
        output += total_replacement
    return max(0, output)


def ensure_balanced(quantity: int, rework: int, nogood: int, replacement: int = 0) -> None:
    """Raise DomainValidationError unless quantities are non-negative and balanced."""
    values = {
        "quantity": quantity,
        "quantity_rework": rework,
        "quantity_nogood": nogood,
        "quantity_replacement": replacement,
    }
    negative = {k: v for k, v in values.items() if v is None or v < 0}
    if negative:
        raise DomainValidationError(
            "Defect quantities must be non-negative",
            details={"fields": sorted(negative)}
        )
    if quantity != rework + nogood:
        raise DomainValidationError(
            f"Quantity ({quantity}) must equal rework ({rework}) + no-good ({nogood})",
            details=values
        )


def effective_replacement(replacement: int, is_first_operation: bool) -> int:
    """Replacement units are only recorded on the first operation."""
    return replacement if is_first_operation else 0
