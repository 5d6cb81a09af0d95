from __future__ import annotations

from typing import Any, Mapping

from ..core.errors import ValidationError
from ..models.donation import DEMOGRAPHIC_FIELDS


def is_non_negative_integer(value: Any) -> bool:
    # bool is an int subclass, but True is not a head count.
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def aggregate(counts: Mapping[str, Any], number_served: Any = None) -> int:
    """Sum the six demographic counts into the number of people served.

    Missing groups count as zero. ``number_served``, when the caller sends
    one, must agree with the sum.
    """

    unknown = set(counts) - set(DEMOGRAPHIC_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown demographic group(s): {', '.join(sorted(unknown))}")

    total = 0
    for field in DEMOGRAPHIC_FIELDS:
        value = counts.get(field, 0)
        if not is_non_negative_integer(value):
            raise ValidationError("NumberServed and demographic numbers must be non-negative integers")
        total += value

    if total == 0:
        raise ValidationError("Number served cannot be zero")

    if number_served is not None:
        if not is_non_negative_integer(number_served):
            raise ValidationError("NumberServed and demographic numbers must be non-negative integers")
        if number_served != total:
            raise ValidationError(
                f"numberServed ({number_served}) must equal the sum of the demographic numbers ({total})"
            )
    return total
