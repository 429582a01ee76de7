"""
Fine calculation for damage, loss and theft.

``calculate_fine`` is pure and can be called speculatively, e.g. to quote a
fine before an incident is recorded.
"""

from decimal import Decimal
from typing import Union

from wellness_lending.core.exceptions import ValidationError
from wellness_lending.core.utils import NumberUtils
from wellness_lending.models.base import DamageSeverity, DamageType

# Share of the replacement cost charged for plain damage
SEVERITY_FACTORS = {
    DamageSeverity.MINOR: Decimal("0.10"),
    DamageSeverity.MODERATE: Decimal("0.30"),
    DamageSeverity.SEVERE: Decimal("0.60"),
    DamageSeverity.TOTAL_LOSS: Decimal("1.00"),
}

# Incidents charged at full replacement cost whatever the severity
FULL_COST_TYPES = frozenset({DamageType.LOSS, DamageType.THEFT})


def calculate_fine(
    damage_type: DamageType,
    severity: DamageSeverity,
    replacement_cost: Union[Decimal, int, float, str],
) -> Decimal:
    """
    Compute the fine for an incident, rounded to cents.

    Args:
        damage_type: damage, loss or theft
        severity: Incident severity
        replacement_cost: Cost basis of the resource

    Raises:
        ValidationError: If the replacement cost is negative
    """
    cost = Decimal(str(replacement_cost))
    if cost < 0:
        raise ValidationError(
            "Replacement cost cannot be negative",
            field_errors={"replacement_cost": ["Must be >= 0"]},
        )

    if damage_type in FULL_COST_TYPES:
        factor = Decimal("1.00")
    else:
        factor = SEVERITY_FACTORS[severity]
    return NumberUtils.round_money(cost * factor)
