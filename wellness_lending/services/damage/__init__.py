from wellness_lending.services.damage.damage_adjudication_service import (
    DamageAdjudicationService,
    loan_outcome,
)
from wellness_lending.services.damage.fine_calculator import calculate_fine

__all__ = ["DamageAdjudicationService", "calculate_fine", "loan_outcome"]
