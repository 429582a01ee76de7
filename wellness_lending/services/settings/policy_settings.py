"""
Lending policy settings.

``PolicySettings`` is the immutable, validated view of the ``system_settings``
table that every decisioning service reads. Field metadata carries the
category each key belongs to and the documented bounds.
"""

from decimal import Decimal
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from wellness_lending.models.base import SettingCategory

_LOANS = {"category": SettingCategory.LOANS.value}
_WELLNESS = {"category": SettingCategory.WELLNESS.value}
_PENALTIES = {"category": SettingCategory.PENALTIES.value}

# Keys written by older clients, mapped to their current names
LEGACY_ALIASES: Dict[str, str] = {
    "max_loan_days": "default_loan_days",
    "loan_timeout_minutes": "pickup_timeout_minutes",
    "pending_timeout_minutes": "approval_timeout_minutes",
    "enable_queue_system": "allow_queue_for_unavailable",
    "late_penalty_hours": "late_return_penalty_hours",
    "lost_penalty_hours": "loss_penalty_hours",
}

# Legacy keys that stored penalties as negative hours
NEGATIVE_LEGACY_KEYS = frozenset({"late_penalty_hours", "lost_penalty_hours", "damage_penalty_hours"})


class PolicySettings(BaseModel):
    """Validated lending policy. Instances are frozen; reload to change."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Loans
    max_active_loans: int = Field(3, ge=1, le=20, description="Live loans a student may hold", json_schema_extra=_LOANS)
    default_loan_days: int = Field(7, ge=1, le=90, description="Loan length when the category sets none", json_schema_extra=_LOANS)
    pickup_timeout_minutes: int = Field(30, ge=5, le=10080, description="Time to pick up an approved loan", json_schema_extra=_LOANS)
    approval_timeout_minutes: int = Field(60, ge=5, le=10080, description="Time before a pending request expires", json_schema_extra=_LOANS)
    auto_approve_low_risk: bool = Field(True, description="Approve low-risk requests automatically", json_schema_extra=_LOANS)
    min_trust_score_auto_approve: int = Field(80, ge=0, le=200, description="Minimum trust score for automatic approval", json_schema_extra=_LOANS)
    allow_queue_for_unavailable: bool = Field(True, description="Queue requests for unavailable resources", json_schema_extra=_LOANS)
    max_queue_size: int = Field(10, ge=1, le=100, description="Waiting entries allowed per resource", json_schema_extra=_LOANS)
    queue_response_minutes: int = Field(60, ge=5, le=10080, description="Response window after a queue notification", json_schema_extra=_LOANS)

    # Wellness
    base_hours_per_loan: float = Field(1.0, ge=0, le=24, description="Fallback base hours when a loan has no category", json_schema_extra=_WELLNESS)
    max_hours_per_loan: float = Field(5.0, ge=0, le=48, description="Cap on hours awarded for one loan", json_schema_extra=_WELLNESS)
    round_to_half_hour: bool = Field(True, description="Round awarded hours to the nearest half hour", json_schema_extra=_WELLNESS)

    # Penalties
    late_return_penalty_hours: float = Field(1.0, ge=0, le=100, description="Penalty hours for a late return", json_schema_extra=_PENALTIES)
    damage_penalty_hours: float = Field(5.0, ge=0, le=100, description="Penalty hours for a damage incident", json_schema_extra=_PENALTIES)
    loss_penalty_hours: float = Field(10.0, ge=0, le=100, description="Penalty hours for a loss or theft", json_schema_extra=_PENALTIES)
    block_after_late_returns: int = Field(3, ge=1, le=50, description="Late returns that trigger a block", json_schema_extra=_PENALTIES)
    block_duration_days: int = Field(7, ge=1, le=365, description="Length of an automatic block", json_schema_extra=_PENALTIES)
    auto_block_on_loss: bool = Field(True, description="Block immediately on loss or theft", json_schema_extra=_PENALTIES)
    late_return_window_days: int = Field(0, ge=0, le=365, description="Window for counting late returns (0 = lifetime)", json_schema_extra=_PENALTIES)
    trust_points_per_penalty_hour: int = Field(5, ge=0, le=50, description="Trust points deducted per penalty hour", json_schema_extra=_PENALTIES)
    on_time_return_bonus: int = Field(2, ge=0, le=50, description="Trust points added for an on-time return", json_schema_extra=_PENALTIES)
    trust_score_default: int = Field(100, ge=0, le=1000, description="Score of a new student", json_schema_extra=_PENALTIES)
    trust_score_min: int = Field(0, ge=0, le=1000, description="Lowest possible trust score", json_schema_extra=_PENALTIES)
    trust_score_max: int = Field(200, ge=1, le=1000, description="Highest possible trust score", json_schema_extra=_PENALTIES)
    default_replacement_cost: Decimal = Field(
        Decimal("50.00"),
        ge=0,
        decimal_places=2,
        description="Replacement cost used when the category has none",
        json_schema_extra=_PENALTIES,
    )

    @model_validator(mode="after")
    def check_trust_range(self) -> "PolicySettings":
        if not self.trust_score_min < self.trust_score_default <= self.trust_score_max:
            raise ValueError(
                "trust_score_min < trust_score_default <= trust_score_max must hold "
                f"(got {self.trust_score_min}, {self.trust_score_default}, {self.trust_score_max})"
            )
        return self

    @classmethod
    def category_of(cls, key: str) -> SettingCategory:
        extra = cls.model_fields[key].json_schema_extra or {}
        return SettingCategory(extra["category"])

    @classmethod
    def description_of(cls, key: str) -> str:
        return cls.model_fields[key].description or ""

    def clamp_score(self, score: float) -> int:
        """Round and clamp a trust score to the configured range."""
        return int(max(self.trust_score_min, min(self.trust_score_max, round(score))))


def canonical_key(key: str) -> str:
    return LEGACY_ALIASES.get(key, key)


def normalize_raw_settings(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map legacy keys to current names.

    Legacy penalty keys stored negative hours, so their absolute value is
    used. A current key always wins over its legacy alias.
    """
    normalized: Dict[str, Any] = {}
    legacy: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in LEGACY_ALIASES:
            legacy[LEGACY_ALIASES[key]] = _legacy_value(key, value)
        elif key in NEGATIVE_LEGACY_KEYS and isinstance(value, (int, float)) and value < 0:
            normalized[key] = abs(value)
        else:
            normalized[key] = value
    for key, value in legacy.items():
        normalized.setdefault(key, value)
    return normalized


def _legacy_value(key: str, value: Any) -> Any:
    if key in NEGATIVE_LEGACY_KEYS and isinstance(value, (int, float)) and not isinstance(value, bool):
        return abs(value)
    return value
