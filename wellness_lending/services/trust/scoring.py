"""
Trust score arithmetic.

Everything here is pure: the same score, counters, event and policy always
produce the same result. ``TrustScoreService`` owns persistence and blocking.

Coefficients (all from ``PolicySettings``):

- on-time return: ``+on_time_return_bonus``
- late return: ``-late_return_penalty_hours * trust_points_per_penalty_hour``
- damage: ``-damage_penalty_hours * trust_points_per_penalty_hour * severity multiplier``
- loss or theft: ``-loss_penalty_hours * trust_points_per_penalty_hour``

The result is always clamped to ``[trust_score_min, trust_score_max]``.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from wellness_lending.models.base import DamageSeverity
from wellness_lending.services.settings.policy_settings import PolicySettings

SEVERITY_MULTIPLIERS = {
    DamageSeverity.MINOR: 0.5,
    DamageSeverity.MODERATE: 1.0,
    DamageSeverity.SEVERE: 1.5,
    DamageSeverity.TOTAL_LOSS: 2.0,
}

# Lower bounds of each score level, highest first
SCORE_LEVELS = (
    (150, "excellent"),
    (100, "good"),
    (70, "regular"),
)


class TrustEventKind(str, Enum):
    PICKUP = "pickup"
    ON_TIME_RETURN = "on_time_return"
    LATE_RETURN = "late_return"
    DAMAGE = "damage"
    LOSS = "loss"


@dataclass(frozen=True)
class TrustEvent:
    """A loan-lifecycle event that feeds the trust score."""

    kind: TrustEventKind
    severity: Optional[DamageSeverity] = None


@dataclass(frozen=True)
class TrustCounters:
    total_loans: int = 0
    on_time_returns: int = 0
    late_returns: int = 0
    damages: int = 0
    losses: int = 0
    events_attended: int = 0

    @classmethod
    def from_status(cls, status: Any) -> "TrustCounters":
        return cls(
            total_loans=status.total_loans,
            on_time_returns=status.on_time_returns,
            late_returns=status.late_returns,
            damages=status.damages,
            losses=status.losses,
            events_attended=status.events_attended,
        )


@dataclass(frozen=True)
class TrustOutcome:
    score: int
    counters: TrustCounters
    delta: float


def points_per_event(kind: TrustEventKind, policy: PolicySettings, severity: Optional[DamageSeverity] = None) -> float:
    """Signed score change for one event before clamping."""
    points = policy.trust_points_per_penalty_hour
    if kind == TrustEventKind.ON_TIME_RETURN:
        return float(policy.on_time_return_bonus)
    if kind == TrustEventKind.LATE_RETURN:
        return -policy.late_return_penalty_hours * points
    if kind == TrustEventKind.DAMAGE:
        multiplier = SEVERITY_MULTIPLIERS.get(severity, 1.0) if severity else 1.0
        return -policy.damage_penalty_hours * points * multiplier
    if kind == TrustEventKind.LOSS:
        return -policy.loss_penalty_hours * points
    return 0.0


def apply_event(
    current_score: int,
    counters: TrustCounters,
    event: TrustEvent,
    policy: PolicySettings,
) -> TrustOutcome:
    """
    Apply one event to a score and its counters.

    Returns the new clamped score, the incremented counters and the raw
    delta. Neither input is modified.
    """
    delta = points_per_event(event.kind, policy, event.severity)

    if event.kind == TrustEventKind.PICKUP:
        counters = replace(counters, total_loans=counters.total_loans + 1)
    elif event.kind == TrustEventKind.ON_TIME_RETURN:
        counters = replace(counters, on_time_returns=counters.on_time_returns + 1)
    elif event.kind == TrustEventKind.LATE_RETURN:
        counters = replace(counters, late_returns=counters.late_returns + 1)
    elif event.kind == TrustEventKind.DAMAGE:
        counters = replace(counters, damages=counters.damages + 1)
    elif event.kind == TrustEventKind.LOSS:
        counters = replace(counters, losses=counters.losses + 1)

    return TrustOutcome(
        score=policy.clamp_score(current_score + delta),
        counters=counters,
        delta=delta,
    )


def recalculate_from_counters(counters: TrustCounters, policy: PolicySettings) -> int:
    """
    Rebuild a score from counters alone.

    Damage severity is not kept per counter, so every damage uses the
    moderate multiplier of 1.
    """
    score = (
        policy.trust_score_default
        + counters.on_time_returns * points_per_event(TrustEventKind.ON_TIME_RETURN, policy)
        + counters.late_returns * points_per_event(TrustEventKind.LATE_RETURN, policy)
        + counters.damages * points_per_event(TrustEventKind.DAMAGE, policy)
        + counters.losses * points_per_event(TrustEventKind.LOSS, policy)
    )
    return policy.clamp_score(score)


def score_level(score: int) -> str:
    """excellent >= 150, good >= 100, regular >= 70, otherwise low."""
    for threshold, level in SCORE_LEVELS:
        if score >= threshold:
            return level
    return "low"
