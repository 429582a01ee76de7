from wellness_lending.services.trust.scoring import (
    TrustCounters,
    TrustEvent,
    TrustEventKind,
    apply_event,
    recalculate_from_counters,
    score_level,
)
from wellness_lending.services.trust.trust_score_service import TrustScoreService

__all__ = [
    "TrustCounters",
    "TrustEvent",
    "TrustEventKind",
    "TrustScoreService",
    "apply_event",
    "recalculate_from_counters",
    "score_level",
]
