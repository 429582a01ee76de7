from wellness_lending.schemas.student.behavioral_status import (
    BehavioralStatusResponse,
    BlockRequest,
    LiftBlockRequest,
    TrustSummaryResponse,
    WellnessEntryResponse,
    WellnessSummaryResponse,
)

__all__ = [
    "BehavioralStatusResponse",
    "BlockRequest",
    "LiftBlockRequest",
    "TrustSummaryResponse",
    "WellnessEntryResponse",
    "WellnessSummaryResponse",
]
