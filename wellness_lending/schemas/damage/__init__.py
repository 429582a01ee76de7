from wellness_lending.schemas.damage.damage_report import (
    DamageRecordResponse,
    DamageReportCreate,
    DamageStatusUpdate,
    FineQuoteRequest,
    FineQuoteResponse,
)

__all__ = [
    "DamageRecordResponse",
    "DamageReportCreate",
    "DamageStatusUpdate",
    "FineQuoteRequest",
    "FineQuoteResponse",
]
