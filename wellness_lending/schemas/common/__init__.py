from wellness_lending.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseSchema,
    ErrorResponse,
)

__all__ = ["BaseCreateSchema", "BaseResponseSchema", "BaseSchema", "ErrorResponse"]
