"""
API v1 Router - Main Entry Point
Aggregates all v1 API endpoints for the lending system
"""
from fastapi import APIRouter

from wellness_lending.api.v1.endpoints import damages, loans, queue, students, system

router = APIRouter(
    responses={
        403: {"description": "Forbidden by lending policy"},
        404: {"description": "Not Found"},
        409: {"description": "State conflict"},
        422: {"description": "Validation Error"},
        500: {"description": "Internal Server Error"},
    }
)

router.include_router(loans.router)
router.include_router(queue.router)
router.include_router(damages.router)
router.include_router(students.router)
router.include_router(system.router)
