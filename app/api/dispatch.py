"""
Dispatch API endpoints with standardized response format.
"""

from fastapi import APIRouter, Depends
from app.logging_config import get_logger
from app.models.response import success_response, error_response
from app.models.schemas import DispatchTrigger
from app.services.dispatch import DispatchEngine, get_engine

router = APIRouter(prefix="/api/dispatch", tags=["dispatch"])
logger = get_logger(__name__)


@router.post("/events")
async def dispatch_event(trigger: DispatchTrigger, engine: DispatchEngine = Depends(get_engine)):
    """Trigger entry point for a newly created notification request"""
    result = await engine.handle(trigger)
    if result.outcome == "failed":
        return error_response(
            error=result.error,
            message=f"Dispatch failed for request {trigger.request_id}",
            data=result.model_dump()
        )
    return success_response(
        data=result.model_dump(),
        message=f"Request {trigger.request_id} {result.outcome}"
    )


@router.get("/requests/{request_id}")
async def get_request(request_id: str, engine: DispatchEngine = Depends(get_engine)):
    """Read the stored state of a notification request"""
    try:
        record = await engine.requests.get(request_id)
    except Exception as e:
        logger.error(f"Error reading request {request_id}: {e}")
        return error_response(error=str(e), message="Failed to read request")

    if record is None:
        return error_response(
            error="not_found",
            message=f"Request {request_id} not found"
        )
    return success_response(
        data=record.model_dump(by_alias=True),
        message=f"Request {request_id} is {record.status}"
    )
