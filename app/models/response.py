"""
Standardized API response format.
Every endpoint returns this envelope.
"""

from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict


T = TypeVar('T')


class StandardResponse(BaseModel, Generic[T]):
    """
    Example:
        {
            "success": true,
            "data": {"request_id": "3fJ9kq2LxV", "outcome": "completed"},
            "error": null,
            "message": "Broadcast dispatched"
        }
    """
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "data": {"request_id": "3fJ9kq2LxV", "outcome": "completed", "sent_count": 12},
                "error": None,
                "message": "Broadcast dispatched"
            }
        }
    )


def success_response(data: Any, message: str = "Success") -> StandardResponse:
    return StandardResponse(success=True, data=data, error=None, message=message)


def error_response(
    error: str,
    message: str = "An error occurred",
    data: Any = None
) -> StandardResponse:
    return StandardResponse(success=False, data=data, error=error, message=message)
