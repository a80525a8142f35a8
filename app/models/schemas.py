from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RequestStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationRequest(BaseModel):
    """
    One broadcast request as stored in the requests collection.

    Field names on the wire are camelCase; ``status`` and ``message`` are
    required, so a document missing either fails validation.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    message: str
    # kept as free text: an unrecognised status means "leave it alone"
    status: str
    sent_count: Optional[int] = Field(default=None, alias="sentCount", ge=0)
    failed_count: Optional[int] = Field(default=None, alias="failedCount", ge=0)
    error: Optional[str] = None
    claimed_by: Optional[str] = Field(default=None, alias="claimedBy")

    @classmethod
    def from_document(cls, doc_id: str, data: Optional[Dict[str, Any]]) -> "NotificationRequest":
        return cls.model_validate({**(data or {}), "id": doc_id})


class Subscription(BaseModel):
    """A device registration holding one delivery token"""
    id: str
    token: str

    @field_validator("token")
    @classmethod
    def validate_token(cls, v):
        if not v or not v.strip():
            raise ValueError("token cannot be empty")
        return v


class DeliveryOutcome(BaseModel):
    """Per-token result of a send attempt. Not persisted."""
    token: str
    success: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class MulticastResult(BaseModel):
    """
    Result of one logical multicast send.

    ``outcomes`` is aligned by index with the token list that was sent.
    """
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    outcomes: List[DeliveryOutcome] = Field(default_factory=list)

    @property
    def failures(self) -> List[DeliveryOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]


class DispatchTrigger(BaseModel):
    """Trigger input: the new request's id and its fields at creation time"""
    request_id: str = Field(..., min_length=1)
    status: str
    message: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "request_id": "3fJ9kq2LxV",
                "status": "pending",
                "message": "Drill moved to 0600"
            }
        }
    )


class DispatchResult(BaseModel):
    """Summary of one engine invocation"""
    request_id: str
    outcome: Literal["skipped", "completed", "failed"]
    sent_count: int = 0
    failed_count: int = 0
    pruned_count: int = 0
    error: Optional[str] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_error(self):
        if self.outcome == "failed" and not self.error:
            raise ValueError("failed dispatch requires an error description")
        return self
