"""
Request/response schemas for the HTTP endpoints.
Field names follow what callers already send (Twilio form keys, camelCase sid).
"""
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class InboundSmsPayload(BaseModel):
    """Inbound SMS webhook body (Twilio form fields or equivalent JSON)."""
    model_config = ConfigDict(extra="ignore")

    From: str = Field(..., min_length=1)
    To: str = Field(..., min_length=1)
    # Media-only MMS arrives with an empty Body and is still stored
    Body: str = ""
    MessageSid: Optional[str] = None


class SendMessageRequest(BaseModel):
    to: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class SendMessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message_sid: Optional[str] = Field(default=None, serialization_alias="messageSid")


class TakeoverRequest(BaseModel):
    active: bool = True


class TakeoverResponse(BaseModel):
    phone_number: str
    is_human_takeover: bool
    status: str
    qualification_score: int
