"""
Result schemas passed between the conductor and its collaborators.
Collaborators report failure in `error` instead of raising; the conductor
decides which failures end the request.
"""
from typing import Optional
from pydantic import BaseModel, Field


class GenerationResult(BaseModel):
    """Outcome of one reply generation call."""
    content: str = ""
    provider: str = "none"
    model: str = "none"
    latency_ms: int = 0
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.content.strip())


class DispatchResult(BaseModel):
    """Outcome of one outbound SMS."""
    sid: Optional[str] = None
    status: str = Field(default="failed", description="sent, failed")
    provider: str = "twilio"
    segments: int = 1
    encoding: str = "gsm7"
    cost_usd: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None
    # Text handed to the carrier, after length capping
    body: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status == "sent"


class InboundOutcome(BaseModel):
    """What handle_inbound did with one inbound message."""
    status: str = Field(..., description="processed, stored_for_review")
    customer_id: Optional[str] = None
    reply: Optional[str] = None
    used_fallback: bool = False
    dispatch_status: Optional[str] = None
    score_delta: int = 0
    response_ms: int = 0


class ManualSendResult(BaseModel):
    """Operator-initiated send."""
    message_sid: Optional[str] = None
    message_id: Optional[str] = None
