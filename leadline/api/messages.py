"""
Operator endpoints - manual sends and the human takeover switch.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from leadline.agents.conductor import ConversationConductor
from leadline.api.deps import get_conductor
from leadline.schemas.api import (
    SendMessageRequest,
    SendMessageResponse,
    TakeoverRequest,
    TakeoverResponse,
)
from leadline.services.sms import mask_phone
from leadline.utils.errors import StoreError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["messages"])


@router.post("/send-message")
async def send_message(
    payload: SendMessageRequest,
    conductor: ConversationConductor = Depends(get_conductor),
):
    """Send a message as a human agent. Works regardless of takeover state."""
    try:
        result = await conductor.send_manual(payload.to, payload.message)
    except Exception as e:
        logger.error("Error sending message to %s: %s", mask_phone(payload.to), str(e))
        return JSONResponse(status_code=500, content={"error": "Failed to send message"})

    return SendMessageResponse(message_sid=result.message_sid).model_dump(by_alias=True)


@router.post("/customers/{phone_number}/takeover", response_model=TakeoverResponse)
async def set_takeover(
    phone_number: str,
    payload: TakeoverRequest,
    conductor: ConversationConductor = Depends(get_conductor),
):
    """Hand a conversation to a human (active=true) or back to the AI."""
    try:
        customer = await conductor.set_takeover(phone_number, payload.active)
    except StoreError as e:
        logger.error("Takeover update failed for %s: %s", mask_phone(phone_number), str(e))
        raise HTTPException(status_code=500, detail="Failed to update takeover")

    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")

    return TakeoverResponse(
        phone_number=customer.phone_number,
        is_human_takeover=customer.is_human_takeover,
        status=customer.status,
        qualification_score=customer.qualification_score,
    )
