"""
Inbound SMS webhook - the only trigger for the conversation pipeline.
Accepts Twilio's form-encoded payload; JSON bodies with the same keys work too.
Signature validation happens upstream of this service.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from leadline.agents.conductor import ConversationConductor, STATUS_STORED_FOR_REVIEW
from leadline.api.deps import get_conductor
from leadline.schemas.api import InboundSmsPayload
from leadline.services.sms import mask_phone

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhooks"])


async def _read_payload(request: Request) -> dict:
    """Form fields for Twilio, JSON for everything else."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}
    form_data = await request.form()
    return dict(form_data)


@router.post("/webhook/sms", response_class=PlainTextResponse)
async def inbound_sms_webhook(
    request: Request,
    conductor: ConversationConductor = Depends(get_conductor),
):
    raw = await _read_payload(request)
    try:
        payload = InboundSmsPayload(**raw)
    except ValidationError:
        logger.warning("Inbound SMS missing From or To")
        return PlainTextResponse("Missing From or To", status_code=400)

    try:
        outcome = await conductor.handle_inbound(payload.From, payload.To, payload.Body)
    except Exception as e:
        logger.error(
            "Error processing message from %s: %s", mask_phone(payload.From), str(e),
            exc_info=True,
        )
        return PlainTextResponse("Error processing message", status_code=500)

    if outcome.status == STATUS_STORED_FOR_REVIEW:
        return PlainTextResponse("Message stored for human review", status_code=200)
    return PlainTextResponse("Message processed", status_code=200)
