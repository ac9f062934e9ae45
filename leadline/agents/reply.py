"""
Reply agent - turns the conversation window into one SMS reply.
The generator gets a bounded wait; anything other than usable text in time
becomes the fixed fallback reply, so a reply is always produced.
"""
import asyncio
import logging
from typing import Sequence

from pydantic import BaseModel

from leadline.models.message import Message
from leadline.schemas.pipeline import GenerationResult

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Thanks for your message! Someone will get back to you soon."

SYSTEM_PREAMBLE = """You are a helpful sales assistant for a business. Your goal is to:
1. Be friendly and conversational
2. Qualify leads by asking about their needs, budget, and timeline
3. Try to schedule appointments for good prospects
4. Keep responses under 160 characters when possible
5. If someone seems like a good prospect, suggest they speak with a human

Be natural and helpful, not pushy."""


class ReplyDraft(BaseModel):
    """The text to send plus how it was obtained."""
    message: str
    used_fallback: bool = False
    provider: str = "none"
    model: str = "none"
    latency_ms: int = 0
    cost_usd: float = 0.0
    error: str | None = None


def window_to_history(window: Sequence[Message]) -> list[dict]:
    """Flatten stored messages into sender/body pairs for the prompt."""
    return [{"sender": m.sender, "body": m.body} for m in window]


async def draft_reply(
    generator,
    window: Sequence[Message],
    latest_message: str,
    timeout_seconds: float,
) -> ReplyDraft:
    """Ask the generator for a reply, falling back on error or timeout."""
    try:
        result: GenerationResult = await asyncio.wait_for(
            generator.generate(SYSTEM_PREAMBLE, window_to_history(window), latest_message),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("Reply generation timed out after %.1fs, using fallback", timeout_seconds)
        return ReplyDraft(message=FALLBACK_REPLY, used_fallback=True, error="timeout")
    except Exception as e:
        logger.error("Error getting AI response: %s", str(e))
        return ReplyDraft(message=FALLBACK_REPLY, used_fallback=True, error=str(e))

    if not result.ok:
        logger.warning("Reply generation failed (%s), using fallback", result.error or "empty reply")
        return ReplyDraft(
            message=FALLBACK_REPLY,
            used_fallback=True,
            provider=result.provider,
            model=result.model,
            latency_ms=result.latency_ms,
            error=result.error or "empty reply",
        )

    return ReplyDraft(
        message=result.content.strip(),
        provider=result.provider,
        model=result.model,
        latency_ms=result.latency_ms,
        cost_usd=result.cost_usd,
    )
