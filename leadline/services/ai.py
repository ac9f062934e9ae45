"""
AI reply generator - OpenAI primary, Anthropic fallback.
Tracks cost, latency, and token usage for every call.
Provider errors come back on the result, never as exceptions.
"""
import logging
import re
import time
from typing import Optional, Sequence

from leadline.schemas.pipeline import GenerationResult

logger = logging.getLogger(__name__)

# Cost per million tokens (input/output)
COST_TABLE = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-3.5-turbo": {"input": 0.50, "output": 1.50},
    "claude-haiku-4-5-20251001": {"input": 1.00, "output": 5.00},
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Calculate cost in USD for a given model and token count."""
    costs = COST_TABLE.get(model, {"input": 1.0, "output": 5.0})
    return (input_tokens * costs["input"] + output_tokens * costs["output"]) / 1_000_000


def _sanitize_output_text(text: str) -> str:
    """Remove hidden reasoning blocks returned by some providers."""
    if not text:
        return ""
    cleaned = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL | re.IGNORECASE)
    return cleaned.strip()


def build_user_message(history: Sequence[dict], latest_message: str) -> str:
    """
    Render the conversation window and the new inbound text as one user turn.
    Each history entry needs "sender" and "body".
    """
    lines = "\n".join(f"{entry['sender']}: {entry['body']}" for entry in history)
    return (
        f"Conversation history:\n{lines}\n\n"
        f"Latest message: {latest_message}\n\n"
        "Respond appropriately:"
    )


class ReplyGenerator:
    """Chat-completion client pair, created once per process."""

    def __init__(
        self,
        openai_client=None,
        anthropic_client=None,
        openai_model: str = "gpt-4o-mini",
        anthropic_model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 150,
        temperature: float = 0.7,
    ):
        self._openai = openai_client
        self._anthropic = anthropic_client
        self.openai_model = openai_model
        self.anthropic_model = anthropic_model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings) -> "ReplyGenerator":
        openai_client = None
        anthropic_client = None
        if settings.openai_api_key:
            from openai import AsyncOpenAI
            openai_client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=(settings.openai_base_url or None),
                timeout=settings.openai_timeout_seconds,
            )
        if settings.anthropic_api_key:
            from anthropic import AsyncAnthropic
            anthropic_client = AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.anthropic_timeout_seconds,
            )
        if not openai_client and not anthropic_client:
            logger.warning("No AI provider configured - every reply will use the fallback text")
        return cls(
            openai_client=openai_client,
            anthropic_client=anthropic_client,
            openai_model=settings.openai_model,
            anthropic_model=settings.anthropic_model,
            max_tokens=settings.openai_max_tokens,
            temperature=settings.reply_temperature,
        )

    async def generate(
        self,
        system_prompt: str,
        history: Sequence[dict],
        latest_message: str,
    ) -> GenerationResult:
        """
        Generate a reply. OpenAI first, Anthropic if OpenAI fails.

        Returns a GenerationResult; `error` is set when no provider produced
        usable text.
        """
        user_message = build_user_message(history, latest_message)

        result = GenerationResult(error="No AI provider produced a reply")

        if self._openai is not None:
            try:
                result = await self._generate_openai(system_prompt, user_message)
            except Exception as e:
                logger.error("OpenAI failed: %s", str(e))
            else:
                if result.ok:
                    return result
                logger.warning("OpenAI returned no usable text: %s", result.error)

        if self._anthropic is not None:
            try:
                return await self._generate_anthropic(system_prompt, user_message)
            except Exception as e:
                logger.error("Anthropic fallback failed: %s", str(e))

        return result

    async def _generate_openai(self, system_prompt: str, user_message: str) -> GenerationResult:
        start = time.monotonic()
        response = await self._openai.chat.completions.create(
            model=self.openai_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        )
        latency_ms = int((time.monotonic() - start) * 1000)

        content = response.choices[0].message.content if response.choices else ""
        content = _sanitize_output_text(content or "")
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return GenerationResult(
            content=content,
            provider="openai",
            model=self.openai_model,
            latency_ms=latency_ms,
            cost_usd=calculate_cost(self.openai_model, input_tokens, output_tokens),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            error=None if content else "Empty completion",
        )

    async def _generate_anthropic(self, system_prompt: str, user_message: str) -> GenerationResult:
        start = time.monotonic()
        response = await self._anthropic.messages.create(
            model=self.anthropic_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
        latency_ms = int((time.monotonic() - start) * 1000)

        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text
        content = _sanitize_output_text(content)

        input_tokens = response.usage.input_tokens if response.usage else 0
        output_tokens = response.usage.output_tokens if response.usage else 0

        return GenerationResult(
            content=content,
            provider="anthropic",
            model=self.anthropic_model,
            latency_ms=latency_ms,
            cost_usd=calculate_cost(self.anthropic_model, input_tokens, output_tokens),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            error=None if content else "Empty completion",
        )
