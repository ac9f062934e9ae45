"""
SMS dispatcher - Twilio REST API.
Replies are always sent from the line the inbound message arrived on;
manual sends use the configured default line.

Carrier error handling:
- 21211/21612 (invalid number), 21610 (unsubscribed), 30006 (landline): no retry
- 30007/30008/30009/30010 and network errors: retry with backoff
"""
import asyncio
import logging
import math
import re
from typing import Optional

from leadline.schemas.pipeline import DispatchResult

logger = logging.getLogger(__name__)

# encoding -> (single segment chars, per-part chars when concatenated)
SEGMENT_LIMITS = {
    "gsm7": (160, 153),
    "ucs2": (70, 67),
}
MAX_SEGMENTS = 3

TWILIO_OUTBOUND_COST = 0.0079
RETRY_DELAYS_SECONDS = [1, 3, 9]
TWILIO_CLIENT_TIMEOUT = 10

# Twilio error code -> error class
ERROR_CLASSES = {
    "21211": "invalid",     # Invalid "To" phone number
    "21612": "invalid",     # "To" number cannot receive SMS
    "21610": "opt_out",     # Recipient unsubscribed at the carrier
    "30006": "landline",    # Landline or unreachable carrier
    "30007": "transient",   # Filtered by carrier
    "30008": "transient",   # Unknown error
    "30009": "transient",   # Missing segment
    "30010": "transient",   # Price exceeds max price
}
NO_RETRY_CLASSES = frozenset({"permanent", "opt_out", "landline", "invalid"})

_ERROR_CODE_RE = re.compile(r"\b(\d{5})\b")

GSM7_ALPHABET = frozenset(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞ ÆæßÉ"
    " !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "ÄÖÑÜabcdefghijklmnopqrstuvwxyz"
    "äöñüà§"
)
# Escape-table characters cost two septets each
GSM7_ESCAPED = frozenset("^{}\\[~]|€")


def is_gsm7(message: str) -> bool:
    return all(c in GSM7_ALPHABET or c in GSM7_ESCAPED for c in message)


def _encoded_length(message: str, encoding: str) -> int:
    if encoding == "gsm7":
        return len(message) + sum(1 for c in message if c in GSM7_ESCAPED)
    return len(message)


def count_segments(message: str) -> int:
    """Billable segments for a message, GSM-7 when possible, else UCS-2."""
    encoding = "gsm7" if is_gsm7(message) else "ucs2"
    single, per_part = SEGMENT_LIMITS[encoding]
    length = _encoded_length(message, encoding)
    if length <= single:
        return 1
    return math.ceil(length / per_part)


def enforce_message_length(message: str) -> tuple[str, int, str]:
    """
    Cap a message at MAX_SEGMENTS, cutting it short with "...".
    Returns (message, segments, encoding).
    """
    encoding = "gsm7" if is_gsm7(message) else "ucs2"
    segments = count_segments(message)
    if segments <= MAX_SEGMENTS:
        return message, segments, encoding

    budget = SEGMENT_LIMITS[encoding][1] * MAX_SEGMENTS - 3
    cut = message[:budget]
    # Escaped characters take two septets; shorten until the text fits
    while _encoded_length(cut, encoding) > budget:
        cut = cut[:-1]
    capped = cut + "..."
    capped_segments = count_segments(capped)
    logger.warning(
        "Reply capped at %d segments (was %d, %s)", capped_segments, segments, encoding,
    )
    return capped, capped_segments, encoding


def mask_phone(phone: str) -> str:
    """First six characters and a mask, for log lines."""
    if not phone:
        return "unknown"
    return phone if len(phone) <= 6 else f"{phone[:6]}***"


def classify_error(error_code: str | None) -> str:
    """
    Map a Twilio error code to one of: permanent, transient, landline,
    opt_out, invalid, unknown.
    """
    if not error_code:
        return "unknown"
    return ERROR_CLASSES.get(str(error_code), "unknown")


def _extract_error_code(error: Exception) -> Optional[str]:
    """Twilio exceptions carry `.code`; otherwise look for a known code in the text."""
    code = getattr(error, "code", None)
    if code is not None:
        return str(code)
    for candidate in _ERROR_CODE_RE.findall(str(error)):
        if candidate in ERROR_CLASSES:
            return candidate
    return None


async def _run_sync(func, **kwargs):
    # twilio's REST client is blocking
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(**kwargs))


def build_twilio_client(account_sid: str, auth_token: str):
    """Twilio REST client with a bounded HTTP timeout."""
    from twilio.http.http_client import TwilioHttpClient
    from twilio.rest import Client

    return Client(
        account_sid,
        auth_token,
        http_client=TwilioHttpClient(timeout=TWILIO_CLIENT_TIMEOUT),
    )


class SmsDispatcher:
    """Delivers outbound texts through one Twilio account."""

    def __init__(self, twilio_client, max_retries: int = 2, retry_delays: Optional[list[float]] = None):
        self._client = twilio_client
        self._max_retries = max_retries
        self._retry_delays = retry_delays if retry_delays is not None else RETRY_DELAYS_SECONDS

    async def send(self, from_phone: str, to: str, body: str) -> DispatchResult:
        """
        Send one SMS. Never raises for carrier/network failures; the result
        carries the error instead.
        """
        body, segments, encoding = enforce_message_length(body)
        masked = mask_phone(to)
        last_error = None
        last_error_code = None

        for attempt in range(self._max_retries + 1):
            try:
                message = await _run_sync(
                    self._client.messages.create, to=to, from_=from_phone, body=body,
                )
                logger.info(
                    "SMS sent to %s from %s (%d segments, %s): %s",
                    masked, mask_phone(from_phone), segments, encoding, message.sid,
                )
                return DispatchResult(
                    sid=message.sid,
                    status="sent",
                    segments=segments,
                    encoding=encoding,
                    cost_usd=segments * TWILIO_OUTBOUND_COST,
                    body=body,
                )
            except Exception as e:
                error_code = _extract_error_code(e)
                error_class = classify_error(error_code)
                last_error = str(e)
                last_error_code = error_code

                if error_class in NO_RETRY_CLASSES:
                    logger.warning(
                        "Twilio permanent error for %s: code=%s class=%s",
                        masked, error_code, error_class,
                    )
                    break

                if attempt < self._max_retries:
                    delay = self._retry_delays[min(attempt, len(self._retry_delays) - 1)]
                    logger.warning(
                        "Twilio transient error for %s (attempt %d/%d): %s. Retrying in %ss...",
                        masked, attempt + 1, self._max_retries + 1, error_code or str(e), delay,
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error("Twilio exhausted retries for %s: %s", masked, str(e))

        return DispatchResult(
            sid=None,
            status="failed",
            segments=segments,
            encoding=encoding,
            error=last_error,
            error_code=last_error_code,
            body=body,
        )
