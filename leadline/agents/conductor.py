"""
Conductor - the inbound SMS pipeline.

Order of operations for every inbound text:
  persist inbound → resolve/create customer → takeover gate →
  draft reply from the window → dispatch from the receiving line →
  persist outbound → apply qualification score

CRITICAL PRINCIPLE: THE INBOUND MESSAGE IS NEVER LOST.
It is written first, in its own transaction. Only that write and the
customer lookup can fail the request; everything after is best-effort and
nothing is rolled back.

Takeover is an absolute gate: while a human owns the conversation no reply
is generated or sent, whatever the message says.
"""
import logging
import time
from typing import Optional

from leadline.agents.reply import draft_reply
from leadline.models.customer import Customer
from leadline.schemas.pipeline import InboundOutcome, ManualSendResult, DispatchResult
from leadline.services.scoring import ScoringPolicy, DEFAULT_POLICY, score_message
from leadline.services.sms import mask_phone
from leadline.utils.errors import StoreError, CustomerAlreadyExists, DispatchError

logger = logging.getLogger(__name__)

STATUS_PROCESSED = "processed"
STATUS_STORED_FOR_REVIEW = "stored_for_review"


class ConversationConductor:
    """
    Drives the store, the reply generator and the dispatcher for each
    inbound message. Instances are long-lived and hold no per-request state,
    so concurrent calls are safe.
    """

    def __init__(
        self,
        store,
        generator,
        dispatcher,
        default_from_number: str,
        policy: ScoringPolicy = DEFAULT_POLICY,
        window_size: int = 10,
        reply_timeout_seconds: float = 10.0,
    ):
        self.store = store
        self.generator = generator
        self.dispatcher = dispatcher
        self.default_from_number = default_from_number
        self.policy = policy
        self.window_size = window_size
        self.reply_timeout_seconds = reply_timeout_seconds

    async def handle_inbound(self, from_number: str, to_number: str, body: str) -> InboundOutcome:
        """
        Process one inbound SMS.

        Raises StoreError only if the inbound message cannot be stored or the
        customer cannot be resolved.
        """
        start = time.monotonic()
        masked = mask_phone(from_number)
        logger.info("Received SMS from %s to %s", masked, mask_phone(to_number))

        # 1. Persist inbound before anything can go wrong downstream
        await self.store.insert_message(from_number, body, "inbound", "customer")

        # 2. Resolve or create the customer
        customer = await self._get_or_create_customer(from_number)

        # 3. Takeover gate
        if customer.is_human_takeover:
            logger.info("Human takeover active for %s, not sending AI response", masked)
            return InboundOutcome(
                status=STATUS_STORED_FOR_REVIEW,
                customer_id=str(customer.id),
                response_ms=_elapsed_ms(start),
            )

        # 4. Draft a reply from the conversation window
        window = await self._load_window(from_number)
        draft = await draft_reply(self.generator, window, body, self.reply_timeout_seconds)

        # 5. Reply from the line that received the message
        dispatch = await self._dispatch_reply(from_number, to_number, draft.message)

        # 6. Record the outbound attempt, delivered or not, as the carrier got it
        sent_text = dispatch.body or draft.message
        try:
            await self.store.insert_message(
                from_number,
                sent_text,
                "outbound",
                "ai",
                customer_id=customer.id,
                provider_sid=dispatch.sid,
                delivery_status=dispatch.status,
            )
        except StoreError as e:
            logger.error("Failed to store outbound message for %s: %s", masked, str(e))

        # 7. Qualification score
        delta = await self._apply_score(customer, body)

        response_ms = _elapsed_ms(start)
        logger.info(
            "Processed message from %s in %dms (fallback=%s, dispatch=%s, score+%d)",
            masked, response_ms, draft.used_fallback, dispatch.status, delta,
        )
        return InboundOutcome(
            status=STATUS_PROCESSED,
            customer_id=str(customer.id),
            reply=sent_text,
            used_fallback=draft.used_fallback,
            dispatch_status=dispatch.status,
            score_delta=delta,
            response_ms=response_ms,
        )

    async def send_manual(self, to_number: str, message: str) -> ManualSendResult:
        """
        Operator-initiated send from the default line. Ignores takeover.
        Raises DispatchError when the carrier refuses the message.
        """
        dispatch = await self.dispatcher.send(self.default_from_number, to_number, message)
        if not dispatch.ok:
            logger.error(
                "Error sending message to %s: %s", mask_phone(to_number), dispatch.error,
            )
            raise DispatchError(dispatch.error or "SMS dispatch failed", dispatch.error_code)

        message_id: Optional[str] = None
        try:
            stored = await self.store.insert_message(
                to_number,
                dispatch.body or message,
                "outbound",
                "human",
                provider_sid=dispatch.sid,
                delivery_status=dispatch.status,
            )
            message_id = str(stored.id)
        except StoreError as e:
            # Already delivered; failing here would invite a duplicate resend
            logger.error("Manual message sent but not stored for %s: %s", mask_phone(to_number), str(e))

        return ManualSendResult(message_sid=dispatch.sid, message_id=message_id)

    async def set_takeover(self, phone_number: str, active: bool) -> Optional[Customer]:
        """Out-of-band human action; never called from handle_inbound."""
        return await self.store.set_human_takeover(phone_number, active)

    async def _get_or_create_customer(self, phone_number: str) -> Customer:
        customer = await self.store.find_customer_by_phone(phone_number)
        if customer is not None:
            return customer
        try:
            return await self.store.create_customer(phone_number)
        except CustomerAlreadyExists:
            # Lost a create race with a concurrent message from the same number
            customer = await self.store.find_customer_by_phone(phone_number)
            if customer is None:
                raise StoreError(f"Customer for {mask_phone(phone_number)} vanished after create conflict")
            return customer

    async def _load_window(self, phone_number: str) -> list:
        try:
            return await self.store.query_recent_messages(phone_number, self.window_size)
        except StoreError as e:
            logger.warning(
                "Conversation window unavailable for %s, replying without history: %s",
                mask_phone(phone_number), str(e),
            )
            return []

    async def _dispatch_reply(self, to: str, from_line: str, body: str) -> DispatchResult:
        try:
            dispatch = await self.dispatcher.send(from_line, to, body)
        except Exception as e:
            logger.error("SMS dispatch raised for %s: %s", mask_phone(to), str(e), exc_info=True)
            return DispatchResult(status="failed", error=str(e))
        if not dispatch.ok:
            logger.error(
                "Reply to %s not delivered: %s (code=%s)",
                mask_phone(to), dispatch.error, dispatch.error_code,
            )
        return dispatch

    async def _apply_score(self, customer: Customer, body: str) -> int:
        try:
            delta = score_message(body, self.policy)
            if delta == 0:
                return 0
            await self.store.increment_score(customer.id, delta)
            logger.info(
                "Increased qualification score by %d for customer %s",
                delta, str(customer.id)[:8],
            )
            return delta
        except Exception as e:
            logger.error("Error updating qualification score: %s", str(e))
            return 0


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
