"""
Conversation store - customers and messages on async SQLAlchemy.

Every call runs in its own session and commits on its own, so a failure
in one pipeline step never rolls back another. "Not found" is None;
anything the database refuses is raised as StoreError.
"""
import asyncio
import logging
import uuid
from typing import Optional

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadline.models.customer import Customer
from leadline.models.message import Message
from leadline.services.sms import mask_phone
from leadline.utils.errors import StoreError, CustomerAlreadyExists

logger = logging.getLogger(__name__)

DIRECTIONS = ("inbound", "outbound")
SENDERS = ("customer", "ai", "human")


class ConversationStore:
    """Durable record of customers and their messages."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lookup_retries: int = 2,
        retry_delay_seconds: float = 0.2,
    ):
        self._session_factory = session_factory
        self._lookup_retries = lookup_retries
        self._retry_delay_seconds = retry_delay_seconds

    async def find_customer_by_phone(self, phone_number: str) -> Optional[Customer]:
        """
        Look up a customer by phone number.
        Transient database errors are retried; if they persist StoreError is
        raised so callers never mistake an outage for "no such customer".
        """
        attempts = self._lookup_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(
                        select(Customer).where(Customer.phone_number == phone_number)
                    )
                    return result.scalar_one_or_none()
            except SQLAlchemyError as e:
                last_error = e
                if attempt < attempts - 1:
                    logger.warning(
                        "Customer lookup failed for %s (attempt %d/%d): %s",
                        mask_phone(phone_number), attempt + 1, attempts, str(e),
                    )
                    await asyncio.sleep(self._retry_delay_seconds * (attempt + 1))
        raise StoreError(f"Customer lookup failed after {attempts} attempts: {last_error}")

    async def get_customer(self, customer_id: uuid.UUID) -> Optional[Customer]:
        try:
            async with self._session_factory() as session:
                return await session.get(Customer, customer_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Customer read failed: {e}") from e

    async def create_customer(self, phone_number: str) -> Customer:
        """
        Insert a new lead with score 0 and adopt any messages already stored
        for the number without an owner.
        Raises CustomerAlreadyExists if another request created it first.
        """
        try:
            async with self._session_factory() as session:
                customer = Customer(
                    phone_number=phone_number,
                    status="lead",
                    is_human_takeover=False,
                    qualification_score=0,
                )
                session.add(customer)
                await session.flush()
                await session.execute(
                    update(Message)
                    .where(and_(
                        Message.phone_number == phone_number,
                        Message.customer_id.is_(None),
                    ))
                    .values(customer_id=customer.id)
                )
                await session.commit()
        except IntegrityError as e:
            raise CustomerAlreadyExists(phone_number) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Customer create failed: {e}") from e

        logger.info("Created new customer: %s", mask_phone(phone_number))
        return customer

    async def insert_message(
        self,
        phone_number: str,
        body: str,
        direction: str,
        sender: str,
        customer_id: Optional[uuid.UUID] = None,
        provider_sid: Optional[str] = None,
        delivery_status: Optional[str] = None,
    ) -> Message:
        """
        Append a message. When no customer_id is given the owner is looked up
        by phone in the same transaction (it stays None on first contact).
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction}")
        if sender not in SENDERS:
            raise ValueError(f"Invalid sender: {sender}")

        try:
            async with self._session_factory() as session:
                if customer_id is None:
                    customer_id = (await session.execute(
                        select(Customer.id).where(Customer.phone_number == phone_number)
                    )).scalar_one_or_none()
                message = Message(
                    customer_id=customer_id,
                    phone_number=phone_number,
                    body=body,
                    direction=direction,
                    sender=sender,
                    provider_sid=provider_sid,
                    delivery_status=delivery_status or (
                        "received" if direction == "inbound" else "sent"
                    ),
                )
                session.add(message)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Message insert failed: {e}") from e

        logger.debug(
            "Stored %s message from %s for %s",
            direction, sender, mask_phone(phone_number),
        )
        return message

    async def query_recent_messages(self, phone_number: str, limit: int = 10) -> list[Message]:
        """The most recent `limit` messages for a number, oldest first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Message)
                    .where(Message.phone_number == phone_number)
                    .order_by(Message.created_at.desc())
                    .limit(limit)
                )
                newest_first = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Message history read failed: {e}") from e
        return list(reversed(newest_first))

    async def increment_score(self, customer_id: uuid.UUID, delta: int) -> Optional[int]:
        """
        Atomically add delta to the stored score and return the new value.
        Returns None if the customer does not exist. A zero delta is a no-op.
        """
        if delta < 0:
            raise ValueError("Score delta must be non-negative")
        if delta == 0:
            return None
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(Customer)
                    .where(Customer.id == customer_id)
                    .values(qualification_score=Customer.qualification_score + delta)
                    .returning(Customer.qualification_score)
                )
                new_score = result.scalar_one_or_none()
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Score increment failed: {e}") from e
        return new_score

    async def set_human_takeover(self, phone_number: str, active: bool) -> Optional[Customer]:
        """Set or clear the takeover flag. Returns None if no such customer."""
        try:
            async with self._session_factory() as session:
                customer = (await session.execute(
                    select(Customer).where(Customer.phone_number == phone_number)
                )).scalar_one_or_none()
                if customer is None:
                    return None
                customer.is_human_takeover = active
                if active:
                    customer.status = "human_takeover"
                elif customer.status == "human_takeover":
                    customer.status = "lead"
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Takeover update failed: {e}") from e

        logger.info(
            "Human takeover %s for %s",
            "enabled" if active else "cleared", mask_phone(phone_number),
        )
        return customer
