"""
Message model - every SMS received or sent, append-only.
Rows are never updated after insert; the only exception is owner adoption
when the customer row is created after the first inbound message.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, ForeignKey, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from leadline.database import Base


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("customers.id"), nullable=True
    )

    # The customer's number, regardless of direction
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    direction: Mapped[str] = mapped_column(
        String(10), nullable=False
    )  # inbound, outbound
    sender: Mapped[str] = mapped_column(
        String(10), nullable=False
    )  # customer, ai, human

    # Delivery tracking (outbound only)
    provider_sid: Mapped[Optional[str]] = mapped_column(String(64))
    delivery_status: Mapped[str] = mapped_column(
        String(20), default="received"
    )  # received, sent, failed

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    customer: Mapped[Optional["Customer"]] = relationship(back_populates="messages")

    __table_args__ = (
        Index("ix_messages_customer_id", "customer_id"),
        Index("ix_messages_phone_created", "phone_number", "created_at"),
        Index("ix_messages_provider_sid", "provider_sid"),
    )

    def __repr__(self) -> str:
        return f"<Message {self.direction} sender={self.sender}>"
