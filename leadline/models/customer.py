"""
Customer model - one row per phone number that has ever texted in.
Lifecycle status: lead → qualified → closed, with human_takeover set out-of-band.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Integer, Boolean, DateTime, Uuid, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from leadline.database import Base

CUSTOMER_STATUSES = ("lead", "qualified", "human_takeover", "closed")


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )

    # Natural key - exactly one customer per phone number
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    status: Mapped[str] = mapped_column(String(20), default="lead", nullable=False)
    is_human_takeover: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Cumulative qualification score, only ever incremented in SQL
    qualification_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(
        back_populates="customer", lazy="select", order_by="Message.created_at"
    )

    __table_args__ = (
        Index("ix_customers_status", "status"),
        Index("ix_customers_created_at", "created_at"),
        CheckConstraint("qualification_score >= 0", name="ck_customers_score_nonnegative"),
    )

    def __repr__(self) -> str:
        masked = self.phone_number[:6] + "***" if self.phone_number else "unknown"
        return f"<Customer {masked} status={self.status} score={self.qualification_score}>"
