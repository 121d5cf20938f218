from datetime import datetime
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from memberhub.db.base import Base

SUBSCRIPTION_STATUSES = ("pending", "active", "past_due", "cancelled", "expired")

# Statuses a completed payment may activate from
ACTIVATABLE_STATUSES = ("pending", "past_due")

class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id"), index=True)

    member_number: Mapped[str] = mapped_column(String(50), unique=True)

    status: Mapped[str] = mapped_column(
        Enum(*SUBSCRIPTION_STATUSES, name="subscription_status"),
        default="pending",
        index=True,
    )

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # None = non-expiring (one-time plans)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    renewal_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    auto_renew: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")
    plan = relationship("Plan")
