from datetime import datetime
from sqlalchemy import DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from memberhub.db.base import Base

PAYMENT_METHODS = ("cash", "bank_transfer", "credit_card", "debit_card", "mobile_payment", "crypto", "other")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
# A refund is final; only these may move to completed
COMPLETABLE_STATUSES = ("pending", "failed")

class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("plans.id"), nullable=True, index=True)
    # Null until a subscription exists for the payment
    subscription_id: Mapped[int | None] = mapped_column(ForeignKey("subscriptions.id"), nullable=True, index=True)

    amount: Mapped[float] = mapped_column(Numeric(10, 2))
    payment_method: Mapped[str] = mapped_column(Enum(*PAYMENT_METHODS, name="payment_method"))
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)

    # Gateway invoice id for crypto payments, transaction id otherwise
    identifier: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    reference_number: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        Enum(*PAYMENT_STATUSES, name="payment_status"),
        default="pending",
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")
    plan = relationship("Plan")
    subscription = relationship("Subscription")
