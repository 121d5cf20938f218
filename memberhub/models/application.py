from datetime import datetime
from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from memberhub.db.base import Base

APPLICATION_STATUSES = ("incomplete", "pending", "approved", "rejected")

class Application(Base):
    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(String(255), index=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    referral: Mapped[str | None] = mapped_column(String(255), nullable=True)
    student_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    form_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id"), index=True)
    # Set when the application is approved and the member account exists
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    # incomplete -> pending (payment recorded) -> approved | rejected
    status: Mapped[str] = mapped_column(
        Enum(*APPLICATION_STATUSES, name="application_status"),
        default="incomplete",
        index=True,
    )

    # Coupon snapshot frozen at submission time
    coupon_id: Mapped[int | None] = mapped_column(ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    coupon_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    original_amount: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)
    discount_amount: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)
    final_amount: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)

    payment_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    plan = relationship("Plan")
    user = relationship("User")

    __table_args__ = (
        Index("ix_applications_email_plan", "email", "plan_id"),
    )
