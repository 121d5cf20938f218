from datetime import datetime
from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from memberhub.db.base import Base

class Coupon(Base):
    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))

    # Public code typed in by applicants ("couponId" on the wire)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    discount: Mapped[float] = mapped_column(Numeric(10, 2))
    discount_type: Mapped[str] = mapped_column(
        Enum("percentage", "fixed", name="coupon_discount_type"),
        default="percentage",
    )

    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    # None means unlimited
    max_redemptions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_redemptions: Mapped[int] = mapped_column(Integer, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Legacy filter: list of plan ids, empty or None means every plan
    applicable_plans: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
