from datetime import datetime
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from memberhub.db.base import Base

RENEWAL_INTERVALS = ("monthly", "quarterly", "yearly", "one-time")

class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    benefits: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Money (use Numeric for currency)
    fee: Mapped[float] = mapped_column(Numeric(10, 2))

    renewal_interval: Mapped[str] = mapped_column(
        Enum(*RENEWAL_INTERVALS, name="plan_renewal_interval"),
        default="monthly",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    max_members: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # The plan's associated coupon: when set, it is the only code accepted for this plan
    coupon_id: Mapped[int | None] = mapped_column(ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    digital_card_template_id: Mapped[int | None] = mapped_column(
        ForeignKey("digital_cards.id", ondelete="SET NULL", use_alter=True), nullable=True
    )
    # Plan-specific application form, used only when use_default_form is off
    application_form_id: Mapped[int | None] = mapped_column(
        ForeignKey("application_forms.id", ondelete="SET NULL"), nullable=True
    )
    use_default_form: Mapped[bool] = mapped_column(Boolean, default=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    coupon = relationship("Coupon", foreign_keys=[coupon_id])
    creator = relationship("User")
