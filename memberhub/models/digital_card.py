from datetime import datetime
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from memberhub.db.base import Base

# Presentation fields copied from a template onto an issued card
TEMPLATE_FIELDS = (
    "logo",
    "organization_name",
    "card_title",
    "header_text",
    "footer_text",
    "enable_barcode",
    "barcode_type",
    "primary_color",
    "secondary_color",
    "text_color",
)

class DigitalCard(Base):
    __tablename__ = "digital_cards"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Templates belong to a creator (and optionally a plan); issued cards to one subscription
    is_template: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)
    subscription_id: Mapped[int | None] = mapped_column(ForeignKey("subscriptions.id"), nullable=True)

    logo: Mapped[str | None] = mapped_column(String(500), nullable=True)
    organization_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    card_title: Mapped[str | None] = mapped_column(String(255), default="Membership Card")
    header_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    footer_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    enable_barcode: Mapped[bool] = mapped_column(Boolean, default=True)
    barcode_type: Mapped[str] = mapped_column(Enum("qr", "code128", "code39", name="card_barcode_type"), default="qr")
    barcode_data: Mapped[str] = mapped_column(
        Enum("member_number", "user_id", "custom", name="card_barcode_data"),
        default="member_number",
    )

    primary_color: Mapped[str] = mapped_column(String(7), default="#3498db")
    secondary_color: Mapped[str] = mapped_column(String(7), default="#2c3e50")
    text_color: Mapped[str] = mapped_column(String(7), default="#ffffff")

    is_generated: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    subscription = relationship("Subscription")

    __table_args__ = (
        # at most one issued card per subscription (templates have no subscription)
        UniqueConstraint("subscription_id", name="uq_digital_cards_subscription"),
    )
