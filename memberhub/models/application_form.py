from datetime import datetime
from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from memberhub.db.base import Base

class ApplicationForm(Base):
    __tablename__ = "application_forms"

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(String(255), default="Membership Application")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    footer: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    agreement: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Field builder config: [{"name", "label", "type", "required", "order", ...}]
    fields: Mapped[list[dict] | None] = mapped_column(JSON, nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
