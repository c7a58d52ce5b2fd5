from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text
from eduguide.core.base import Base, TimestampedMixin

class TutoringRequest(Base, TimestampedMixin):
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(32), default="general")
    subject: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(8), default="medium")
    status: Mapped[str] = mapped_column(String(16), default="new")  # new, assigned, in_progress, completed

class SupportRequest(Base, TimestampedMixin):
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message: Mapped[str] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(8), default="medium")
    source: Mapped[str] = mapped_column(String(32), default="live_chat_widget")
    status: Mapped[str] = mapped_column(String(16), default="new")  # new, in_progress, resolved, closed
