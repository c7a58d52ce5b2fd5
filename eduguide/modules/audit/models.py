from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, JSON
from eduguide.core.base import Base, CreatedOnlyMixin

class AdminAuditLog(Base, CreatedOnlyMixin):
    # who
    actor_user_id: Mapped[str] = mapped_column(String(64))
    # what happened
    action: Mapped[str] = mapped_column(String(48))  # assign_user_role | ...
    target: Mapped[str] = mapped_column(String(255))  # user id or email
    details: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)
