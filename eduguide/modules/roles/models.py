from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, TIMESTAMP, Index, text
from eduguide.core.base import Base, utcnow

class UserRole(Base):
    __tablename__ = "userrole"
    # at most one super_admin row, enforced by the store
    __table_args__ = (
        Index(
            "uq_userrole_single_super_admin",
            "staff_level",
            unique=True,
            postgresql_where=text("staff_level = 'super_admin'"),
            sqlite_where=text("staff_level = 'super_admin'"),
        ),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)  # identity provider user id
    role: Mapped[str] = mapped_column(String(16), default="student")  # student | staff
    staff_level: Mapped[str | None] = mapped_column(String(16), nullable=True)  # tutor | support | manager | super_admin
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, server_default=text("CURRENT_TIMESTAMP"), onupdate=utcnow
    )
