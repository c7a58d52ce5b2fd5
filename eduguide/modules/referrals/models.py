from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer
from eduguide.core.base import Base, TimestampedMixin, CreatedOnlyMixin

class ReferralCode(Base, TimestampedMixin):
    user_id: Mapped[str] = mapped_column(String(64), unique=True)
    code: Mapped[str] = mapped_column(String(32), unique=True)
    clicks: Mapped[int] = mapped_column(Integer, default=0)

class ReferralAttribution(Base, CreatedOnlyMixin):
    referral_code: Mapped[str] = mapped_column(String(32), index=True)
    referrer_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    visitor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    landing_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    utm_source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    utm_medium: Mapped[str | None] = mapped_column(String(64), nullable=True)
    utm_campaign: Mapped[str | None] = mapped_column(String(64), nullable=True)
