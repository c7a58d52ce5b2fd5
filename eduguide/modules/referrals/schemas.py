from pydantic import BaseModel, ValidationInfo, field_validator
from eduguide.core.schemas import CamelModel

class ReferralLink(CamelModel):
    code: str
    share_url: str
    clicks: int

# attribution fields are clipped, never rejected
_CLIP = {"visitor_id": 64, "landing_url": 512, "utm_source": 64, "utm_medium": 64, "utm_campaign": 64}

class ReferralClick(BaseModel):
    code: str = ""
    visitor_id: str | None = None
    landing_url: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, v):
        return v.strip().lower() if isinstance(v, str) else ""

    @field_validator(*_CLIP, mode="before")
    @classmethod
    def _clip(cls, v, info: ValidationInfo):
        return v[:_CLIP[info.field_name]] if isinstance(v, str) else None

class ClickRecorded(BaseModel):
    ok: bool = True
