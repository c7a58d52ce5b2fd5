import uuid
from datetime import datetime
from typing import Annotated
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from eduguide.core.schemas import CamelModel
from eduguide.modules.tickets.schemas import TicketOut
from eduguide.modules.tickets.workflow import coerce_priority

TUTORING_CATEGORIES = ("college_guidance", "admissions", "financial_aid", "test_prep", "essays", "general", "other")

# ---- Tutoring requests ----

class TutoringRequestCreate(CamelModel):
    category: Annotated[str, StringConstraints(min_length=1)]
    subject: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=200)]
    description: str | None = Field(default=None, max_length=2000)
    priority: str = "medium"

    @field_validator("category")
    @classmethod
    def _known_category(cls, v: str) -> str:
        return v if v in TUTORING_CATEGORIES else "general"

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, v):
        return coerce_priority(v)

class TutoringRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    category: str
    subject: str
    description: str | None
    priority: str
    status: str
    created_at: datetime
    updated_at: datetime | None

class TutoringRequestList(BaseModel):
    requests: list[TutoringRequestOut]

class TutoringRequestCreated(BaseModel):
    request: TutoringRequestOut
    ticket: TicketOut

# ---- Live support ----

class LiveSupportStart(CamelModel):
    initial_message: str = ""
    priority: str = "medium"

    @field_validator("initial_message", mode="before")
    @classmethod
    def _text_or_blank(cls, v):
        return v.strip() if isinstance(v, str) else ""

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, v):
        return coerce_priority(v)

class LiveSupportCurrent(BaseModel):
    ticket: TicketOut | None

class LiveSupportSession(BaseModel):
    ticket: TicketOut
    created: bool
