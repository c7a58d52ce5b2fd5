from typing import Protocol, runtime_checkable
from pydantic import BaseModel, Field

class IdentityUser(BaseModel):
    id: str
    email: str | None = None
    app_metadata: dict = Field(default_factory=dict)
    user_metadata: dict = Field(default_factory=dict)

class IdentityError(Exception):
    """The identity provider could not be reached or refused an admin call."""

@runtime_checkable
class IdentityProviderPort(Protocol):
    async def get_user(self, token: str) -> IdentityUser | None: ...
    async def list_users(self) -> list[IdentityUser]: ...
    async def find_user_by_email(self, email: str) -> IdentityUser | None: ...
    async def update_app_metadata(self, user_id: str, app_metadata: dict) -> None: ...
