import logging
import httpx
from eduguide.core.config import settings
from eduguide.platform.ports.identity import IdentityProviderPort, IdentityUser, IdentityError

log = logging.getLogger("identity.gotrue")

def _to_user(data: dict) -> IdentityUser:
    return IdentityUser(
        id=str(data["id"]),
        email=data.get("email"),
        app_metadata=data.get("app_metadata") or {},
        user_metadata=data.get("user_metadata") or {},
    )

class GoTrueIdentityProvider(IdentityProviderPort):
    """Managed auth REST API (GoTrue / Supabase Auth)."""

    def __init__(self, base_url: str | None = None, service_key: str | None = None):
        base_url = base_url or settings.AUTH_URL
        service_key = service_key or settings.AUTH_SERVICE_KEY
        if not base_url or not service_key:
            raise RuntimeError("AUTH_URL and AUTH_SERVICE_KEY must be configured for the gotrue identity provider")
        self.base_url = base_url.rstrip("/") + "/auth/v1"
        self.service_key = service_key

    def _admin_headers(self) -> dict:
        return {"apikey": self.service_key, "Authorization": f"Bearer {self.service_key}"}

    async def get_user(self, token: str) -> IdentityUser | None:
        headers = {"apikey": self.service_key, "Authorization": f"Bearer {token}"}
        async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT_SECONDS) as client:
            try:
                response = await client.get(f"{self.base_url}/user", headers=headers)
            except httpx.HTTPError as e:
                raise IdentityError(f"Identity provider unreachable: {e}") from e
        if response.status_code in (401, 403, 404):
            return None
        if response.is_error:
            log.error(f"Identity provider error {response.status_code}: {response.text}")
            raise IdentityError(f"Identity provider returned {response.status_code}")
        return _to_user(response.json())

    async def list_users(self) -> list[IdentityUser]:
        async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT_SECONDS) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/admin/users",
                    params={"page": 1, "per_page": 1000},
                    headers=self._admin_headers(),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                log.error(f"HTTP error listing users: {e.response.text}")
                raise IdentityError("Failed to list users") from e
            except httpx.HTTPError as e:
                raise IdentityError(f"Identity provider unreachable: {e}") from e
        return [_to_user(u) for u in response.json().get("users", [])]

    async def find_user_by_email(self, email: str) -> IdentityUser | None:
        wanted = email.lower()
        for user in await self.list_users():
            if user.email and user.email.lower() == wanted:
                return user
        return None

    async def update_app_metadata(self, user_id: str, app_metadata: dict) -> None:
        async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT_SECONDS) as client:
            try:
                response = await client.put(
                    f"{self.base_url}/admin/users/{user_id}",
                    json={"app_metadata": app_metadata},
                    headers=self._admin_headers(),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                log.error(f"HTTP error updating app_metadata: {e.response.text}")
                raise IdentityError("Failed to update user metadata") from e
            except httpx.HTTPError as e:
                raise IdentityError(f"Identity provider unreachable: {e}") from e
