import logging
from jose import jwt, JWTError
from eduguide.core.config import settings
from eduguide.platform.ports.identity import IdentityProviderPort, IdentityUser

log = logging.getLogger("identity.jwt")

class JwtIdentityProvider(IdentityProviderPort):
    """Validates HS256 tokens locally. The token issuer owns the user list, so admin calls are no-ops."""

    def _decode(self, token: str) -> dict:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            audience=settings.REQUIRED_AUDIENCE,
            options={"verify_aud": settings.REQUIRED_AUDIENCE is not None},
        )

    async def get_user(self, token: str) -> IdentityUser | None:
        try:
            claims = self._decode(token)
        except JWTError as e:
            log.info(f"Rejected token: {e}")
            return None
        user_id = claims.get("sub") or claims.get("user_id")
        if not user_id:
            return None
        return IdentityUser(
            id=str(user_id),
            email=claims.get("email"),
            app_metadata=claims.get("app_metadata") or {},
            user_metadata=claims.get("user_metadata") or {},
        )

    async def list_users(self) -> list[IdentityUser]:
        log.debug("list_users is not supported by the jwt identity provider")
        return []

    async def find_user_by_email(self, email: str) -> IdentityUser | None:
        return None

    async def update_app_metadata(self, user_id: str, app_metadata: dict) -> None:
        log.info(f"Skipping app_metadata update for {user_id}: claims are minted by the token issuer")
