import logging
from dataclasses import dataclass

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import IDENTITY_SERVICE_URL, IDENTITY_TIMEOUT_SECONDS
from .statuses import ActorRole

logger = logging.getLogger(__name__)

security = HTTPBearer()

_USER_ROLES = {ActorRole.CUSTOMER, ActorRole.TAILOR, ActorRole.ADMIN}


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as reported by the identity collaborator"""

    id: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


# Used for transitions the platform performs on its own behalf
SYSTEM_ACTOR = Actor(id="system", role=ActorRole.SYSTEM)
PAYMENT_ACTOR = Actor(id="payment-provider", role=ActorRole.PAYMENT)


async def resolve_identity(token: str) -> dict:
    """
    Ask the identity service who owns a bearer token.

    The service answers GET /me with {"id": "...", "role": "customer|tailor|admin"}.
    """
    if not IDENTITY_SERVICE_URL:
        logger.error("❌ IDENTITY_SERVICE_URL not configured")
        raise HTTPException(status_code=500, detail="Identity service not configured")

    try:
        async with httpx.AsyncClient(timeout=IDENTITY_TIMEOUT_SECONDS) as client:
            response = await client.get(
                f"{IDENTITY_SERVICE_URL.rstrip('/')}/me",
                headers={"Authorization": f"Bearer {token}"},
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Identity service unreachable: {e}")
        raise HTTPException(status_code=503, detail="Identity service unavailable") from e

    if response.status_code in (401, 403):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if response.status_code != 200:
        logger.error(f"❌ Identity service returned HTTP {response.status_code}")
        raise HTTPException(status_code=503, detail="Identity service unavailable")
    return response.json()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """Resolve the bearer token into an Actor"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    claims = await resolve_identity(credentials.credentials)
    actor_id = claims.get("id") or claims.get("sub")
    try:
        role = ActorRole(claims.get("role"))
    except ValueError:
        role = None

    if not actor_id or role not in _USER_ROLES:
        logger.warning(f"⚠️ Identity claims rejected: {sorted(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return Actor(id=str(actor_id), role=role)


def require_role(*roles: ActorRole):
    """Dependency factory that restricts an endpoint to the given roles"""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=403, detail="Not authorized for this action")
        return actor

    return dependency
