"""
Authentication & Authorization — two-role stub.

- Programmatic / admin: API_KEY. Include: Authorization: Bearer <API_KEY>
- Client viewer: same bearer plus X-Client-Id: <client id>. Client viewers only
  see their own dashboard and campaigns.

In development with no API_KEY set, the bearer check is skipped for local dev.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from adpulse.config import get_settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

ROLE_ADMIN = "ADMIN"
ROLE_CLIENT = "CLIENT"


@dataclass
class Viewer:
    role: str
    client_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_see(self, client_id: str) -> bool:
        return self.is_admin or self.client_id == client_id


async def require_auth(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Verify the bearer API key. Returns the key, or "dev-no-auth"."""
    settings = get_settings()
    api_key = settings.api_key

    # Dev convenience: skip auth when no key is configured
    if not api_key:
        if settings.is_production:
            raise HTTPException(
                status_code=500,
                detail="Server misconfiguration: API_KEY must be set in production.",
            )
        return "dev-no-auth"

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Include header: Authorization: Bearer <token>",
        )

    if credentials.credentials != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key.")
    return credentials.credentials


async def get_viewer(
    _: str = Depends(require_auth),
    x_client_id: Optional[str] = Header(None, alias="X-Client-Id"),
) -> Viewer:
    if x_client_id:
        return Viewer(role=ROLE_CLIENT, client_id=x_client_id)
    return Viewer(role=ROLE_ADMIN)


async def require_admin(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    """Require the admin role (no X-Client-Id)."""
    if not viewer.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return viewer
