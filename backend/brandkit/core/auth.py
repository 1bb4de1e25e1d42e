"""Owner resolution for kit routes.

Session validation happens in front of this service; requests arrive with
the authenticated user id in the X-User-Id header. When AUTH_REQUIRED=false,
a dev owner is returned without checking headers.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from brandkit.core.config import get_settings
from brandkit.core.logging import get_logger

logger = get_logger(__name__)

OWNER_HEADER = "X-User-Id"


@dataclass
class UserInfo:
    """Authenticated user information."""

    id: str


async def get_current_user(request: Request) -> UserInfo:
    """FastAPI dependency returning the user that owns the requested kits."""
    settings = get_settings()

    if not settings.auth_required:
        return UserInfo(id=settings.dev_owner_id)

    owner_id = (request.headers.get(OWNER_HEADER) or "").strip()
    if not owner_id:
        logger.warning(
            "Request without owner header",
            extra={"path": request.url.path},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return UserInfo(id=owner_id)
