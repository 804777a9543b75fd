"""FastAPI dependencies for caller identity.

Authentication happens upstream: the gateway validates the session and
forwards the user id and role as headers. Usage in any router:

    from src.fm_gateway.dependencies import get_current_user_id

    @router.get("/protected")
    async def protected(user_id: str = Depends(get_current_user_id)):
        ...
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.fm_common.errors import AdminRequiredError

_MISSING_IDENTITY = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Missing authenticated user",
)


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    if not x_user_id:
        raise _MISSING_IDENTITY
    return x_user_id


async def require_admin(
    user_id: Annotated[str, Depends(get_current_user_id)],
    x_user_role: Annotated[str | None, Header()] = None,
) -> str:
    """Admin-only endpoints: team launch, fixture lifecycle, cap adjustments."""
    if x_user_role != "admin":
        raise AdminRequiredError()
    return user_id
