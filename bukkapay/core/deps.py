from fastapi import Depends
from bukkapay.core.exceptions import AuthorizationError
from bukkapay.core.sessions import get_current_user


async def require_superuser(
    user=Depends(get_current_user),
):
    if not user.get("is_superuser"):
        raise AuthorizationError("Superuser access required")
    return user
