from typing import Optional

from fastapi import Depends, Header, Request

from erp.config import get_settings
from erp.core.security import authenticate_request, check_roles
from erp.database.session import get_db


def require_auth(
    request: Request,
    api_key_alt: Optional[str] = Header(None, alias="api-key"),
    authorization: Optional[str] = Header(None),
):
    api_key_value = request.headers.get(get_settings().API_KEY_HEADER) or api_key_alt
    return authenticate_request(
        api_key=api_key_value,
        authorization=authorization,
        require_auth=True,
    )


def require_role(*roles: str):
    def dependency(principal=Depends(require_auth)):
        check_roles(principal, roles)
        return principal

    return dependency


__all__ = ["get_db", "require_auth", "require_role"]
