from __future__ import annotations

from typing import Iterable, Optional

import jwt
from fastapi import HTTPException, status

from erp.config import get_settings

ROLE_ADMIN = "Admin"
ROLE_MANAGER = "Manager"
ROLE_STAFF = "Staff"


def _load_api_keys() -> set[str]:
    settings = get_settings()
    keys = set()
    if settings.API_KEYS:
        for value in settings.API_KEYS.split(","):
            value = value.strip()
            if value:
                keys.add(value)
    return keys


def auth_enabled() -> bool:
    settings = get_settings()
    return bool(_load_api_keys() or settings.JWT_SECRET or settings.JWT_REQUIRED)


def _get_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_jwt(token: str) -> dict:
    settings = get_settings()
    if not settings.JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="JWT auth is not configured",
        )

    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options=options,
        )
    except jwt.PyJWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid JWT",
        ) from exc


def _roles_from_payload(payload: dict) -> set[str]:
    claim = payload.get(get_settings().JWT_ROLE_CLAIM)
    if claim is None:
        return set()
    if isinstance(claim, str):
        return {claim}
    return {str(role) for role in claim}


def authenticate_request(
    api_key: Optional[str],
    authorization: Optional[str],
    *,
    require_auth: bool = False,
) -> Optional[dict]:
    settings = get_settings()
    keys = _load_api_keys()

    if settings.JWT_REQUIRED:
        require_auth = True

    # Service integrations hold an API key and may act in any role.
    if api_key and api_key in keys and not settings.JWT_REQUIRED:
        return {"auth_type": "api_key", "roles": None}

    token = _get_bearer_token(authorization)
    if token:
        try:
            payload = _decode_jwt(token)
            return {
                "auth_type": "jwt",
                "payload": payload,
                "roles": _roles_from_payload(payload),
            }
        except HTTPException:
            if settings.JWT_REQUIRED:
                raise

    if (require_auth or keys or settings.JWT_REQUIRED) and auth_enabled():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return None


def check_roles(principal: Optional[dict], allowed: Iterable[str]) -> None:
    """Raise 403 unless the principal holds one of ``allowed``.

    ``None`` means authentication is disabled, which grants everything.
    """
    if principal is None:
        return
    roles = principal.get("roles")
    if roles is None:
        return
    if not roles & set(allowed):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role for this operation",
        )


__all__ = [
    "ROLE_ADMIN",
    "ROLE_MANAGER",
    "ROLE_STAFF",
    "auth_enabled",
    "authenticate_request",
    "check_roles",
]
