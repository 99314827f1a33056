"""
Bearer credential handling.

Tokens are issued by the identity service and carry the account id and role:

    <account_id>.<role>.<expires_at>.<hex hmac-sha256 of the first three parts>

The signature is keyed on SECRET_KEY, so any service sharing the key can
validate a token without a round trip.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.core.config import Settings, get_settings
from marketplace.core.enums import Role
from marketplace.core.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""
    account_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin


def _sign(payload: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode("utf8"), payload.encode("utf8"), hashlib.sha256).hexdigest()


def issue_token(account_id: int, role: Role, settings: Optional[Settings] = None, ttl_seconds: Optional[int] = None) -> str:
    settings = settings or get_settings()
    expires_at = int(time.time()) + (ttl_seconds if ttl_seconds is not None else settings.TOKEN_TTL_SECONDS)
    payload = f"{account_id}.{Role(role).value}.{expires_at}"
    return f"{payload}.{_sign(payload, settings.SECRET_KEY)}"


def decode_token(token: str, settings: Optional[Settings] = None) -> Principal:
    """Validate a token and return its principal, raising AuthenticationError otherwise."""
    settings = settings or get_settings()
    parts = token.split(".")
    if len(parts) != 4:
        raise AuthenticationError("Malformed token")

    account_id, role, expires_at, signature = parts
    expected = _sign(f"{account_id}.{role}.{expires_at}", settings.SECRET_KEY)
    if not hmac.compare_digest(signature, expected):
        raise AuthenticationError("Invalid token signature")

    try:
        principal = Principal(account_id=int(account_id), role=Role(role))
        expiry = int(expires_at)
    except ValueError:
        raise AuthenticationError("Malformed token")

    if expiry < time.time():
        raise AuthenticationError("Token expired")
    return principal


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Principal:
    """FastAPI dependency resolving the bearer token into a Principal."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_token(credentials.credentials, settings)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_roles(*roles: Role):
    """
    Dependency factory restricting a route to the given roles.
    Usage: principal: Principal = Depends(require_roles(Role.SELLER))
    """
    allowed = frozenset(roles)

    def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{principal.role.value}' is not allowed to perform this action",
            )
        return principal

    return _check
