"""
verify.py
---------
Purpose:
    JWT verification against the identity provider's JWKS.

Notes:
    - Signing keys are fetched from AUTH_JWKS_URL and cached by PyJWKClient.
    - `auth_dependency` protects user routes, `admin_dependency` admin routes.
"""

from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from fintrack.config import settings

ADMIN_ROLE = "admin"

_security = HTTPBearer()


@lru_cache(maxsize=1)
def _jwk_client() -> PyJWKClient:
    return PyJWKClient(settings.AUTH_JWKS_URL)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client().get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=settings.auth_algorithms(),
            audience=settings.AUTH_AUDIENCE,
            options={"verify_exp": True},
        )
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    return verify_jwt(credentials.credentials)


def require_user_id(claims: dict) -> str:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return str(user_id)


def admin_dependency(claims: dict = Depends(auth_dependency)) -> dict:
    app_metadata = claims.get("app_metadata") or {}
    if ADMIN_ROLE not in (claims.get("role"), app_metadata.get("role")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return claims
