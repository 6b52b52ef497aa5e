from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import requests
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.config import settings
from lotline.core.context import set_current_organization_id
from lotline.core.db import get_db_session
from lotline.core.repositories.organizations import OrganizationRepository

bearer_scheme = HTTPBearer(auto_error=True)

SUPER_ADMIN_ROLE = "super_admin"


@dataclass(slots=True)
class AuthContext:
    subject: str
    organization_id: UUID | None = None
    claims: dict[str, Any] = field(default_factory=dict)


class JwksCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._jwks: dict | None = None
        self._fetched_at = 0.0

    def get(self, url: str) -> dict:
        now = time.time()
        if self._jwks is None or (now - self._fetched_at) > self.ttl_seconds:
            response = requests.get(url, timeout=5)
            response.raise_for_status()
            self._jwks = response.json()
            self._fetched_at = now
        return self._jwks


jwks_cache = JwksCache()


def _get_signing_key(token: str) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication header",
        ) from exc

    kid = unverified_header.get("kid")
    if not kid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="JWT is missing key id",
        )

    jwks = jwks_cache.get(settings.auth_jwks_url)
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No matching signing key found",
    )


def _decode_jwt(token: str) -> dict:
    key = _get_signing_key(token)

    options = {"verify_aud": bool(settings.auth_audience)}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=settings.auth_issuer,
            audience=settings.auth_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


def _parse_organization_claim(value: Any) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token organization claim is not a valid identifier",
        ) from exc


async def require_authenticated(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    claims = _decode_jwt(credentials.credentials)
    subject = claims.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is missing required claims",
        )
    return AuthContext(
        subject=subject,
        organization_id=_parse_organization_claim(claims.get("org_id")),
        claims=claims,
    )


async def require_auth_context(
    request: Request,
    context: AuthContext = Depends(require_authenticated),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    if context.organization_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is missing required claims",
        )

    organization = await OrganizationRepository(session).get(context.organization_id)
    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization is not provisioned",
        )

    request.state.organization_id = organization.id
    request.state.auth_claims = context.claims
    request.state.user_subject = context.subject
    set_current_organization_id(organization.id)

    return context


def _is_super_admin(context: AuthContext) -> bool:
    if context.subject in settings.super_admin_subjects():
        return True

    role = context.claims.get("role")
    if isinstance(role, str) and role == SUPER_ADMIN_ROLE:
        return True

    roles = context.claims.get("roles")
    return isinstance(roles, list) and SUPER_ADMIN_ROLE in roles


async def require_super_admin(
    context: AuthContext = Depends(require_authenticated),
) -> AuthContext:
    if not _is_super_admin(context):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required",
        )
    return context
