"""
Optional bearer-token gate

When enabled, every protected route needs `Authorization: Bearer <token>`.
The configured ADMIN_API_KEY is a service credential with the admin role;
any other token is checked by the identity verifier (JWT by default).
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    """Authenticated caller"""
    subject: str
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class JWTVerifier:
    """Verifies signed JWTs issued by the identity provider"""

    def __init__(self, secret: Optional[str], algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> Principal:
        if not self.secret:
            raise Unauthorized("Token verification is not configured")
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise Unauthorized("Could not validate credentials")

        subject = payload.get("sub")
        if not subject:
            raise Unauthorized("Could not validate credentials")
        return Principal(subject=subject, role=payload.get("role"))


class BearerAuth:
    """Resolves a bearer token to a Principal"""

    def __init__(self, enabled: bool = False, admin_api_key: Optional[str] = None, verifier=None):
        self.enabled = enabled
        self.admin_api_key = admin_api_key
        self.verifier = verifier

    def authenticate(self, token: Optional[str]) -> Principal:
        if not token:
            raise Unauthorized("Missing bearer token")

        if self.admin_api_key and hmac.compare_digest(token.encode(), self.admin_api_key.encode()):
            return Principal(subject="service", role=ADMIN_ROLE)

        if self.verifier is None:
            raise Unauthorized("Could not validate credentials")
        return self.verifier.verify(token)


def _token_from(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    return credentials.credentials if credentials else None


async def require_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[Principal]:
    """Any verified caller; a no-op when auth is disabled"""
    auth: BearerAuth = request.app.state.auth
    if not auth.enabled:
        return None
    return auth.authenticate(_token_from(credentials))


async def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[Principal]:
    """Verified caller with the admin role; a no-op when auth is disabled"""
    auth: BearerAuth = request.app.state.auth
    if not auth.enabled:
        return None
    principal = auth.authenticate(_token_from(credentials))
    if not principal.is_admin:
        logger.warning(f"Non-admin {principal.subject} denied access to {request.url.path}")
        raise Forbidden("Administrator role required")
    return principal
