"""
Bearer token verification.

Tokens are issued elsewhere; this module only verifies them and turns the
claims into an ``Identity``.
"""

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.errors import AuthenticationError
from shared.logging import get_logger, set_user_context
from ..models import Identity, Role

bearer_scheme = HTTPBearer(auto_error=False)


class IdentityResolver:
    """Verifies HS-signed JWTs carrying ``sub`` and ``role`` claims."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm
        self.logger = get_logger("task-manager.auth")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub"]}
            )
        except jwt.ExpiredSignatureError as exc:
            self.logger.info("Expired token rejected")
            raise AuthenticationError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            self.logger.warning("Invalid token rejected", error=str(exc))
            raise AuthenticationError("Token is not valid", details={"error": str(exc)}) from exc

    def resolve(self, token: str) -> Identity:
        """Verify ``token`` and return the identity it names."""
        claims = self.decode(token)

        user_id = claims.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise AuthenticationError("Token has no subject")

        role = claims.get("role") or Role.MEMBER.value
        try:
            role = Role(role)
        except ValueError as exc:
            raise AuthenticationError("Token carries an unknown role", details={"role": str(role)}) from exc

        return Identity(user_id=user_id, role=role)

    async def __call__(
        self,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
    ) -> Identity:
        """FastAPI dependency resolving the request's identity."""
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthenticationError("No token, authorization denied")

        identity = self.resolve(credentials.credentials)
        set_user_context(identity.user_id)
        return identity
