"""Stateless bearer tokens with a revocation list.

Tokens are HS256 JWTs carrying the user id (``sub``), issue time, expiry and
a random ``jti``. Nothing is stored when a token is issued; logging out or
refreshing records the token's ``jti`` in ``revoked_tokens`` until the moment
the token would have expired on its own. Revocation is keyed on the verified
claims, never on the token text, so every encoding of the same signed token
is revoked together.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from sqlalchemy import delete
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .errors import TokenExpired, TokenInvalid, TokenMissing
from .repositories import Repository, parse_id

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti"]


class TokenService(Repository):
    def __init__(
        self,
        db: Session,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ):
        super().__init__(db)
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.jwt_algorithm
        self.ttl = ttl or timedelta(minutes=settings.jwt_ttl_minutes)

    def issue(self, user: models.User) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(user.id),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: Optional[str]) -> Dict[str, Any]:
        """Verify signature and expiry and return the claims."""
        if not token:
            raise TokenMissing()
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidTokenError:
            raise TokenInvalid()
        if not isinstance(claims["jti"], str) or not claims["jti"]:
            raise TokenInvalid()
        return claims

    def is_revoked(self, jti: str) -> bool:
        return self.db.get(models.RevokedToken, jti) is not None

    def validate(self, token: Optional[str]) -> models.User:
        """Resolve a bearer token to its user.

        Raises TokenMissing, TokenExpired or TokenInvalid. A revoked token, or
        one whose user has since been deleted, is invalid.
        """
        claims = self.decode(token)
        if self.is_revoked(claims["jti"]):
            raise TokenInvalid()

        user_id = parse_id(claims["sub"])
        user = self.db.get(models.User, user_id) if user_id is not None else None
        if user is None:
            raise TokenInvalid()
        return user

    def invalidate(self, token: str) -> None:
        claims = self.decode(token)
        jti = claims["jti"]
        now = models.utcnow()

        self.db.execute(delete(models.RevokedToken).where(models.RevokedToken.expires_at < now))
        if not self.is_revoked(jti):
            expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc).replace(tzinfo=None)
            self.db.add(
                models.RevokedToken(
                    jti=jti,
                    user_id=parse_id(claims["sub"]),
                    expires_at=expires_at,
                )
            )
        # A concurrent revocation of the same token won the insert.
        self.commit(on_integrity_error=TokenInvalid)
        logger.info("Revoked token %s for user %s", jti, claims["sub"])

    def refresh(self, token: str) -> str:
        """Swap a valid token for a fresh one; the old token stops working."""
        user = self.validate(token)
        new_token = self.issue(user)
        self.invalidate(token)
        return new_token
