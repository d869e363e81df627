"""
Session Tokens
==============
Signed, self-contained session tokens (JWT) bound to an account.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog

from .clock import Clock, SYSTEM_CLOCK
from .errors import InvalidTokenError

logger = structlog.get_logger(__name__)

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
DEFAULT_TOKEN_TTL_SECONDS = 24 * 3600


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""
    account_id: uuid.UUID
    identity: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """
    Mints and verifies HMAC-signed JWT session tokens.

    Claims:
        sub   - account id
        phone - identity
        iat   - issued at (Unix seconds)
        exp   - expiry (Unix seconds)

    Example:
        issuer = TokenIssuer(secret)
        token = issuer.mint(account.id, account.identity)
        claims = issuer.verify(token)
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        if ttl_seconds <= 0:
            raise ValueError("Token TTL must be positive")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.clock = clock or SYSTEM_CLOCK

    def mint(self, account_id: uuid.UUID, identity: str) -> str:
        """
        Create a signed token for an account.

        Args:
            account_id: Account id (``sub``)
            identity: Account identity (``phone``)

        Returns:
            Encoded JWT
        """
        issued_at = self.clock.now()
        payload = {
            "sub": str(account_id),
            "phone": identity,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(seconds=self.ttl_seconds)).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Verify signature, algorithm and expiry.

        Expiry is checked against the injected clock rather than PyJWT's
        own wall-clock check.

        Raises:
            InvalidTokenError: For any structural, signature or expiry problem
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != self.algorithm:
                raise InvalidTokenError("unexpected signing algorithm")

            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
            account_id = uuid.UUID(str(payload["sub"]))
            identity = payload.get("phone")
            if not isinstance(identity, str) or not identity:
                raise InvalidTokenError("missing identity claim")
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except InvalidTokenError:
            raise
        except jwt.PyJWTError as e:
            raise InvalidTokenError(type(e).__name__) from e
        except (ValueError, TypeError) as e:
            raise InvalidTokenError("malformed claims") from e

        if self.clock.now() >= expires_at:
            raise InvalidTokenError("expired")

        return TokenClaims(
            account_id=account_id,
            identity=identity,
            issued_at=issued_at,
            expires_at=expires_at,
        )
