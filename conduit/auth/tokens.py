"""Session token creation and verification.

A session token is a JWT whose claims are just the subject (the user id)
and an absolute expiry::

    {"sub": "<uuid>", "exp": <unix seconds>}

signed with HMAC-SHA-384.  SHA-384 is harder to brute-force than the
SHA-256 variant the JWT RFC recommends, at the cost of a slightly larger
token.

Tokens are stateless: validity is decided by the signature and the expiry
alone.  There is no revocation store, so a token cannot be invalidated
before it expires.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

ALGORITHM = "HS384"
DEFAULT_SESSION_LENGTH = timedelta(days=14)


class TokenError(Exception):
    """Raised when a token cannot be verified."""


class InvalidToken(TokenError):
    """Malformed token, unexpected algorithm, bad signature or bad claims."""


class ExpiredToken(TokenError):
    """Correctly signed token whose ``exp`` lies in the past."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issue and verify session tokens with one symmetric key.

    The key is passed in explicitly; nothing here reads configuration.
    *clock* returns the current time as an aware datetime and exists so
    expiry can be tested without sleeping.
    """

    algorithm = ALGORITHM

    def __init__(
        self,
        key: str,
        session_length: timedelta = DEFAULT_SESSION_LENGTH,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._key = key
        self.session_length = session_length
        self._clock = clock or _utcnow

    def issue(self, subject: uuid.UUID) -> str:
        """Return a token for *subject* valid for ``session_length``."""
        expires_at = self._clock() + self.session_length
        return self.encode(subject, expires_at)

    def encode(self, subject: uuid.UUID, expires_at: datetime) -> str:
        """Sign claims with an explicit expiry.  ``issue`` is the normal entry point."""
        claims = {"sub": str(subject), "exp": int(expires_at.timestamp())}
        return jwt.encode(claims, self._key, algorithm=self.algorithm)

    def verify(self, token: str) -> uuid.UUID:
        """Return the subject of *token*.

        Raises InvalidToken or ExpiredToken.  The signature is checked
        before the expiry, so an expired token is only reported as such
        when it was genuinely issued with this key.
        """
        try:
            # PyJWT rejects any header algorithm not in ``algorithms`` before
            # it looks at the signature.  Expiry is checked below against our
            # own clock.
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "require": ["sub", "exp"]},
            )
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"invalid token: {e}") from e

        exp = claims["exp"]
        if isinstance(exp, bool) or not isinstance(exp, int):
            raise InvalidToken("invalid token: exp is not an integer timestamp")

        try:
            subject = uuid.UUID(claims["sub"])
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidToken("invalid token: sub is not a user id") from e

        # Compare against the unrounded clock: a token is dead as soon as now > exp.
        if exp < self._clock().timestamp():
            raise ExpiredToken("token has expired")

        return subject
