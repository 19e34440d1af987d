"""FastAPI auth dependencies.

These are used as ``Depends()`` in route handlers to turn the
``Authorization: Token <token>`` header into a ``Principal``.

The header is first classified into one of three outcomes by
``authenticate``:

- ``NO_ATTEMPT``: no header was sent.
- ``AUTHENTICATED``: a well-formed header carrying a valid token.
- ``FAILED``: a header was sent but the scheme, payload or token is bad.

``get_current_user`` accepts only ``AUTHENTICATED``.
``get_current_user_optional`` also accepts ``NO_ATTEMPT`` (as ``None``), but
a ``FAILED`` attempt is still rejected: sending a header means the caller
tried to authenticate, and a broken attempt is not downgraded to anonymous
access.  Every rejection is the same 401; the reason only goes to the log.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from conduit.auth.passwords import PasswordHasher
from conduit.auth.tokens import TokenCodec, TokenError
from conduit.errors import Unauthenticated

logger = logging.getLogger(__name__)

SCHEME_PREFIX = "Token "


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: uuid.UUID


class AttemptState(enum.Enum):
    NO_ATTEMPT = "no_attempt"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthAttempt:
    state: AttemptState
    principal: Optional[Principal] = None
    reason: Optional[str] = None


def authenticate(authorization: Optional[str], codec: TokenCodec) -> AuthAttempt:
    """Classify an ``Authorization`` header value."""
    if authorization is None:
        return AuthAttempt(AttemptState.NO_ATTEMPT)

    if not authorization.startswith(SCHEME_PREFIX):
        return AuthAttempt(AttemptState.FAILED, reason="authorization header uses the wrong scheme")

    token = authorization[len(SCHEME_PREFIX):].strip()
    if not token:
        return AuthAttempt(AttemptState.FAILED, reason="authorization header has no token")

    try:
        user_id = codec.verify(token)
    except TokenError as e:
        return AuthAttempt(AttemptState.FAILED, reason=str(e))

    return AuthAttempt(AttemptState.AUTHENTICATED, principal=Principal(user_id=user_id))


# ---------------------------------------------------------------------------
# Collaborators built once per app (see conduit.main)
# ---------------------------------------------------------------------------

def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

async def get_auth_attempt(
    authorization: Optional[str] = Header(None),
    codec: TokenCodec = Depends(get_token_codec),
) -> AuthAttempt:
    attempt = authenticate(authorization, codec)
    if attempt.state is AttemptState.FAILED:
        logger.debug("rejecting credentials: %s", attempt.reason)
    return attempt


async def get_current_user_optional(
    attempt: AuthAttempt = Depends(get_auth_attempt),
) -> Optional[Principal]:
    """Principal if a valid token was sent, None if no header was sent."""
    if attempt.state is AttemptState.NO_ATTEMPT:
        return None
    if attempt.state is AttemptState.FAILED:
        raise Unauthenticated()
    return attempt.principal


async def get_current_user(
    attempt: AuthAttempt = Depends(get_auth_attempt),
) -> Principal:
    """Principal of the caller; 401 unless a valid token was sent."""
    if attempt.state is not AttemptState.AUTHENTICATED:
        raise Unauthenticated()
    return attempt.principal
