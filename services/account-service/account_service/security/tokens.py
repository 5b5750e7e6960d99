"""Utilities for issuing and validating account bearer tokens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import time
from typing import Any

import jwt

from ..domain.errors import AccountError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BEARER_SCHEME = "Bearer"


@dataclass(frozen=True, slots=True)
class Claim:
    """Decoded payload of a verified access token."""

    account_id: int
    issued_at: datetime
    expires_at: datetime


def issue_access_token(
    account_id: int,
    *,
    secret: str,
    ttl_seconds: int,
    issuer: str,
    issued_at: int | None = None,
) -> tuple[str, int]:
    """Create a signed JWT representing an authenticated account.

    Parameters
    ----------
    account_id:
        Account identifier to embed in the token `sub` claim.
    secret:
        Shared HMAC secret used to sign the token.
    ttl_seconds:
        Lifetime of the token; `exp` is set to `iat + ttl_seconds`.
    issuer:
        Value of the `iss` claim checked again on verification.
    issued_at:
        Optional Unix timestamp used as `iat`; defaults to the current time.

    Returns
    -------
    tuple[str, int]
        A tuple containing the encoded JWT string and its TTL (in seconds).
    """

    now = int(time.time()) if issued_at is None else issued_at
    payload: dict[str, Any] = {
        "iss": issuer,
        "sub": str(account_id),
        "iat": now,
        "exp": now + ttl_seconds,
    }
    try:
        token = jwt.encode(payload, secret, algorithm=ALGORITHM)
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        logger.error("failed to sign access token for account %s: %s", account_id, type(exc).__name__)
        raise AccountError.internal() from exc
    return token, ttl_seconds


def decode_access_token(token: str, *, secret: str, issuer: str) -> Claim:
    """Decode and verify a JWT returning its claim.

    Parameters
    ----------
    token:
        Encoded JWT issued by this service.

    Returns
    -------
    Claim
        The decoded claim if algorithm, signature, issuer and expiry checks succeed.

    Raises
    ------
    AccountError
        With kind ``auth_error`` when the token is malformed, signed with another
        algorithm or secret, issued by someone else, or expired.
    """

    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") != ALGORITHM:
            raise jwt.InvalidAlgorithmError(f"unexpected signing algorithm {header.get('alg')!r}")
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            issuer=issuer,
            options={"require": ["exp", "iat", "sub"]},
        )
        account_id = int(payload["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
        logger.debug("rejected access token: %s", exc)
        raise AccountError.unauthorized() from exc

    return Claim(
        account_id=account_id,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise AccountError.unauthorized()
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise AccountError.unauthorized()
    return parts[1]
