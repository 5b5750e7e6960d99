"""bcrypt helpers for storing and checking account passwords."""

from __future__ import annotations

import logging

import bcrypt

from ..domain.errors import CredentialHashError

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a self-contained bcrypt digest (salt and cost embedded)."""
    secret = plain.encode("utf-8")
    if len(secret) > MAX_PASSWORD_BYTES:
        raise CredentialHashError("password exceeds the bcrypt input limit")
    try:
        hashed = bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds))
    except ValueError as exc:
        # never include the input here
        logger.error("password hashing failed: %s", type(exc).__name__)
        raise CredentialHashError("password hashing failed") from exc
    return hashed.decode("utf-8")


def verify_password(hash_value: str, plain: str) -> bool:
    """Check ``plain`` against a stored digest in constant time.

    Returns ``False`` on mismatch. Raises :class:`CredentialHashError` only
    when ``hash_value`` is not a usable bcrypt digest.
    """
    if not hash_value:
        raise CredentialHashError("stored password digest is empty")
    candidate = plain.encode("utf-8")
    if len(candidate) > MAX_PASSWORD_BYTES:
        # hash_password never accepts such input, so it cannot match
        return False
    try:
        return bcrypt.checkpw(candidate, hash_value.encode("utf-8"))
    except ValueError as exc:
        raise CredentialHashError("stored password digest is malformed") from exc
