"""Error classification shared by the account service and its transports."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class ErrorKind(str, Enum):
    bad_request = "bad_request"
    forbidden = "forbidden"
    not_found = "not_found"
    auth_error = "auth_error"
    internal_error = "internal_error"


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single rule violation attached to a payload field."""

    field: str
    kind: str
    message: str


class AccountError(Exception):
    """Raised by the service layer with an explicit error kind.

    ``errors`` carries the full validation batch when the failure came from
    payload checks; it is empty for single-cause failures.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        errors: Iterable[FieldError] = (),
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors: tuple[FieldError, ...] = tuple(errors)

    @classmethod
    def bad_request(cls, message: str, errors: Iterable[FieldError] = ()) -> "AccountError":
        return cls(ErrorKind.bad_request, message, errors)

    @classmethod
    def forbidden(cls, message: str = "permission denied") -> "AccountError":
        return cls(ErrorKind.forbidden, message)

    @classmethod
    def not_found(cls, message: str = "account not found") -> "AccountError":
        return cls(ErrorKind.not_found, message)

    @classmethod
    def unauthorized(cls, message: str = "unauthorized") -> "AccountError":
        return cls(ErrorKind.auth_error, message)

    @classmethod
    def internal(cls, message: str = "internal server error") -> "AccountError":
        return cls(ErrorKind.internal_error, message)


class RepositoryError(Exception):
    """Storage failure not attributable to caller input."""


class DuplicateEmailError(RepositoryError):
    """Another account already owns the email address."""


class CredentialHashError(Exception):
    """The password hashing backend failed or the stored digest is malformed."""
