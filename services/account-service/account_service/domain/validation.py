"""Payload validation for account registration and updates."""

from __future__ import annotations

from dataclasses import dataclass, field
import re

from .contracts import CreateAccountInput, UpdateAccountInput
from .errors import FieldError
from ..security.password_policy import is_acceptable
from ..security.passwords import MAX_PASSWORD_BYTES

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

REQUIRED = "required"
INVALID_FORMAT = "invalid_format"
OUT_OF_RANGE = "out_of_range"
WEAK_PASSWORD = "weak_password"
TOO_LONG = "too_long"
DUPLICATE = "duplicate"


@dataclass(slots=True)
class ValidationResult:
    """Ordered batch of rule violations collected for a single payload."""

    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, field_name: str, kind: str, message: str) -> None:
        self.errors.append(FieldError(field=field_name, kind=kind, message=message))


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def validate_create(payload: CreateAccountInput) -> ValidationResult:
    """Check every registration rule and return all violations at once."""
    result = ValidationResult()
    if not payload.name:
        result.add("name", REQUIRED, "account must have a name")
    if not payload.email:
        result.add("email", REQUIRED, "account must have an email")
    elif not is_valid_email(payload.email):
        result.add("email", INVALID_FORMAT, "invalid email address")
    if payload.age < 0:
        result.add("age", OUT_OF_RANGE, "age cannot be negative")
    _check_password(result, payload.password or "")
    return result


def validate_update(payload: UpdateAccountInput) -> ValidationResult:
    """Check only the fields present in a partial update."""
    result = ValidationResult()
    if payload.has_email() and not is_valid_email(payload.email):
        result.add("email", INVALID_FORMAT, "invalid email address")
    if payload.has_age() and payload.age < 0:
        result.add("age", OUT_OF_RANGE, "age cannot be negative")
    if payload.has_password():
        _check_password(result, payload.password)
    return result


def _check_password(result: ValidationResult, password: str) -> None:
    if not is_acceptable(password):
        result.add("password", WEAK_PASSWORD, "invalid password")
    elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        # bcrypt only reads the first 72 bytes
        result.add("password", TOO_LONG, f"password must be at most {MAX_PASSWORD_BYTES} bytes")
