"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class CreateAccountInput:
    """Raw inputs supplied when registering a new account."""

    name: str
    age: int
    email: str
    password: str


@dataclass(slots=True)
class UpdateAccountInput:
    """Partial update; ``None``, empty strings and a zero age mean "no change"."""

    name: str | None = None
    age: int | None = None
    email: str | None = None
    password: str | None = None

    def has_name(self) -> bool:
        return bool(self.name)

    def has_age(self) -> bool:
        return self.age is not None and self.age != 0

    def has_email(self) -> bool:
        return bool(self.email)

    def has_password(self) -> bool:
        return bool(self.password)


@dataclass(slots=True)
class NewAccountFields:
    """Fields handed to the repository once validation and hashing succeeded."""

    name: str
    age: int
    email: str
    password_hash: str
