"""Account service orchestrating validation, hashing, persistence, and token issuance."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Callable

from .account import Account
from .contracts import CreateAccountInput, NewAccountFields, UpdateAccountInput
from .deadline import Deadline
from .errors import (
    AccountError,
    CredentialHashError,
    DuplicateEmailError,
    RepositoryError,
)
from .validation import DUPLICATE, ValidationResult, validate_create, validate_update
from ..config import Settings, get_settings
from ..repository import AccountRepository
from ..security.passwords import hash_password, verify_password
from ..security.tokens import (
    Claim,
    decode_access_token,
    extract_bearer_token,
    issue_access_token,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "invalid credentials"


@dataclass(slots=True)
class TokenBundle:
    """Access token returned to API consumers after a successful login."""

    access_token: str
    expires_in: int


class AccountService:
    """Account workflows backed by an :class:`AccountRepository`."""

    def __init__(
        self,
        repository: AccountRepository,
        settings_provider: Callable[[], Settings] = get_settings,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._repository = repository
        self._settings = settings_provider

    def register(
        self, payload: CreateAccountInput, *, deadline: Deadline | None = None
    ) -> Account:
        """Validate, hash and persist a new account.

        Every rule violation (including an email that is already taken) is
        reported together in one ``bad_request`` error; the password is only
        hashed once the batch is empty.
        """
        result = validate_create(payload)
        if payload.email and not any(e.field == "email" for e in result.errors):
            self._check_email_available(result, payload.email, None, deadline)
        if not result.ok:
            raise AccountError.bad_request("invalid account payload", result.errors)

        fields = NewAccountFields(
            name=payload.name,
            age=payload.age,
            email=payload.email,
            password_hash=self._hash(payload.password),
        )
        self._check(deadline)
        try:
            account = self._repository.create_account(fields, deadline=deadline)
        except DuplicateEmailError as exc:
            raise _duplicate_email_error() from exc
        except RepositoryError as exc:
            logger.exception("failed to persist new account for %s", payload.email)
            raise AccountError.internal() from exc
        logger.info("registered account %s", account.account_id)
        return account

    def list_accounts(
        self, page: int, page_size: int, *, deadline: Deadline | None = None
    ) -> list[Account]:
        """Return one page of accounts in insertion order."""
        if page < 0:
            raise AccountError.bad_request("page must not be negative")
        if page_size <= 0:
            raise AccountError.bad_request("page size must be greater than zero")
        self._check(deadline)
        try:
            return self._repository.list_accounts(page * page_size, page_size, deadline=deadline)
        except RepositoryError as exc:
            logger.exception("failed to list accounts (page=%s, page_size=%s)", page, page_size)
            raise AccountError.internal() from exc

    def get_account(self, account_id: int, *, deadline: Deadline | None = None) -> Account:
        """Retrieve an account by identifier."""
        if account_id <= 0:
            raise AccountError.bad_request("invalid account id")
        self._check(deadline)
        try:
            account = self._repository.get_account(account_id, deadline=deadline)
        except RepositoryError as exc:
            logger.exception("failed to fetch account %s", account_id)
            raise AccountError.internal() from exc
        if account is None:
            raise AccountError.not_found()
        return account

    def update_account(
        self,
        caller_id: int,
        account_id: int,
        payload: UpdateAccountInput,
        *,
        deadline: Deadline | None = None,
    ) -> Account:
        """Apply a partial update to the caller's own account."""
        self._require_owner(caller_id, account_id)
        current = self.get_account(account_id, deadline=deadline)

        result = validate_update(payload)
        if (
            payload.has_email()
            and payload.email != current.email
            and not any(e.field == "email" for e in result.errors)
        ):
            self._check_email_available(result, payload.email, account_id, deadline)
        if not result.ok:
            raise AccountError.bad_request("invalid account payload", result.errors)

        updated = replace(current)
        if payload.has_name():
            updated.name = payload.name
        if payload.has_age():
            updated.age = payload.age
        if payload.has_email():
            updated.email = payload.email
        if payload.has_password():
            updated.password_hash = self._hash(payload.password)

        self._check(deadline)
        try:
            account = self._repository.update_account(updated, deadline=deadline)
        except DuplicateEmailError as exc:
            raise _duplicate_email_error() from exc
        except RepositoryError as exc:
            logger.exception("failed to update account %s", account_id)
            raise AccountError.internal() from exc
        logger.info("updated account %s", account_id)
        return account

    def delete_account(
        self, caller_id: int, account_id: int, *, deadline: Deadline | None = None
    ) -> None:
        """Delete the caller's own account."""
        self._require_owner(caller_id, account_id)
        self.get_account(account_id, deadline=deadline)
        self._check(deadline)
        try:
            deleted = self._repository.delete_account(account_id, deadline=deadline)
        except RepositoryError as exc:
            logger.exception("failed to delete account %s", account_id)
            raise AccountError.internal() from exc
        if not deleted:
            raise AccountError.not_found()
        logger.info("deleted account %s", account_id)

    def login(
        self, email: str, password: str, *, deadline: Deadline | None = None
    ) -> TokenBundle:
        """Exchange email and password for a signed access token."""
        settings = self._settings()
        self._check(deadline)
        try:
            account = self._repository.get_account_by_email(email, deadline=deadline)
        except RepositoryError as exc:
            logger.exception("failed to look up account for login")
            raise AccountError.internal() from exc
        if account is None:
            raise AccountError.bad_request(INVALID_CREDENTIALS)

        try:
            matches = verify_password(account.password_hash, password)
        except CredentialHashError as exc:
            logger.exception("stored digest for account %s is unusable", account.account_id)
            raise AccountError.internal() from exc
        if not matches:
            raise AccountError.bad_request(INVALID_CREDENTIALS)

        token, expires_in = issue_access_token(
            account.account_id,
            secret=settings.jwt_secret,
            ttl_seconds=settings.jwt_ttl_seconds,
            issuer=settings.jwt_issuer,
        )
        logger.info("issued access token for account %s", account.account_id)
        return TokenBundle(access_token=token, expires_in=expires_in)

    def authenticate(self, authorization: str | None) -> Claim:
        """Verify an ``Authorization`` header and return the caller's claim."""
        settings = self._settings()
        token = extract_bearer_token(authorization)
        return decode_access_token(token, secret=settings.jwt_secret, issuer=settings.jwt_issuer)

    def _require_owner(self, caller_id: int, account_id: int) -> None:
        if caller_id != account_id:
            raise AccountError.forbidden()

    def _check_email_available(
        self,
        result: ValidationResult,
        email: str,
        owner_id: int | None,
        deadline: Deadline | None,
    ) -> None:
        self._check(deadline)
        try:
            existing = self._repository.get_account_by_email(email, deadline=deadline)
        except RepositoryError as exc:
            logger.exception("failed to check email availability")
            raise AccountError.internal() from exc
        if existing is not None and existing.account_id != owner_id:
            result.add("email", DUPLICATE, "email already registered")

    def _hash(self, password: str) -> str:
        try:
            return hash_password(password, rounds=self._settings().bcrypt_rounds)
        except CredentialHashError as exc:
            logger.exception("failed to hash password")
            raise AccountError.internal() from exc

    @staticmethod
    def _check(deadline: Deadline | None) -> None:
        if deadline is not None:
            deadline.check()


def _duplicate_email_error() -> AccountError:
    result = ValidationResult()
    result.add("email", DUPLICATE, "email already registered")
    return AccountError.bad_request("invalid account payload", result.errors)
