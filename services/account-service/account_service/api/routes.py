"""HTTP route definitions for the account service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import get_settings
from ..domain.account import Account
from ..domain.contracts import CreateAccountInput, UpdateAccountInput
from ..domain.deadline import Deadline
from ..domain.errors import AccountError, ErrorKind
from ..domain.service import AccountService

router = APIRouter(prefix="/v1")

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.bad_request: status.HTTP_400_BAD_REQUEST,
    ErrorKind.auth_error: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.forbidden: status.HTTP_403_FORBIDDEN,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.internal_error: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` aggregate without its digest."""

    account_id: int
    name: str
    age: int
    email: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            account_id=account.account_id,
            name=account.name,
            age=account.age,
            email=account.email,
            created_at=account.created_at.isoformat(),
            updated_at=account.updated_at.isoformat(),
        )


class CreateAccountRequest(BaseModel):
    """Payload accepted when registering an account."""

    name: str = ""
    age: int = 0
    email: str = ""
    password: str = ""


class UpdateAccountRequest(BaseModel):
    """Partial update payload; omitted fields keep their stored values."""

    name: str | None = None
    age: int | None = None
    email: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    """Credentials exchanged for a bearer token."""

    email: str
    password: str


class TokenResponse(BaseModel):
    """Token issuance response containing the bearer token and metadata."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class StatusResponse(BaseModel):
    status: str
    message: str


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_deadline() -> Deadline:
    """Per-request time budget taken from the current settings snapshot."""
    return Deadline.after(get_settings().request_timeout_seconds)


def get_caller_id(
    authorization: str | None = Header(default=None),
    service: AccountService = Depends(get_service),
) -> int:
    """Authenticate the bearer token and return the caller's account id."""
    try:
        claim = service.authenticate(authorization)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return claim.account_id


@router.post("/accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: CreateAccountRequest,
    service: AccountService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> AccountResponse:
    """Register an account after validating the whole payload."""
    try:
        account = service.register(
            CreateAccountInput(
                name=payload.name,
                age=payload.age,
                email=payload.email,
                password=payload.password,
            ),
            deadline=deadline,
        )
    except AccountError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.get("/accounts", response_model=list[AccountResponse])
def list_accounts(
    page: int = Query(default=0),
    page_size: int = Query(default=10),
    service: AccountService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> list[AccountResponse]:
    """Return one page of accounts."""
    try:
        accounts = service.list_accounts(page, page_size, deadline=deadline)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [AccountResponse.from_domain(account) for account in accounts]


@router.post("/accounts/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> TokenResponse:
    """Issue a signed access token for valid credentials."""
    try:
        bundle = service.login(payload.email, payload.password, deadline=deadline)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return TokenResponse(access_token=bundle.access_token, expires_in=bundle.expires_in)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    service: AccountService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> AccountResponse:
    """Retrieve an account by identifier."""
    try:
        account = service.get_account(_parse_account_id(account_id), deadline=deadline)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.put("/accounts/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: str,
    payload: UpdateAccountRequest,
    caller_id: int = Depends(get_caller_id),
    service: AccountService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> AccountResponse:
    """Update the caller's own account."""
    try:
        account = service.update_account(
            caller_id,
            _parse_account_id(account_id),
            UpdateAccountInput(
                name=payload.name,
                age=payload.age,
                email=payload.email,
                password=payload.password,
            ),
            deadline=deadline,
        )
    except AccountError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.delete("/accounts/{account_id}", response_model=StatusResponse)
def delete_account(
    account_id: str,
    caller_id: int = Depends(get_caller_id),
    service: AccountService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
) -> StatusResponse:
    """Delete the caller's own account."""
    try:
        service.delete_account(caller_id, _parse_account_id(account_id), deadline=deadline)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return StatusResponse(status="success", message="account deleted")


def _parse_account_id(raw: str) -> int:
    if not (raw.isascii() and raw.isdigit()):
        raise AccountError.bad_request("invalid account id")
    account_id = int(raw)
    if account_id <= 0:
        raise AccountError.bad_request("invalid account id")
    return account_id


def _http_error(exc: AccountError) -> HTTPException:
    status_code = _STATUS_BY_KIND[exc.kind]
    if exc.kind is ErrorKind.internal_error:
        return HTTPException(status_code=status_code, detail="internal server error")
    if exc.kind is ErrorKind.auth_error:
        return HTTPException(
            status_code=status_code,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if exc.errors:
        detail = [
            {"field": error.field, "kind": error.kind, "message": error.message}
            for error in exc.errors
        ]
        return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status_code, detail=exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies and query strings as a 400 field batch."""
    detail = [
        {
            "field": str(error["loc"][-1]) if error.get("loc") else "body",
            "kind": error.get("type", "invalid"),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})
