from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from account_service.api import routes
from account_service.domain.errors import RepositoryError
from account_service.domain.service import AccountService
from account_service.repository import InMemoryAccountRepository


class FlakyRepository(InMemoryAccountRepository):
    """In-memory repository whose lookups by id fail like a dropped connection."""

    def get_account(self, account_id, *, deadline=None):
        raise RepositoryError("server closed the connection unexpectedly")


@pytest.fixture
def api_client(service):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.add_exception_handler(RequestValidationError, routes.request_validation_handler)
    app.state.account_service = service

    with TestClient(app) as client:
        yield client, service


def _create(client, **overrides):
    body = {"name": "John Doe", "age": 24, "email": "john@x.com", "password": "*StrongPass1#"}
    body.update(overrides)
    return client.post("/v1/accounts", json=body)


def _login(client, email="john@x.com", password="*StrongPass1#") -> str:
    response = client.post("/v1/accounts/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["access_token"]


def test_create_account_hides_password(api_client):
    client, _ = api_client
    response = _create(client)
    assert response.status_code == 201
    data = response.json()
    assert data["account_id"] > 0
    assert data["name"] == "John Doe"
    assert "password" not in data
    assert "password_hash" not in data


def test_create_account_returns_whole_batch(api_client):
    client, _ = api_client
    response = _create(client, email="not-an-email", password="weak", age=-2)
    assert response.status_code == 400
    fields = [error["field"] for error in response.json()["detail"]]
    assert fields == ["email", "age", "password"]


def test_list_accounts_paging(api_client):
    client, _ = api_client
    _create(client, email="john@x.com")
    _create(client, email="jane@x.com", name="Jane Smith")

    response = client.get("/v1/accounts", params={"page": 0, "page_size": 10})
    assert response.status_code == 200
    assert [item["email"] for item in response.json()] == ["john@x.com", "jane@x.com"]

    bad = client.get("/v1/accounts", params={"page": 0, "page_size": 0})
    assert bad.status_code == 400


def test_get_account_status_codes(api_client):
    client, _ = api_client
    account_id = _create(client).json()["account_id"]

    assert client.get(f"/v1/accounts/{account_id}").status_code == 200
    assert client.get("/v1/accounts/999").status_code == 404
    assert client.get("/v1/accounts/0").status_code == 400
    assert client.get("/v1/accounts/abc").status_code == 400


def test_login_rejects_wrong_password(api_client):
    client, _ = api_client
    _create(client)
    response = client.post(
        "/v1/accounts/login", json={"email": "john@x.com", "password": "*WrongPass1#"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "invalid credentials"


def test_login_returns_bearer_token(api_client):
    client, service = api_client
    account_id = _create(client).json()["account_id"]
    response = client.post(
        "/v1/accounts/login", json={"email": "john@x.com", "password": "*StrongPass1#"}
    )
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 600
    assert service.authenticate(f"Bearer {data['access_token']}").account_id == account_id


def test_update_requires_bearer_token(api_client):
    client, _ = api_client
    account_id = _create(client).json()["account_id"]

    missing = client.put(f"/v1/accounts/{account_id}", json={"name": "Jane"})
    assert missing.status_code == 401
    assert missing.headers["www-authenticate"] == "Bearer"

    malformed = client.put(
        f"/v1/accounts/{account_id}",
        json={"name": "Jane"},
        headers={"Authorization": "Token abc"},
    )
    assert malformed.status_code == 401


def test_update_own_account(api_client):
    client, _ = api_client
    account_id = _create(client).json()["account_id"]
    token = _login(client)

    response = client.put(
        f"/v1/accounts/{account_id}",
        json={"name": "Jane"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Jane"
    assert data["email"] == "john@x.com"
    assert data["age"] == 24


def test_update_other_account_is_forbidden(api_client):
    client, _ = api_client
    _create(client)
    other_id = _create(client, email="jane@x.com").json()["account_id"]
    token = _login(client)

    response = client.put(
        f"/v1/accounts/{other_id}",
        json={"email": "invalid"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "permission denied"


def test_delete_account_flow(api_client):
    client, _ = api_client
    account_id = _create(client).json()["account_id"]
    other_id = _create(client, email="jane@x.com").json()["account_id"]
    headers = {"Authorization": f"Bearer {_login(client)}"}

    assert client.delete(f"/v1/accounts/{other_id}", headers=headers).status_code == 403

    response = client.delete(f"/v1/accounts/{account_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "success"
    assert client.get(f"/v1/accounts/{account_id}").status_code == 404


def test_storage_failure_is_reported_generically(settings):
    service = AccountService(FlakyRepository(), settings_provider=lambda: settings)
    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_service = service

    with TestClient(app) as client:
        response = client.get("/v1/accounts/1")
    assert response.status_code == 500
    assert response.json()["detail"] == "internal server error"


def test_non_positive_ids_are_bad_requests_for_owner_routes(api_client):
    client, _ = api_client
    _create(client)
    headers = {"Authorization": f"Bearer {_login(client)}"}

    assert client.put("/v1/accounts/0", json={"name": "Jane"}, headers=headers).status_code == 400
    assert client.delete("/v1/accounts/0", headers=headers).status_code == 400
    assert client.delete("/v1/accounts/00", headers=headers).status_code == 400


def test_overlong_password_is_reported_in_batch(api_client):
    client, _ = api_client
    response = _create(client, password="*Password123#" + "a" * 70)
    assert response.status_code == 400
    assert response.json()["detail"] == [
        {"field": "password", "kind": "too_long", "message": "password must be at most 72 bytes"}
    ]


def test_mistyped_body_field_is_bad_request(api_client):
    client, _ = api_client
    response = _create(client, age="x")
    assert response.status_code == 400
    assert [error["field"] for error in response.json()["detail"]] == ["age"]


def test_mistyped_query_parameter_is_bad_request(api_client):
    client, _ = api_client
    response = client.get("/v1/accounts", params={"page": "abc"})
    assert response.status_code == 400
    assert response.json()["detail"][0]["field"] == "page"
