from __future__ import annotations

import pytest

from account_service.config import Settings
from account_service.domain.service import AccountService
from account_service.repository import InMemoryAccountRepository

TEST_SECRET = "test-secret-" + "z" * 48


@pytest.fixture()
def settings() -> Settings:
    # cheapest bcrypt cost keeps the suite fast
    return Settings(jwt_secret=TEST_SECRET, jwt_ttl_seconds=600, bcrypt_rounds=4)


@pytest.fixture()
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture()
def service(repository, settings) -> AccountService:
    return AccountService(repository, settings_provider=lambda: settings)
