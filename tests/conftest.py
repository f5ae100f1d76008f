# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import os

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

import itertools
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock

from core.auth_session import AuthSessionManager
from core.errors import AccountNotFoundError, CredentialStoreError, DuplicateEmailError
from core.passwords import hash_password
from core.permissions import serialize_permissions
from core.rate_limiter import reset_rate_limit
from core.session_store import MemoryStorage, SessionStore
from core.utils import normalize_email
from dependencies.auth import SessionContextRegistry, memory_storage_factory
from main import create_app
from models.enums import Role
from models.user import Account


NOW = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeCredentialStore:
    """In-memory stand-in for SupabaseCredentialStore."""

    def __init__(self):
        self.rows = {}
        self.fail = False
        self.fail_last_login = False
        self.writes = []
        self._ids = itertools.count(1)

    def _check(self):
        if self.fail:
            raise CredentialStoreError("Supabase unavailable")

    def add(self, name, email, password, role=Role.admin, is_active=True, password_hash=None):
        account_id = f"user-{next(self._ids)}"
        self.rows[account_id] = {
            "id": account_id,
            "name": name,
            "email": normalize_email(email),
            "password_hash": password_hash or hash_password(password),
            "role": str(role),
            "is_active": is_active,
            "permissions": serialize_permissions(role),
            "created_at": NOW.isoformat(),
        }
        return Account.model_validate(self.rows[account_id])

    # Reads
    def find_by_email(self, email):
        self._check()
        wanted = normalize_email(email)
        for row in self.rows.values():
            if row["email"] == wanted:
                return Account.model_validate(row)
        return None

    def find_by_id(self, account_id):
        self._check()
        row = self.rows.get(account_id)
        return Account.model_validate(row) if row else None

    def list_accounts(self):
        self._check()
        return [Account.model_validate(r) for r in self.rows.values()]

    def search_accounts(self, query):
        self._check()
        term = query.strip().lower()
        return [
            Account.model_validate(r) for r in self.rows.values()
            if term in r["name"].lower() or term in r["email"].lower()
        ]

    def list_by_role(self, role):
        self._check()
        return [Account.model_validate(r) for r in self.rows.values() if r["role"] == str(role)]

    # Writes
    def insert_account(self, fields):
        self._check()
        if self.find_by_email(fields["email"]) is not None:
            raise DuplicateEmailError(fields["email"])
        account_id = f"user-{next(self._ids)}"
        self.rows[account_id] = {"id": account_id, "created_at": NOW.isoformat(), **fields}
        self.writes.append(("insert", account_id, dict(fields)))
        return Account.model_validate(self.rows[account_id])

    def update_account(self, account_id, fields):
        self._check()
        if account_id not in self.rows:
            raise AccountNotFoundError(account_id)
        self.rows[account_id].update(fields)
        self.writes.append(("update", account_id, dict(fields)))
        return Account.model_validate(self.rows[account_id])

    def update_last_login(self, account_id, timestamp):
        self._check()
        if self.fail_last_login:
            raise CredentialStoreError("last_login column missing")
        self.rows[account_id]["last_login"] = timestamp.isoformat()

    def delete_account(self, account_id):
        self._check()
        if self.rows.pop(account_id, None) is None:
            raise AccountNotFoundError(account_id)
        self.writes.append(("delete", account_id, {}))


# -----------------------------------------------------
# Fixtures
# -----------------------------------------------------
@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def empty_store():
    return FakeCredentialStore()


@pytest.fixture
def store():
    credentials = FakeCredentialStore()
    credentials.add("Administrator Rentalinx", "admin@rentalinx.com", "Admin123!", Role.admin)
    credentials.add("Manager Rentalinx", "manager@rentalinx.com", "password123", Role.manager)
    credentials.add("Sari Telemarketing Mobil", "sari.mobil@rentalinx.com", "password123", Role.telemarketing_mobil)
    credentials.add("Budi Telemarketing Bus", "budi.bus@rentalinx.com", "password123", Role.telemarketing_bus)
    credentials.add("Disabled User", "disabled@rentalinx.com", "password123", Role.manager, is_active=False)
    return credentials


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def manager(store, storage, clock):
    """An initialized manager for one browser context."""
    auth = AuthSessionManager(store, SessionStore(storage), clock=clock)
    auth.initialize()
    return auth


@pytest.fixture
def registry(store, clock):
    return SessionContextRegistry(store, memory_storage_factory(), clock=clock)


@pytest.fixture(scope="function")
def app(registry):
    """Create a test FastAPI application instance."""
    return create_app(validate_config=False, registry=registry)


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Sign the test client's browser context in."""

    def _login(email, password, remember_me=False):
        return client.post(
            "/auth/login",
            json={"email": email, "password": password, "remember_me": remember_me},
        )

    return _login


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = Mock()
    mock_table = Mock()
    mock_client.table.return_value = mock_table
    return mock_client


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Reset rate limiter state before each test."""
    reset_rate_limit()
    yield
    reset_rate_limit()
