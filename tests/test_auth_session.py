# tests/test_auth_session.py

"""
Tests for the per-context authentication state machine.
"""

import asyncio
from datetime import timedelta

from core.auth_session import (
    MSG_ACCOUNT_DISABLED,
    MSG_CREDENTIALS_REQUIRED,
    MSG_EMAIL_REQUIRED,
    MSG_INVALID_CREDENTIALS,
    MSG_INVALID_EMAIL,
    MSG_LOGIN_IN_PROGRESS,
    MSG_SYSTEM_ERROR,
    AuthSessionManager,
)
from core.errors import SessionStoreError
from core.passwords import legacy_digest, verify_password
from core.session_store import EXPIRY_KEY, USER_KEY, MemoryStorage, SessionStore
from models.enums import AuthErrorCode, AuthState, Permission, Role


def login(manager, email, password, remember_me=False):
    return asyncio.run(manager.login(email, password, remember_me))


class BrokenStorage(MemoryStorage):
    def set_many(self, items):
        raise SessionStoreError("disk full")


# -----------------------------------------------------
# initialize()
# -----------------------------------------------------
def test_new_manager_is_loading(store, storage, clock):
    auth = AuthSessionManager(store, SessionStore(storage), clock=clock)

    assert auth.state == AuthState.unknown
    assert auth.is_loading
    assert not auth.is_authenticated
    assert not auth.has_permission(Permission.customers)


def test_initialize_without_session(manager):
    assert manager.state == AuthState.unauthenticated
    assert manager.user is None


def test_initialize_restores_valid_session(store, storage, clock, manager):
    assert login(manager, "admin@rentalinx.com", "Admin123!").success

    restored = AuthSessionManager(store, SessionStore(storage), clock=clock)
    assert restored.initialize() == AuthState.authenticated
    assert restored.user.email == "admin@rentalinx.com"
    assert restored.has_permission(Permission.users)


def test_initialize_clears_session_expired_one_second_ago(store, storage, clock, manager):
    login(manager, "manager@rentalinx.com", "password123")
    clock.advance(hours=8, seconds=1)

    restored = AuthSessionManager(store, SessionStore(storage), clock=clock)
    assert restored.initialize() == AuthState.unauthenticated
    assert USER_KEY not in storage.snapshot()
    assert EXPIRY_KEY not in storage.snapshot()


def test_initialize_clears_corrupt_session(store, clock):
    storage = MemoryStorage({USER_KEY: "{oops", EXPIRY_KEY: "2030-01-01T00:00:00+00:00"})
    auth = AuthSessionManager(store, SessionStore(storage), clock=clock)

    assert auth.initialize() == AuthState.unauthenticated
    assert storage.snapshot() == {}


# -----------------------------------------------------
# login()
# -----------------------------------------------------
def test_admin_short_session(manager, storage, clock):
    result = login(manager, "admin@rentalinx.com", "Admin123!")

    assert result.success
    assert result.error is None
    assert manager.state == AuthState.authenticated
    assert manager.expires_at == clock.now + timedelta(hours=8)
    assert manager.has_permission(Permission.users)
    assert manager.user.permissions == ["all"]
    assert set(storage.snapshot()) == {USER_KEY, EXPIRY_KEY}


def test_remember_me_session_lasts_thirty_days(manager, clock):
    login(manager, "manager@rentalinx.com", "password123", remember_me=True)
    assert manager.expires_at == clock.now + timedelta(days=30)


def test_email_is_case_insensitive(manager):
    assert login(manager, "  ADMIN@Rentalinx.com ", "Admin123!").success


def test_unknown_email_and_wrong_password_are_indistinguishable(manager):
    unknown = login(manager, "nobody@rentalinx.com", "password123")
    wrong = login(manager, "admin@rentalinx.com", "wrong-password")

    assert unknown.error == wrong.error == MSG_INVALID_CREDENTIALS
    assert unknown.code == wrong.code == AuthErrorCode.invalid_credentials
    assert manager.state == AuthState.unauthenticated


def test_inactive_account_gets_disabled_error(manager, storage):
    result = login(manager, "disabled@rentalinx.com", "password123")

    assert result.code == AuthErrorCode.account_disabled
    assert result.error == MSG_ACCOUNT_DISABLED
    assert storage.snapshot() == {}


def test_validation_errors_happen_before_lookup(manager, store):
    store.fail = True

    assert login(manager, "", "x").error == MSG_CREDENTIALS_REQUIRED
    assert login(manager, "admin@rentalinx.com", "").error == MSG_CREDENTIALS_REQUIRED
    assert login(manager, "not-an-email", "x").error == MSG_INVALID_EMAIL
    assert login(manager, "a b@c.d", "x").code == AuthErrorCode.validation_error


def test_store_failure_is_system_error(manager, store):
    store.fail = True
    result = login(manager, "admin@rentalinx.com", "Admin123!")

    assert result.code == AuthErrorCode.system_error
    assert result.error == MSG_SYSTEM_ERROR
    assert manager.state == AuthState.unauthenticated


def test_session_write_failure_leaves_context_signed_out(store, clock):
    auth = AuthSessionManager(store, SessionStore(BrokenStorage()), clock=clock)
    auth.initialize()

    result = login(auth, "admin@rentalinx.com", "Admin123!")
    assert result.code == AuthErrorCode.system_error
    assert not auth.is_authenticated


def test_last_login_failure_does_not_fail_login(manager, store):
    store.fail_last_login = True
    assert login(manager, "admin@rentalinx.com", "Admin123!").success


def test_login_records_last_login(manager, store, clock):
    login(manager, "admin@rentalinx.com", "Admin123!")
    admin = store.find_by_email("admin@rentalinx.com")

    assert admin.last_login == clock.now
    assert manager.user.last_login == clock.now


def test_legacy_digest_is_upgraded_on_login(manager, store):
    account = store.add(
        "Legacy", "legacy@rentalinx.com", None, Role.manager,
        password_hash=legacy_digest("password123"),
    )

    assert login(manager, "legacy@rentalinx.com", "password123").success
    upgraded = store.find_by_id(account.id).password_hash
    assert upgraded.startswith("pbkdf2_sha256$")
    assert verify_password("password123", upgraded)


def test_concurrent_login_is_rejected(manager):
    async def scenario():
        first = asyncio.ensure_future(manager.login("admin@rentalinx.com", "Admin123!"))
        await asyncio.sleep(0)
        second = await manager.login("manager@rentalinx.com", "password123")
        return await first, second

    first, second = asyncio.run(scenario())

    assert first.success
    assert second.code == AuthErrorCode.login_in_progress
    assert second.error == MSG_LOGIN_IN_PROGRESS
    assert manager.user.email == "admin@rentalinx.com"


# -----------------------------------------------------
# logout() / expiry
# -----------------------------------------------------
def test_logout_twice_is_harmless(manager, storage):
    login(manager, "admin@rentalinx.com", "Admin123!")

    manager.logout()
    manager.logout()

    assert manager.state == AuthState.unauthenticated
    assert manager.user is None
    assert storage.snapshot() == {}


def test_expiry_exactly_now_signs_out(manager, clock, storage):
    login(manager, "admin@rentalinx.com", "Admin123!")
    clock.advance(hours=8)

    assert not manager.is_authenticated
    assert not manager.has_permission(Permission.customers)
    assert manager.expire_if_due()
    assert manager.state == AuthState.unauthenticated
    assert storage.snapshot() == {}


def test_expire_if_due_keeps_live_session(manager, clock):
    login(manager, "admin@rentalinx.com", "Admin123!")
    clock.advance(hours=7, minutes=59)

    assert not manager.expire_if_due()
    assert manager.is_authenticated


# -----------------------------------------------------
# reset_password()
# -----------------------------------------------------
def test_reset_password_never_reveals_accounts(manager):
    assert asyncio.run(manager.reset_password("admin@rentalinx.com")).success
    assert asyncio.run(manager.reset_password("nobody@rentalinx.com")).success


def test_reset_password_validation(manager):
    assert asyncio.run(manager.reset_password("")).error == MSG_EMAIL_REQUIRED
    assert asyncio.run(manager.reset_password("nope")).error == MSG_INVALID_EMAIL


def test_reset_password_store_failure(manager, store):
    store.fail = True
    result = asyncio.run(manager.reset_password("admin@rentalinx.com"))
    assert result.code == AuthErrorCode.system_error
