# tests/test_account_service.py

"""
Tests for account provisioning and maintenance.
"""

import pytest

from core.errors import AccountNotFoundError, DuplicateEmailError, LastAdministratorError
from core.passwords import verify_password
from models.enums import AccountStatusFilter, Role
from models.user import AccountCreate, AccountUpdate
from services.account_service import AccountService


@pytest.fixture
def service(store):
    return AccountService(store)


def admin_id(store):
    return store.find_by_email("admin@rentalinx.com").id


def test_create_derives_permissions_and_hashes(service, store):
    account = service.create_account(AccountCreate(
        name="  Eko Elf ", email="Eko.Elf@Rentalinx.com", password="secret1", role=Role.telemarketing_elf,
    ))

    assert account.name == "Eko Elf"
    assert account.email == "eko.elf@rentalinx.com"
    assert account.permissions == ["customers"]
    assert account.is_active
    assert verify_password("secret1", account.password_hash)
    assert "secret1" not in str(store.rows[account.id])


def test_duplicate_email_on_create_mutates_nothing(service, store):
    before = {k: dict(v) for k, v in store.rows.items()}

    with pytest.raises(DuplicateEmailError) as exc:
        service.create_account(AccountCreate(
            name="Copy", email="ADMIN@rentalinx.com", password="secret1", role=Role.manager,
        ))

    assert "already exists" in str(exc.value)
    assert store.rows == before
    assert store.writes == []


def test_update_role_recomputes_permissions(service, store):
    sari = store.find_by_email("sari.mobil@rentalinx.com")
    updated = service.update_account(sari.id, AccountUpdate(role=Role.manager))

    assert updated.role == "manager"
    assert "users" not in updated.permissions
    assert "vehicles" in updated.permissions
    assert updated.updated_at is not None


def test_update_blank_password_keeps_hash(service, store):
    sari = store.find_by_email("sari.mobil@rentalinx.com")
    updated = service.update_account(sari.id, AccountUpdate(name="Sari M", password="   "))

    assert updated.password_hash == sari.password_hash
    assert updated.name == "Sari M"


def test_update_password_rehashes(service, store):
    sari = store.find_by_email("sari.mobil@rentalinx.com")
    updated = service.update_account(sari.id, AccountUpdate(password="newpass1"))

    assert verify_password("newpass1", updated.password_hash)


def test_update_email_to_taken_address(service, store):
    sari = store.find_by_email("sari.mobil@rentalinx.com")

    with pytest.raises(DuplicateEmailError):
        service.update_account(sari.id, AccountUpdate(email="budi.bus@rentalinx.com"))
    assert store.writes == []


def test_update_missing_account(service):
    with pytest.raises(AccountNotFoundError):
        service.update_account("nope", AccountUpdate(name="x"))


def test_toggle_status(service, store):
    budi = store.find_by_email("budi.bus@rentalinx.com")

    assert service.toggle_status(budi.id).is_active is False
    assert service.toggle_status(budi.id).is_active is True


def test_last_admin_cannot_be_disabled_demoted_or_deleted(service, store):
    account_id = admin_id(store)

    with pytest.raises(LastAdministratorError):
        service.toggle_status(account_id)
    with pytest.raises(LastAdministratorError):
        service.update_account(account_id, AccountUpdate(role=Role.manager))
    with pytest.raises(LastAdministratorError):
        service.delete_account(account_id)

    assert store.find_by_id(account_id).is_active


def test_admin_can_be_removed_when_another_exists(service, store):
    store.add("Second Admin", "admin2@rentalinx.com", "Admin123!", Role.admin)
    service.delete_account(admin_id(store))

    assert store.find_by_email("admin@rentalinx.com") is None


def test_list_filters(service):
    assert {a.email for a in service.list_accounts(role=Role.manager)} == {
        "manager@rentalinx.com", "disabled@rentalinx.com",
    }
    assert [a.email for a in service.list_accounts(
        role=Role.manager, status=AccountStatusFilter.inactive,
    )] == ["disabled@rentalinx.com"]
    assert [a.email for a in service.list_accounts(search="budi")] == ["budi.bus@rentalinx.com"]


def test_stats(service):
    stats = AccountService.stats(service.list_accounts())

    assert stats.total == 5
    assert stats.active == 4
    assert stats.telemarketing == 2
    assert stats.admin_and_manager == 3


def test_ensure_account_is_idempotent(service, store):
    account, created = service.ensure_account("Eko", "eko@rentalinx.com", "password123", Role.telemarketing_elf)
    assert created

    store.rows[account.id]["is_active"] = False
    again, created_again = service.ensure_account("Eko", "eko@rentalinx.com", "password456", Role.telemarketing_hiace)

    assert not created_again
    assert again.id == account.id
    assert again.is_active
    assert again.role == "telemarketing-hiace"
    assert verify_password("password456", again.password_hash)
    assert len([r for r in store.rows.values() if r["email"] == "eko@rentalinx.com"]) == 1
