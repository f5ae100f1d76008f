# services/account_service.py
"""
Account provisioning and maintenance on top of the credential store.

Keeps the account invariants in one place:
  • ``permissions`` is always recomputed from ``role``
  • emails are unique (checked before writing, enforced again by the table)
  • plaintext passwords are hashed here and never logged
  • the last active administrator cannot be disabled, demoted or deleted
"""

from typing import List, Optional, Tuple

from core.errors import AccountNotFoundError, DuplicateEmailError, LastAdministratorError
from core.logging_config import get_logger
from core.passwords import hash_password
from core.permissions import serialize_permissions
from core.utils import normalize_email, utc_now_iso
from models.enums import AccountStatusFilter, Role, parse_role
from models.user import Account, AccountCreate, AccountStats, AccountUpdate


logger = get_logger("accounts")


def _describe_fields(fields: dict) -> List[str]:
    return sorted("password" if k == "password_hash" else k for k in fields)


class AccountService:
    def __init__(self, store):
        self.store = store

    # -----------------------------------------------------
    # Reads
    # -----------------------------------------------------
    def get_account(self, account_id: str) -> Account:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def list_accounts(
        self,
        search: Optional[str] = None,
        role: Optional[Role] = None,
        status: AccountStatusFilter = AccountStatusFilter.all,
    ) -> List[Account]:
        if search and search.strip():
            accounts = self.store.search_accounts(search)
        elif role is not None:
            accounts = self.store.list_by_role(role.value)
        else:
            accounts = self.store.list_accounts()

        if role is not None:
            accounts = [a for a in accounts if a.role == role.value]
        if status == AccountStatusFilter.active:
            accounts = [a for a in accounts if a.is_active]
        elif status == AccountStatusFilter.inactive:
            accounts = [a for a in accounts if not a.is_active]
        return accounts

    @staticmethod
    def stats(accounts: List[Account]) -> AccountStats:
        def _role(a):
            return parse_role(a.role)

        return AccountStats(
            total=len(accounts),
            active=sum(1 for a in accounts if a.is_active),
            telemarketing=sum(1 for a in accounts if _role(a) and _role(a).is_telemarketing),
            admin_and_manager=sum(1 for a in accounts if _role(a) in (Role.admin, Role.manager)),
        )

    # -----------------------------------------------------
    # Create
    # -----------------------------------------------------
    def create_account(self, payload: AccountCreate) -> Account:
        email = normalize_email(payload.email)
        if self.store.find_by_email(email) is not None:
            raise DuplicateEmailError(email)

        account = self.store.insert_account({
            "name": payload.name,
            "email": email,
            "password_hash": hash_password(payload.password),
            "role": payload.role.value,
            "is_active": True,
            "permissions": serialize_permissions(payload.role),
        })
        logger.info(f"Created user {account.email} ({account.role})")
        return account

    # -----------------------------------------------------
    # Update
    # -----------------------------------------------------
    def update_account(self, account_id: str, payload: AccountUpdate) -> Account:
        existing = self.get_account(account_id)
        fields = {}

        if payload.name is not None and payload.name != existing.name:
            fields["name"] = payload.name

        if payload.email is not None:
            email = normalize_email(payload.email)
            if email != normalize_email(existing.email):
                other = self.store.find_by_email(email)
                if other is not None and other.id != existing.id:
                    raise DuplicateEmailError(email)
                fields["email"] = email

        if payload.role is not None:
            fields["role"] = payload.role.value
            fields["permissions"] = serialize_permissions(payload.role)

        if payload.is_active is not None and payload.is_active != existing.is_active:
            fields["is_active"] = payload.is_active

        if payload.password:
            fields["password_hash"] = hash_password(payload.password)

        if not fields:
            return existing

        self._guard_last_admin(
            existing,
            new_role=fields.get("role"),
            new_active=fields.get("is_active"),
        )

        fields["updated_at"] = utc_now_iso()
        updated = self.store.update_account(account_id, fields)
        logger.info(f"Updated user {account_id}: {', '.join(_describe_fields(fields))}")
        return updated

    def toggle_status(self, account_id: str) -> Account:
        account = self.get_account(account_id)
        return self.update_account(account_id, AccountUpdate(is_active=not account.is_active))

    # -----------------------------------------------------
    # Delete
    # -----------------------------------------------------
    def delete_account(self, account_id: str) -> None:
        account = self.get_account(account_id)
        self._guard_last_admin(account, deleting=True)
        self.store.delete_account(account_id)
        logger.info(f"Deleted user {account_id} ({account.email})")

    # -----------------------------------------------------
    # Provisioning (idempotent)
    # -----------------------------------------------------
    def ensure_account(self, name: str, email: str, password: str, role: Role) -> Tuple[Account, bool]:
        """
        Create the account, or reset the password, role and active flag of
        an existing one with the same email. Returns (account, created).
        """
        existing = self.store.find_by_email(email)
        if existing is None:
            account = self.create_account(
                AccountCreate(name=name, email=email, password=password, role=role)
            )
            return account, True

        account = self.store.update_account(existing.id, {
            "password_hash": hash_password(password),
            "role": role.value,
            "permissions": serialize_permissions(role),
            "is_active": True,
            "updated_at": utc_now_iso(),
        })
        logger.info(f"Refreshed existing user {account.email} ({account.role})")
        return account, False

    # -----------------------------------------------------
    # Invariants
    # -----------------------------------------------------
    def _guard_last_admin(
        self,
        account: Account,
        new_role: Optional[str] = None,
        new_active: Optional[bool] = None,
        deleting: bool = False,
    ) -> None:
        if account.role != Role.admin.value or not account.is_active:
            return

        loses_admin = (
            deleting
            or (new_role is not None and new_role != Role.admin.value)
            or new_active is False
        )
        if not loses_admin:
            return

        active_admins = [
            a for a in self.store.list_by_role(Role.admin.value)
            if a.is_active and a.id != account.id
        ]
        if not active_admins:
            raise LastAdministratorError()
