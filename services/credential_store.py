# services/credential_store.py

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from core.config import settings
from core.errors import (
    AccountNotFoundError,
    CredentialStoreError,
    DuplicateEmailError,
    extract_supabase_error,
    is_unique_violation,
)
from core.logging_config import get_logger
from core.supabase_client import get_supabase_client
from core.utils import escape_like, normalize_email
from models.user import Account


logger = get_logger("credentials")


# ============================================================
# Supabase-backed credential store (table: users)
# ============================================================
class SupabaseCredentialStore:
    """
    Boundary to the hosted users table.

    Every Supabase failure surfaces as CredentialStoreError; a unique
    violation on write surfaces as DuplicateEmailError.
    """

    def __init__(self, client=None, table: Optional[str] = None):
        self._client = client
        self.table_name = table or settings.SUPABASE_USERS_TABLE

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase_client()
            if self._client is None:
                raise CredentialStoreError("Supabase client not configured")
        return self._client

    @staticmethod
    def _account(row: Dict[str, Any]) -> Account:
        try:
            return Account.model_validate(row)
        except ValidationError as e:
            logger.error(f"Malformed users row {row.get('id')}: {e.error_count()} invalid field(s)")
            raise CredentialStoreError(f"Malformed users row {row.get('id')}") from e

    def _table(self):
        return self.client.table(self.table_name)

    def _rows(self, query, operation: str) -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except Exception as e:
            logger.error(f"{operation}: {extract_supabase_error(e)}")
            raise CredentialStoreError(f"{operation}: {extract_supabase_error(e)}") from e
        return (res.data if res is not None else None) or []

    def _write(self, query, operation: str, email: str = "") -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except Exception as e:
            if is_unique_violation(e):
                raise DuplicateEmailError(email) from e
            logger.error(f"{operation}: {extract_supabase_error(e)}")
            raise CredentialStoreError(f"{operation}: {extract_supabase_error(e)}") from e
        return (res.data if res is not None else None) or []

    # -----------------------------------------------------
    # Reads
    # -----------------------------------------------------
    def find_by_email(self, email: str) -> Optional[Account]:
        """Case-insensitive exact match on email."""
        normalized = normalize_email(email)
        if not normalized:
            return None

        rows = self._rows(
            self._table().select("*").ilike("email", escape_like(normalized)).limit(5),
            "Failed to look up user by email",
        )
        for row in rows:
            if normalize_email(row.get("email", "")) == normalized:
                return self._account(row)
        return None

    def find_by_id(self, account_id: str) -> Optional[Account]:
        rows = self._rows(
            self._table().select("*").eq("id", account_id).limit(1),
            "Failed to fetch user",
        )
        return self._account(rows[0]) if rows else None

    def list_accounts(self) -> List[Account]:
        rows = self._rows(
            self._table().select("*").order("created_at", desc=True),
            "Failed to fetch users",
        )
        return [self._account(r) for r in rows]

    def search_accounts(self, query: str) -> List[Account]:
        """Partial, case-insensitive match on name or email."""
        # Commas and parentheses are PostgREST filter syntax
        term = escape_like(re.sub(r"[,()]", " ", query).strip())
        rows = self._rows(
            self._table()
            .select("*")
            .or_(f"name.ilike.%{term}%,email.ilike.%{term}%")
            .order("created_at", desc=True),
            "Failed to search users",
        )
        return [self._account(r) for r in rows]

    def list_by_role(self, role: str) -> List[Account]:
        rows = self._rows(
            self._table().select("*").eq("role", str(role)).order("created_at", desc=True),
            "Failed to fetch users by role",
        )
        return [self._account(r) for r in rows]

    # -----------------------------------------------------
    # Writes
    # -----------------------------------------------------
    def insert_account(self, fields: Dict[str, Any]) -> Account:
        email = fields.get("email", "")
        rows = self._write(self._table().insert(fields), "Failed to create user", email)
        if not rows:
            raise CredentialStoreError("Failed to create user: no row returned")
        return self._account(rows[0])

    def update_account(self, account_id: str, fields: Dict[str, Any]) -> Account:
        email = fields.get("email", "")
        rows = self._write(
            self._table().update(fields).eq("id", account_id),
            "Failed to update user",
            email,
        )
        if not rows:
            raise AccountNotFoundError(account_id)
        return self._account(rows[0])

    def update_last_login(self, account_id: str, timestamp: datetime) -> None:
        self._write(
            self._table().update({"last_login": timestamp.isoformat()}).eq("id", account_id),
            "Failed to record last login",
        )

    def delete_account(self, account_id: str) -> None:
        rows = self._write(self._table().delete().eq("id", account_id), "Failed to delete user")
        if not rows:
            raise AccountNotFoundError(account_id)
