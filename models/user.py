# models/user.py

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

from models.enums import Role


# ===============================================================
# ACCOUNT ROWS (Supabase table: users)
# ===============================================================

class Account(BaseModel):
    """
    Full row from the users table, including the password digest.
    Never returned to API consumers; see AccountRead.
    """
    id: str
    name: str
    email: str
    password_hash: Optional[str] = None
    role: str
    is_active: bool = True
    permissions: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("permissions", mode="before")
    @classmethod
    def _permissions_list(cls, v):
        return v or []


class AccountRead(BaseModel):
    """
    Returned to API consumers (no password digest).
    """
    id: str
    name: str
    email: str
    role: str
    is_active: bool
    permissions: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountRead":
        return cls(**account.model_dump(exclude={"password_hash"}))


class AccountCreate(BaseModel):
    """
    Used when an administrator creates a user.
    Permissions are derived from the role and cannot be supplied.
    """
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = Role.telemarketing_mobil

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class AccountUpdate(BaseModel):
    """
    Partial update (admin only). A blank password leaves the hash untouched.
    """
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v


class AccountStats(BaseModel):
    total: int
    active: int
    telemarketing: int
    admin_and_manager: int
