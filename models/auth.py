from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from models.enums import AuthErrorCode, AuthState
from models.user import Account


# -----------------------------------------------------
# LOGIN REQUEST
# -----------------------------------------------------
class LoginRequest(BaseModel):
    # Plain str: shape is checked by the session manager so the
    # client sees the same messages the login form shows.
    email: str = ""
    password: str = ""
    remember_me: bool = False


class PasswordResetRequest(BaseModel):
    email: str = ""


# -----------------------------------------------------
# AUTH RESULT ({success, error?})
# -----------------------------------------------------
class AuthResult(BaseModel):
    success: bool
    error: Optional[str] = None
    code: Optional[AuthErrorCode] = None

    @classmethod
    def ok(cls) -> "AuthResult":
        return cls(success=True)

    @classmethod
    def failure(cls, code: AuthErrorCode, message: str) -> "AuthResult":
        return cls(success=False, error=message, code=code)


# -----------------------------------------------------
# SESSION SNAPSHOT (persisted per browser context)
# -----------------------------------------------------
class SessionUser(BaseModel):
    id: str
    name: str
    email: str
    role: str
    is_active: bool = True
    permissions: List[str] = []
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: Account, permissions: List[str], last_login: datetime) -> "SessionUser":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            role=account.role,
            is_active=account.is_active,
            permissions=permissions,
            created_at=account.created_at,
            last_login=last_login,
        )


class SessionInfo(BaseModel):
    """Response body of GET /auth/session."""
    state: AuthState
    is_authenticated: bool
    user: Optional[SessionUser] = None
    role_display_name: Optional[str] = None
    expires_at: Optional[datetime] = None
    default_screen: Optional[str] = None
