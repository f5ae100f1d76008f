# -------------------------
# Enums
# -------------------------
from .enums import (
    Role,
    Permission,
    AuthState,
    AuthErrorCode,
    GateStatus,
    AccountStatusFilter,
)

# -------------------------
# User Models (credential store rows)
# -------------------------
from .user import (
    Account,
    AccountRead,
    AccountCreate,
    AccountUpdate,
    AccountStats,
)

# -------------------------
# Auth Models
# -------------------------
from .auth import (
    LoginRequest,
    PasswordResetRequest,
    AuthResult,
    SessionUser,
    SessionInfo,
)

__all__ = [
    # enums
    "Role",
    "Permission",
    "AuthState",
    "AuthErrorCode",
    "GateStatus",
    "AccountStatusFilter",

    # users
    "Account",
    "AccountRead",
    "AccountCreate",
    "AccountUpdate",
    "AccountStats",

    # auth
    "LoginRequest",
    "PasswordResetRequest",
    "AuthResult",
    "SessionUser",
    "SessionInfo",
]
