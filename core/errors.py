# core/errors.py

from fastapi import HTTPException


# ============================================================
# Domain exceptions
# ============================================================
class CredentialStoreError(Exception):
    """The hosted users table could not be read or written."""


class DuplicateEmailError(CredentialStoreError):
    """An insert or update would give two accounts the same email."""

    def __init__(self, email: str = ""):
        self.email = email
        super().__init__("Email address already exists")


class AccountNotFoundError(CredentialStoreError):
    def __init__(self, account_id: str = ""):
        self.account_id = account_id
        super().__init__("User not found")


class LastAdministratorError(Exception):
    """The change would leave no active administrator."""

    def __init__(self, message: str = "Cannot remove the last active administrator."):
        super().__init__(message)


class SessionStoreError(Exception):
    """Persisted session storage is unreadable, corrupt, or not writable."""


# ============================================================
# Supabase error inspection
# ============================================================
UNIQUE_VIOLATION_CODE = "23505"


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • Generic Python exceptions
    """

    # Case 1 - PostgREST APIError carries .message
    if hasattr(error, "message"):
        try:
            return str(error.message)
        except Exception:
            pass

    # Case 2 - errors with args (common)
    if hasattr(error, "args") and error.args:
        try:
            return str(error.args[0])
        except Exception:
            pass

    # Case 3 - Plain string fallback
    try:
        return str(error)
    except Exception:
        return "Unknown Supabase error"


def is_unique_violation(error: Exception) -> bool:
    """True when Postgres rejected a write on a unique constraint."""
    code = getattr(error, "code", None)
    if code == UNIQUE_VIOLATION_CODE:
        return True

    detail = extract_supabase_error(error).lower()
    return "duplicate key" in detail or "unique constraint" in detail


def handle_supabase_error(error: Exception, operation: str = "Database operation", status_code: int = 500) -> HTTPException:
    """
    Handle Supabase / store errors with consistent formatting.
    Returns HTTPException (doesn't raise) so caller can customize or re-raise.

    Args:
        error: The exception that occurred
        operation: Description of what operation failed (e.g., "Failed to create user")
        status_code: HTTP status code (default 500)

    Returns:
        HTTPException with standardized error message
    """
    from core.logging_config import logger

    if isinstance(error, DuplicateEmailError):
        return HTTPException(status_code=409, detail="Email address already exists")
    if isinstance(error, AccountNotFoundError):
        return HTTPException(status_code=404, detail="User not found")

    error_detail = extract_supabase_error(error)
    logger.error(f"{operation}: {error_detail}")

    # Provide user-friendly messages for common errors
    error_lower = error_detail.lower()
    if "duplicate" in error_lower or "unique" in error_lower:
        return HTTPException(status_code=409, detail=f"{operation}: Record already exists")
    elif "foreign key" in error_lower or "violates foreign key" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Invalid reference")
    elif "not found" in error_lower or "does not exist" in error_lower:
        return HTTPException(status_code=404, detail=f"{operation}: Resource not found")
    else:
        return HTTPException(status_code=status_code, detail=f"{operation} failed")
