# routers/users.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.errors import (
    AccountNotFoundError,
    CredentialStoreError,
    DuplicateEmailError,
    LastAdministratorError,
    handle_supabase_error,
)
from dependencies.auth import SessionContextRegistry, get_registry, requires_permission
from models.enums import AccountStatusFilter, Permission, Role
from models.user import AccountCreate, AccountRead, AccountUpdate
from services.account_service import AccountService


router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[Depends(requires_permission(Permission.users))],
)


def get_account_service(registry: SessionContextRegistry = Depends(get_registry)) -> AccountService:
    return AccountService(registry.credential_store)


def _translate(error: Exception, operation: str) -> HTTPException:
    """Map account-service failures onto HTTP errors."""
    if isinstance(error, DuplicateEmailError):
        return HTTPException(409, "Email address already exists")
    if isinstance(error, AccountNotFoundError):
        return HTTPException(404, "User not found")
    if isinstance(error, LastAdministratorError):
        return HTTPException(400, str(error))
    return handle_supabase_error(error, operation)


# -----------------------------------------------------
# LIST USERS
# -----------------------------------------------------
@router.get("", summary="List users with filters and statistics")
def list_users(
    search: Optional[str] = Query(None, description="Matches name or email"),
    role: Optional[Role] = Query(None),
    status: AccountStatusFilter = Query(AccountStatusFilter.all),
    service: AccountService = Depends(get_account_service),
):
    """
    Statistics are computed over every account, not just the filtered page,
    so the summary cards stay stable while the table is filtered.
    """
    try:
        accounts = service.list_accounts(search=search, role=role, status=status)
        everyone = (
            accounts
            if not search and role is None and status == AccountStatusFilter.all
            else service.list_accounts()
        )
    except CredentialStoreError as e:
        raise _translate(e, "Failed to list users")

    return {
        "users": [AccountRead.from_account(a) for a in accounts],
        "stats": AccountService.stats(everyone),
    }


@router.get("/roles", summary="Assignable roles")
def list_roles():
    return [{"value": r.value, "display_name": r.display_name} for r in Role]


# -----------------------------------------------------
# GET USER
# -----------------------------------------------------
@router.get("/{user_id}", response_model=AccountRead, summary="Get a user")
def get_user(user_id: str, service: AccountService = Depends(get_account_service)):
    try:
        return AccountRead.from_account(service.get_account(user_id))
    except CredentialStoreError as e:
        raise _translate(e, "Failed to read user")


# -----------------------------------------------------
# CREATE USER
# -----------------------------------------------------
@router.post("", response_model=AccountRead, status_code=201, summary="Create a user")
def create_user(payload: AccountCreate, service: AccountService = Depends(get_account_service)):
    """
    Permissions are derived from the role. The password is stored as a
    salted digest; it is never returned.
    """
    try:
        return AccountRead.from_account(service.create_account(payload))
    except CredentialStoreError as e:
        raise _translate(e, "Failed to create user")


# -----------------------------------------------------
# UPDATE USER
# -----------------------------------------------------
@router.patch("/{user_id}", response_model=AccountRead, summary="Update a user")
def update_user(
    user_id: str,
    payload: AccountUpdate,
    service: AccountService = Depends(get_account_service),
):
    try:
        return AccountRead.from_account(service.update_account(user_id, payload))
    except (CredentialStoreError, LastAdministratorError) as e:
        raise _translate(e, "Failed to update user")


@router.post("/{user_id}/toggle-status", response_model=AccountRead, summary="Enable or disable a user")
def toggle_user_status(user_id: str, service: AccountService = Depends(get_account_service)):
    try:
        return AccountRead.from_account(service.toggle_status(user_id))
    except (CredentialStoreError, LastAdministratorError) as e:
        raise _translate(e, "Failed to update user status")


# -----------------------------------------------------
# DELETE USER
# -----------------------------------------------------
@router.delete("/{user_id}", summary="Delete a user")
def delete_user(user_id: str, service: AccountService = Depends(get_account_service)):
    try:
        service.delete_account(user_id)
    except (CredentialStoreError, LastAdministratorError) as e:
        raise _translate(e, "Failed to delete user")

    return {"success": True, "deleted_id": user_id}
