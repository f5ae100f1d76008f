# routers/navigation.py

from fastapi import APIRouter, Depends

from core.auth_session import AuthSessionManager
from core.permission_gate import visible_menu
from dependencies.auth import get_auth_manager, get_session_user
from models.auth import SessionUser
from models.enums import role_display_name

router = APIRouter(
    prefix="/navigation",
    tags=["Navigation"],
)


# -----------------------------------------------------
# GET /navigation
# Menu entries for the signed-in role
# -----------------------------------------------------
@router.get("", summary="Visible menu for the current session")
def read_navigation(
    auth: AuthSessionManager = Depends(get_auth_manager),
    user: SessionUser = Depends(get_session_user),
):
    """
    Ordered menu entries the current session may open. An entry is listed
    exactly when `/screens/{id}` would allow it.
    """
    menu = visible_menu(auth)
    return {
        "role": user.role,
        "role_display_name": role_display_name(user.role),
        "user": {"name": user.name, "email": user.email},
        "items": [entry.model_dump() for entry in menu],
    }
