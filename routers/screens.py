# routers/screens.py

from fastapi import APIRouter, Depends, HTTPException, Response

from core.auth_session import AuthSessionManager
from core.permission_gate import GATE_STATUS_CODES, evaluate_gate, find_screen, render_gate
from dependencies.auth import get_auth_manager

router = APIRouter(
    prefix="/screens",
    tags=["Screens"],
)


# -----------------------------------------------------
# GET /screens/{screen_id}
# What the client renders for a protected screen
# -----------------------------------------------------
@router.get("/{screen_id}", summary="Permission gate for a screen")
def open_screen(
    screen_id: str,
    response: Response,
    auth: AuthSessionManager = Depends(get_auth_manager),
):
    """
    Evaluates the permission gate for one screen.

    - `screen` (200): the screen may be rendered
    - `access_denied` (403): signed in, but the role may not open it
    - `login` (401): nobody is signed in
    - `loading` (503): the session has not been restored yet
    """
    screen = find_screen(screen_id)
    if screen is None:
        raise HTTPException(404, f"Unknown screen: {screen_id}")

    decision = evaluate_gate(auth, screen.permission)
    response.status_code = GATE_STATUS_CODES[decision.status]
    return render_gate(decision, screen)
