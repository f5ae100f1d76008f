from fastapi import APIRouter, Depends, Request, Response

from core.auth_session import MSG_SYSTEM_ERROR, AuthSessionManager
from core.errors import SessionStoreError
from core.logging_config import logger
from core.permission_gate import default_screen
from core.rate_limiter import get_rate_limit_identifier, require_rate_limit, reset_rate_limit
from core.utils import normalize_email
from dependencies.auth import SessionContextRegistry, get_auth_manager, get_registry, set_context_cookie
from models.auth import AuthResult, LoginRequest, PasswordResetRequest, SessionInfo
from models.enums import AuthErrorCode, role_display_name


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


# HTTP status for each AuthResult error code
RESULT_STATUS_CODES = {
    AuthErrorCode.validation_error: 400,
    AuthErrorCode.invalid_credentials: 401,
    AuthErrorCode.account_disabled: 403,
    AuthErrorCode.login_in_progress: 409,
    AuthErrorCode.system_error: 500,
}


def _status_for(result: AuthResult) -> int:
    if result.success:
        return 200
    return RESULT_STATUS_CODES.get(result.code, 400)


def _rate_limit(request: Request, scope: str, email: str) -> str:
    identifier = get_rate_limit_identifier(request, user_id=f"{scope}:{normalize_email(email)}")
    require_rate_limit(request, identifier=identifier)
    return identifier


# ============================================================
# LOGIN
# ============================================================
@router.post(
    "/login",
    response_model=AuthResult,
    summary="Sign in this browser context",
    responses={
        400: {"description": "Missing or malformed email/password"},
        401: {"description": "Email or password is incorrect"},
        403: {"description": "Account disabled"},
        409: {"description": "A login is already in progress"},
        429: {"description": "Too many attempts"},
        500: {"description": "System error"},
    },
)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthSessionManager = Depends(get_auth_manager),
    registry: SessionContextRegistry = Depends(get_registry),
):
    """
    Verify credentials and persist a session for this browser context.

    `remember_me` extends the session from 8 hours to 30 days. Unknown emails
    and wrong passwords produce the same error. A successful login moves the
    session to a new context cookie.
    """
    identifier = _rate_limit(request, "login", payload.email) if payload.email else None

    result = await auth.login(payload.email, payload.password, payload.remember_me)
    if result.success:
        if identifier:
            reset_rate_limit(identifier)
        try:
            set_context_cookie(response, registry.rotate(request.state.context_id))
        except SessionStoreError as e:
            logger.error(f"Could not move session to a new context: {e}")
            auth.logout()
            result = AuthResult.failure(AuthErrorCode.system_error, MSG_SYSTEM_ERROR)
    response.status_code = _status_for(result)
    return result


# ============================================================
# LOGOUT
# ============================================================
@router.post("/logout", response_model=AuthResult, summary="Sign out this browser context")
def logout(auth: AuthSessionManager = Depends(get_auth_manager)):
    auth.logout()
    return AuthResult.ok()


# ============================================================
# CURRENT SESSION
# ============================================================
@router.get("/session", response_model=SessionInfo, summary="Current authentication state")
def read_session(auth: AuthSessionManager = Depends(get_auth_manager)):
    user = auth.user if auth.is_authenticated else None
    return SessionInfo(
        state=auth.state,
        is_authenticated=user is not None,
        user=user,
        role_display_name=role_display_name(user.role) if user else None,
        expires_at=auth.expires_at if user else None,
        default_screen=default_screen(auth) if user else None,
    )


# ============================================================
# PASSWORD RESET
# ============================================================
@router.post(
    "/reset-password",
    response_model=AuthResult,
    summary="Request a password reset",
    description="""
    Always succeeds for a well-formed email so the response cannot reveal
    whether an account exists.

    **Rate limited** per email (5 requests per 15 minutes by default).
    """,
)
async def reset_password(
    payload: PasswordResetRequest,
    request: Request,
    response: Response,
    auth: AuthSessionManager = Depends(get_auth_manager),
):
    if payload.email:
        _rate_limit(request, "reset", payload.email)

    client_ip = request.client.host if request.client else "unknown"
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
    logger.info(f"Password reset attempt from ip={client_ip}")

    result = await auth.reset_password(payload.email)
    response.status_code = _status_for(result)
    return result
