# core/auth_session.py
"""
Authentication state for one browser context.

    unknown ──initialize()──▶ unauthenticated ◀──logout()/expiry──┐
                                   │                               │
                                   └──────────login()─────▶ authenticated

The manager is created once per context and handed to whatever needs it
(routers receive it through ``dependencies.auth.get_auth_manager``).
"""

from datetime import datetime, timedelta
from typing import Callable, FrozenSet, Optional, Union

from fastapi.concurrency import run_in_threadpool

from core.config import settings
from core.errors import CredentialStoreError, SessionStoreError
from core.logging_config import get_logger
from core.passwords import hash_password, needs_rehash, verify_password
from core.permissions import grants, permissions_for, serialize_permissions
from core.session_store import SessionStore, is_expired, utc_now
from core.utils import is_valid_email
from models.auth import AuthResult, SessionUser
from models.enums import AuthErrorCode, AuthState, Permission
from models.user import Account


logger = get_logger("auth")


# -----------------------------------------------------
# User-facing messages
# -----------------------------------------------------
MSG_CREDENTIALS_REQUIRED = "Email and password are required"
MSG_EMAIL_REQUIRED = "Email is required"
MSG_INVALID_EMAIL = "Invalid email format"
MSG_INVALID_CREDENTIALS = "Email or password is incorrect"
MSG_ACCOUNT_DISABLED = "Your account has been disabled. Contact an administrator."
MSG_LOGIN_IN_PROGRESS = "A login is already in progress"
MSG_SYSTEM_ERROR = "A system error occurred. Please try again."


class AuthSessionManager:
    def __init__(
        self,
        credential_store,
        session_store: SessionStore,
        *,
        short_session: Optional[timedelta] = None,
        remember_session: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._credentials = credential_store
        self._sessions = session_store
        self._short_session = short_session or timedelta(hours=settings.SESSION_SHORT_HOURS)
        self._remember_session = remember_session or timedelta(days=settings.SESSION_REMEMBER_DAYS)
        self._clock = clock

        self._state = AuthState.unknown
        self._user: Optional[SessionUser] = None
        self._expires_at: Optional[datetime] = None
        self._login_in_flight = False

    # -----------------------------------------------------
    # Read-only state
    # -----------------------------------------------------
    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> Optional[SessionUser]:
        return self._user

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    @property
    def is_loading(self) -> bool:
        return self._state == AuthState.unknown

    @property
    def is_authenticated(self) -> bool:
        return self._state == AuthState.authenticated and not self._session_expired()

    @property
    def permissions(self) -> FrozenSet[Permission]:
        if not self.is_authenticated:
            return frozenset()
        # Derived from the role so a stale or edited snapshot cannot widen access.
        return permissions_for(self._user.role)

    # -----------------------------------------------------
    # Startup
    # -----------------------------------------------------
    def initialize(self) -> AuthState:
        """
        Restore the persisted session. Never raises: unreadable or corrupt
        storage is cleared and treated as no session.
        """
        try:
            record = self._sessions.load()
        except SessionStoreError as e:
            logger.warning(f"Discarding unreadable session: {e}")
            self._clear_storage_quietly()
            record = None

        if record is None:
            self._become_unauthenticated()
            return self._state

        user, expires_at = record
        if is_expired(expires_at, self._clock()):
            logger.info(f"Session for {user.email} expired at {expires_at.isoformat()}, clearing")
            self._clear_storage_quietly()
            self._become_unauthenticated()
            return self._state

        self._user = user
        self._expires_at = expires_at
        self._state = AuthState.authenticated
        logger.info(f"Restored session: {user.email} ({user.role})")
        return self._state

    # -----------------------------------------------------
    # Login
    # -----------------------------------------------------
    async def login(self, email: str, password: str, remember_me: bool = False) -> AuthResult:
        if self._login_in_flight:
            return AuthResult.failure(AuthErrorCode.login_in_progress, MSG_LOGIN_IN_PROGRESS)

        if not email or not email.strip() or not password:
            return AuthResult.failure(AuthErrorCode.validation_error, MSG_CREDENTIALS_REQUIRED)

        email = email.strip()
        if not is_valid_email(email):
            return AuthResult.failure(AuthErrorCode.validation_error, MSG_INVALID_EMAIL)

        self._login_in_flight = True
        try:
            return await self._login(email, password, remember_me)
        except (CredentialStoreError, SessionStoreError) as e:
            logger.error(f"Login failed with system error: {type(e).__name__}: {e}")
            return AuthResult.failure(AuthErrorCode.system_error, MSG_SYSTEM_ERROR)
        finally:
            self._login_in_flight = False

    async def _login(self, email: str, password: str, remember_me: bool) -> AuthResult:
        account = await run_in_threadpool(self._credentials.find_by_email, email)

        if account is None:
            logger.info(f"Login rejected for {email}: unknown account")
            return AuthResult.failure(AuthErrorCode.invalid_credentials, MSG_INVALID_CREDENTIALS)

        if not account.is_active:
            logger.info(f"Login rejected for {email}: account disabled")
            return AuthResult.failure(AuthErrorCode.account_disabled, MSG_ACCOUNT_DISABLED)

        if not verify_password(password, account.password_hash):
            logger.warning(f"Login rejected for {email}: password mismatch")
            return AuthResult.failure(AuthErrorCode.invalid_credentials, MSG_INVALID_CREDENTIALS)

        now = self._clock()
        duration = self._remember_session if remember_me else self._short_session
        expires_at = now + duration

        # Permissions always come from the role, never from the stored row.
        user = SessionUser.from_account(
            account,
            permissions=serialize_permissions(account.role),
            last_login=now,
        )

        # Persist first: an authenticated state must always be recoverable.
        self._sessions.save(user, expires_at)

        self._user = user
        self._expires_at = expires_at
        self._state = AuthState.authenticated
        logger.info(
            f"Login successful: {user.email} ({user.role}), "
            f"session until {expires_at.isoformat()}"
        )

        await run_in_threadpool(self._after_login, account, password, now)
        return AuthResult.ok()

    def _after_login(self, account: Account, password: str, now: datetime) -> None:
        """Best-effort bookkeeping; failures never fail the login."""
        try:
            self._credentials.update_last_login(account.id, now)
        except CredentialStoreError as e:
            logger.warning(f"Could not record last login for {account.id}: {e}")

        if needs_rehash(account.password_hash):
            try:
                self._credentials.update_account(
                    account.id, {"password_hash": hash_password(password)}
                )
                logger.info(f"Upgraded password hash for {account.id}")
            except CredentialStoreError as e:
                logger.warning(f"Could not upgrade password hash for {account.id}: {e}")

    # -----------------------------------------------------
    # Logout / expiry
    # -----------------------------------------------------
    def logout(self) -> None:
        """Idempotent. Storage failures are logged; the context still signs out."""
        if self._user is not None:
            logger.info(f"Logging out {self._user.email}")
        self._clear_storage_quietly()
        self._become_unauthenticated()

    def expire_if_due(self) -> bool:
        """
        Drop an authenticated session whose expiry has passed.
        Returns True when a session was dropped.
        """
        if self._state != AuthState.authenticated or not self._session_expired():
            return False

        logger.info(f"Session for {self._user.email} expired, signing out")
        self._clear_storage_quietly()
        self._become_unauthenticated()
        return True

    def refresh(self) -> AuthState:
        """
        Re-read this context's storage so logins and logouts written by
        another worker process are picked up. Expired records are left for
        expire_if_due().
        """
        if self._state == AuthState.unknown or self._login_in_flight:
            return self._state

        try:
            record = self._sessions.load()
        except SessionStoreError as e:
            logger.warning(f"Discarding unreadable session: {e}")
            self._clear_storage_quietly()
            self._become_unauthenticated()
            return self._state

        if record is None:
            self._become_unauthenticated()
        else:
            self._user, self._expires_at = record
            self._state = AuthState.authenticated
        return self._state

    def adopt(self, other: "AuthSessionManager") -> bool:
        """
        Take over another context's live session. The session is persisted
        here before it is exposed; the other context is signed out.
        Returns False when there was nothing to take over.
        """
        if not other.is_authenticated:
            return False

        self._sessions.save(other.user, other.expires_at)
        self._user = other.user
        self._expires_at = other.expires_at
        self._state = AuthState.authenticated

        other._clear_storage_quietly()
        other._become_unauthenticated()
        return True

    # -----------------------------------------------------
    # Authorization
    # -----------------------------------------------------
    def has_permission(self, tag: Union[Permission, str]) -> bool:
        if not self.is_authenticated:
            return False
        return grants(self.permissions, tag)

    # -----------------------------------------------------
    # Password reset
    # -----------------------------------------------------
    async def reset_password(self, email: str) -> AuthResult:
        """
        Always succeeds for a well-formed email, whether or not an account
        exists, so the response cannot be used to enumerate accounts.
        """
        if not email or not email.strip():
            return AuthResult.failure(AuthErrorCode.validation_error, MSG_EMAIL_REQUIRED)

        email = email.strip()
        if not is_valid_email(email):
            return AuthResult.failure(AuthErrorCode.validation_error, MSG_INVALID_EMAIL)

        try:
            account = await run_in_threadpool(self._credentials.find_by_email, email)
        except CredentialStoreError as e:
            logger.error(f"Password reset lookup failed: {e}")
            return AuthResult.failure(AuthErrorCode.system_error, MSG_SYSTEM_ERROR)

        if account is not None and account.is_active:
            logger.info(f"Password reset requested for account {account.id}")
        else:
            logger.info(f"Password reset requested for {email}: no active account")

        return AuthResult.ok()

    # -----------------------------------------------------
    # Internals
    # -----------------------------------------------------
    def _session_expired(self) -> bool:
        return self._expires_at is None or is_expired(self._expires_at, self._clock())

    def _become_unauthenticated(self) -> None:
        self._user = None
        self._expires_at = None
        self._state = AuthState.unauthenticated

    def _clear_storage_quietly(self) -> None:
        try:
            self._sessions.clear()
        except SessionStoreError as e:
            logger.error(f"Could not clear persisted session: {e}")
