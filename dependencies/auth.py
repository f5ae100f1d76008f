import re
import secrets
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Optional

from fastapi import Depends, Request, Response, HTTPException, status

from core.auth_session import AuthSessionManager
from core.config import settings
from core.logging_config import get_logger
from core.permission_gate import GateDecision, evaluate_gate
from core.session_store import JsonFileStorage, MemoryStorage, SessionStore, utc_now
from models.auth import SessionUser
from models.enums import Permission


logger = get_logger("contexts")

CONTEXT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


# ============================================================
# Storage factories (one namespace per browser context)
# ============================================================
def file_storage_factory(base_dir) -> Callable[[str], JsonFileStorage]:
    base = Path(base_dir)

    def factory(context_id: str) -> JsonFileStorage:
        return JsonFileStorage(base / f"{context_id}.json")

    return factory


def memory_storage_factory() -> Callable[[str], MemoryStorage]:
    """Storages survive manager eviction for the lifetime of the process."""
    storages = {}

    def factory(context_id: str) -> MemoryStorage:
        return storages.setdefault(context_id, MemoryStorage())

    return factory


# ============================================================
# Browser-context registry
# ============================================================
class SessionContextRegistry:
    """
    Owns one AuthSessionManager per browser context. A manager is built and
    initialized the first time its context is seen; evicted managers are
    rebuilt from durable storage on the next request.
    """

    def __init__(
        self,
        credential_store,
        storage_factory: Callable[[str], object],
        *,
        clock=utc_now,
        max_contexts: int = 1024,
    ):
        self.credential_store = credential_store
        self.storage_factory = storage_factory
        self.clock = clock
        self.max_contexts = max_contexts
        self._managers: "OrderedDict[str, AuthSessionManager]" = OrderedDict()

    @staticmethod
    def new_context_id() -> str:
        return secrets.token_urlsafe(24)

    def get(self, context_id: str) -> AuthSessionManager:
        manager = self._managers.get(context_id)
        if manager is not None:
            self._managers.move_to_end(context_id)
            # Storage is shared between worker processes; re-read it
            manager.refresh()
            return manager

        manager = self._build(context_id)
        manager.initialize()
        self._remember(context_id, manager)
        return manager

    def rotate(self, context_id: str) -> str:
        """
        Move the context's session to a freshly minted context id and sign
        the old id out. Called after a successful login so an id chosen
        before authentication never carries the session.
        """
        old = self.get(context_id)
        new_id = self.new_context_id()

        manager = self._build(new_id)
        if not manager.adopt(old):
            manager.initialize()
        self._managers.pop(context_id, None)
        self._remember(new_id, manager)

        logger.info("Rotated browser context after login")
        return new_id

    def _build(self, context_id: str) -> AuthSessionManager:
        return AuthSessionManager(
            self.credential_store,
            SessionStore(self.storage_factory(context_id)),
            clock=self.clock,
        )

    def _remember(self, context_id: str, manager: AuthSessionManager) -> None:
        self._managers[context_id] = manager
        while len(self._managers) > self.max_contexts:
            self._managers.popitem(last=False)

    def __len__(self):
        return len(self._managers)


# ============================================================
# Dependencies
# ============================================================
def get_registry(request: Request) -> SessionContextRegistry:
    registry: Optional[SessionContextRegistry] = getattr(request.app.state, "auth_registry", None)
    if registry is None:
        raise HTTPException(500, "Session registry not configured")
    return registry


def set_context_cookie(response: Response, context_id: str) -> None:
    """Set the browser-context cookie, replacing one set earlier in this response."""
    prefix = f"{settings.SESSION_COOKIE_NAME}=".encode("latin-1")
    response.raw_headers[:] = [
        (name, value) for name, value in response.raw_headers
        if not (name == b"set-cookie" and value.startswith(prefix))
    ]
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        context_id,
        max_age=settings.SESSION_REMEMBER_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.ENV == "production",
    )


def get_auth_manager(
    request: Request,
    response: Response,
    registry: SessionContextRegistry = Depends(get_registry),
) -> AuthSessionManager:
    """
    Resolve the caller's browser context from its cookie (minting one when
    missing or malformed) and drop the context's session if it expired.
    """
    context_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not context_id or not CONTEXT_ID_PATTERN.match(context_id):
        context_id = registry.new_context_id()

    request.state.context_id = context_id
    set_context_cookie(response, context_id)

    manager = registry.get(context_id)
    manager.expire_if_due()
    return manager


def get_session_user(auth: AuthSessionManager = Depends(get_auth_manager)) -> SessionUser:
    if not auth.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return auth.user


# ============================================================
# PERMISSION GATE (route boundary)
# ============================================================
class GateBlocked(Exception):
    """Raised by requires_permission; rendered by the app as a gate view."""

    def __init__(self, decision: GateDecision):
        self.decision = decision
        super().__init__(decision.status.value)


def requires_permission(permission: Optional[Permission] = None):
    """
    Usage:
        @router.get("/", dependencies=[Depends(requires_permission(Permission.users))])
    """

    def dependency(auth: AuthSessionManager = Depends(get_auth_manager)) -> AuthSessionManager:
        decision = evaluate_gate(auth, permission)
        if not decision.allowed:
            if decision.role:
                logger.info(f"Access denied: role {decision.role} lacks '{permission}'")
            raise GateBlocked(decision)
        return auth

    return dependency
