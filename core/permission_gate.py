# core/permission_gate.py
"""
Screen-level authorization and the navigation menu.

Both read the same source of truth, ``AuthSessionManager.has_permission``,
so a menu entry is visible exactly when its screen would be allowed.
"""

from typing import List, Optional

from pydantic import BaseModel

from core.auth_session import AuthSessionManager
from models.enums import GateStatus, Permission, Role, parse_role, role_display_name


# ============================================================
# Menu
# ============================================================
class MenuEntry(BaseModel):
    id: str
    name: str
    permission: Permission


NAVIGATION: List[MenuEntry] = [
    MenuEntry(id="dashboard", name="Dashboard", permission=Permission.dashboard),
    MenuEntry(id="customers", name="Customers", permission=Permission.customers),
    MenuEntry(id="vehicles", name="Vehicles", permission=Permission.vehicles),
    MenuEntry(id="invoices", name="Invoices", permission=Permission.invoices),
    MenuEntry(id="kir", name="KIR Management", permission=Permission.kir),
    MenuEntry(id="tax", name="Tax Management", permission=Permission.tax),
    MenuEntry(id="maintenance", name="Maintenance", permission=Permission.maintenance),
    MenuEntry(id="vendors", name="Vendors", permission=Permission.vendors),
    MenuEntry(id="pricing", name="Price Tracking", permission=Permission.pricing),
    MenuEntry(id="hpp", name="HPP Calculator", permission=Permission.hpp),
    MenuEntry(id="reports", name="Reports", permission=Permission.reports),
    MenuEntry(id="users", name="User Management", permission=Permission.users),
]

SCREENS = {entry.id: entry for entry in NAVIGATION}


def find_screen(screen_id: str) -> Optional[MenuEntry]:
    return SCREENS.get(screen_id)


def visible_menu(auth: AuthSessionManager) -> List[MenuEntry]:
    """Ordered menu entries the current session may open."""
    return [entry for entry in NAVIGATION if auth.has_permission(entry.permission)]


def default_screen(auth: AuthSessionManager) -> Optional[str]:
    """First screen the session may open (telemarketing lands on customers)."""
    menu = visible_menu(auth)
    return menu[0].id if menu else None


# ============================================================
# Gate
# ============================================================
class GateDecision(BaseModel):
    status: GateStatus
    role: Optional[str] = None
    role_display_name: Optional[str] = None
    message: Optional[str] = None
    hint: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.status == GateStatus.allowed


ACCESS_DENIED_MESSAGE = "You do not have permission to access this page."


def role_hint(role: Optional[str]) -> Optional[str]:
    parsed = parse_role(role)
    if parsed is None:
        return None
    if parsed.is_telemarketing:
        return "You can only access the Customers menu for your vehicle type."
    if parsed == Role.manager:
        return "You can access every menu except User Management."
    return None


def evaluate_gate(auth: AuthSessionManager, required: Optional[Permission] = None) -> GateDecision:
    """
    Decide what a protected screen renders:
        loading: the context has not restored its session yet
        hidden: nobody is signed in (the login screen takes over)
        allowed: render the screen
        denied: render the access-denied view naming the role
    """
    if auth.is_loading:
        return GateDecision(status=GateStatus.loading)

    if not auth.is_authenticated:
        return GateDecision(status=GateStatus.hidden)

    if required is None or auth.has_permission(required):
        return GateDecision(status=GateStatus.allowed, role=auth.user.role)

    role = auth.user.role
    return GateDecision(
        status=GateStatus.denied,
        role=role,
        role_display_name=role_display_name(role),
        message=ACCESS_DENIED_MESSAGE,
        hint=role_hint(role),
    )


# ============================================================
# Rendering
# ============================================================
GATE_STATUS_CODES = {
    GateStatus.allowed: 200,
    GateStatus.loading: 503,
    GateStatus.hidden: 401,
    GateStatus.denied: 403,
}

GATE_VIEWS = {
    GateStatus.allowed: "screen",
    GateStatus.loading: "loading",
    GateStatus.hidden: "login",
    GateStatus.denied: "access_denied",
}


def render_gate(decision: GateDecision, screen: Optional[MenuEntry] = None) -> dict:
    """Body of the view a client shows for a gate decision."""
    body = {"view": GATE_VIEWS[decision.status], "status": decision.status.value}

    if decision.status == GateStatus.loading:
        body["message"] = "Loading..."
    elif decision.status == GateStatus.denied:
        body.update(
            title="Access Denied",
            message=decision.message,
            role=decision.role,
            role_display_name=decision.role_display_name,
            hint=decision.hint,
        )
    elif decision.status == GateStatus.allowed and screen is not None:
        body.update(screen=screen.id, title=screen.name)

    return body
