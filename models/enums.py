from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# ROLE
# -----------------------------------------------------
class Role(BaseStrEnum):
    """Closed set of account roles. Telemarketing roles are scoped to one vehicle category."""

    admin = "admin"
    manager = "manager"
    telemarketing_mobil = "telemarketing-mobil"
    telemarketing_bus = "telemarketing-bus"
    telemarketing_elf = "telemarketing-elf"
    telemarketing_hiace = "telemarketing-hiace"

    @property
    def is_telemarketing(self) -> bool:
        return self.value.startswith("telemarketing-")

    @property
    def display_name(self) -> str:
        return ROLE_DISPLAY_NAMES[self]


ROLE_DISPLAY_NAMES = {
    Role.admin: "Administrator",
    Role.manager: "Manager",
    Role.telemarketing_mobil: "Telemarketing Mobil",
    Role.telemarketing_bus: "Telemarketing Bus",
    Role.telemarketing_elf: "Telemarketing Elf",
    Role.telemarketing_hiace: "Telemarketing Hiace",
}


def parse_role(value):
    """Role for a stored string, or None when the value is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def role_display_name(value) -> str:
    role = parse_role(value)
    return role.display_name if role else str(value)


# -----------------------------------------------------
# PERMISSION (feature areas)
# -----------------------------------------------------
class Permission(BaseStrEnum):
    """Feature areas of the back office. ``all`` is the universal sentinel."""

    all = "all"
    dashboard = "dashboard"
    customers = "customers"
    vehicles = "vehicles"
    reports = "reports"
    maintenance = "maintenance"
    vendors = "vendors"
    kir = "kir"
    tax = "tax"
    pricing = "pricing"
    hpp = "hpp"
    invoices = "invoices"
    users = "users"

    @classmethod
    def feature_areas(cls):
        return [p for p in cls if p is not cls.all]


# -----------------------------------------------------
# AUTH STATE
# -----------------------------------------------------
class AuthState(BaseStrEnum):
    """Lifecycle of one browser context's authentication."""

    unknown = "unknown"
    unauthenticated = "unauthenticated"
    authenticated = "authenticated"


# -----------------------------------------------------
# AUTH ERROR CODES
# -----------------------------------------------------
class AuthErrorCode(BaseStrEnum):
    validation_error = "validation_error"
    invalid_credentials = "invalid_credentials"
    account_disabled = "account_disabled"
    login_in_progress = "login_in_progress"
    system_error = "system_error"


# -----------------------------------------------------
# PERMISSION GATE STATUS
# -----------------------------------------------------
class GateStatus(BaseStrEnum):
    loading = "loading"
    hidden = "hidden"
    allowed = "allowed"
    denied = "denied"


# -----------------------------------------------------
# ACCOUNT STATUS FILTER
# -----------------------------------------------------
class AccountStatusFilter(BaseStrEnum):
    all = "all"
    active = "active"
    inactive = "inactive"
