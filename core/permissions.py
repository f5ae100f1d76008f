from typing import FrozenSet, Iterable, List, Union

from models.enums import Permission, Role, parse_role


# ============================================
# CENTRALIZED ROLE → PERMISSIONS MAP
# ============================================
ROLE_PERMISSIONS = {

    # =====================================================
    # ADMINISTRATOR - full access to everything
    # =====================================================
    Role.admin: frozenset({Permission.all}),

    # =====================================================
    # MANAGER - every feature area except user management
    # =====================================================
    Role.manager: frozenset({
        Permission.dashboard,
        Permission.customers,
        Permission.vehicles,
        Permission.reports,
        Permission.maintenance,
        Permission.vendors,
        Permission.kir,
        Permission.tax,
        Permission.pricing,
        Permission.hpp,
        Permission.invoices,
    }),

    # =====================================================
    # TELEMARKETING - customers only (no vendors)
    # =====================================================
    Role.telemarketing_mobil: frozenset({Permission.customers}),
    Role.telemarketing_bus: frozenset({Permission.customers}),
    Role.telemarketing_elf: frozenset({Permission.customers}),
    Role.telemarketing_hiace: frozenset({Permission.customers}),
}


def permissions_for(role: Union[Role, str, None]) -> FrozenSet[Permission]:
    """
    Permission set for a role. Unknown roles get nothing.
    """
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(parsed, frozenset())


def serialize_permissions(role: Union[Role, str, None]) -> List[str]:
    """
    Value written to the ``permissions`` column of an account row.
    Ordered like the Permission enum so rows are stable across writes.
    """
    granted = permissions_for(role)
    return [p.value for p in Permission if p in granted]


def grants(permissions: Iterable[Permission], tag: Union[Permission, str]) -> bool:
    """
    True when ``permissions`` contains the sentinel ``all`` or ``tag``.
    A string that is not a known feature area is only granted through ``all``.
    """
    granted = set(permissions)
    if Permission.all in granted:
        return True

    try:
        tag = Permission(tag)
    except ValueError:
        return False

    return tag in granted
