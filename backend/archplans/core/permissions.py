"""
权限策略：角色与能力的唯一映射，页面与接口不再各自判断角色
"""
import enum
from typing import FrozenSet, Union

from archplans.models.enums import UserRole


class Capability(str, enum.Enum):
    VIEW_ADMIN_DASHBOARD = "view_admin_dashboard"
    MANAGE_CATALOG = "manage_catalog"
    MODERATE_IMAGES = "moderate_images"
    MANAGE_ORDERS = "manage_orders"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_USERS = "manage_users"


_ADMIN_CAPABILITIES: FrozenSet[Capability] = frozenset({
    Capability.VIEW_ADMIN_DASHBOARD,
    Capability.MANAGE_CATALOG,
    Capability.MODERATE_IMAGES,
    Capability.MANAGE_ORDERS,
    Capability.VIEW_ANALYTICS,
})

ROLE_CAPABILITIES: dict[UserRole, FrozenSet[Capability]] = {
    UserRole.CUSTOMER: frozenset(),
    UserRole.ADMIN: _ADMIN_CAPABILITIES,
    UserRole.SUPER_ADMIN: frozenset(Capability),
}


def _as_role(role: Union[UserRole, str, None]) -> UserRole | None:
    if role is None:
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def has_capability(role: Union[UserRole, str, None], capability: Capability) -> bool:
    """未知角色没有任何能力"""
    r = _as_role(role)
    if r is None:
        return False
    return capability in ROLE_CAPABILITIES.get(r, frozenset())


def is_admin(role: Union[UserRole, str, None]) -> bool:
    """ADMIN 与 SUPER_ADMIN 可进入管理后台"""
    return has_capability(role, Capability.VIEW_ADMIN_DASHBOARD)
