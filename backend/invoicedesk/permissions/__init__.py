# Overview: Permission system package.
# Re-exports the permission vocabulary, seeded roles and the legacy projection.

from .categories import PermissionModule, PermissionAction, MODULES, ACTIONS
from .definitions import PERMISSION_DEFINITIONS, SYSTEM_ONLY_MODULES
from .roles import (
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLES,
    ROLE_ADMIN,
    ROLE_BASIC_DISTRIBUTOR,
)
from .legacy import LEGACY_FLAG_RULES, LEGACY_FLAGS, compute_legacy_flags
from .helpers import (
    permission_name,
    get_all_permission_pairs,
    validate_module_action,
)

__all__ = [
    "PermissionModule",
    "PermissionAction",
    "MODULES",
    "ACTIONS",
    "PERMISSION_DEFINITIONS",
    "SYSTEM_ONLY_MODULES",
    "DEFAULT_ROLE_PERMISSIONS",
    "SYSTEM_ROLES",
    "ROLE_ADMIN",
    "ROLE_BASIC_DISTRIBUTOR",
    "LEGACY_FLAG_RULES",
    "LEGACY_FLAGS",
    "compute_legacy_flags",
    "permission_name",
    "get_all_permission_pairs",
    "validate_module_action",
]
