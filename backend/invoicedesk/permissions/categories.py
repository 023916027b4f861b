# Overview: Permission module and action constants.


class PermissionModule:
    """Modules a permission can apply to."""
    COMPANIES = "companies"
    CLIENTS = "clients"
    FILES = "files"
    INVOICES = "invoices"
    DISTRIBUTORS = "distributors"
    REPORTS = "reports"
    COMMISSION_TIERS = "commission-tiers"
    ROLES = "roles"
    PERMISSIONS = "permissions"
    SYSTEM = "system"


class PermissionAction:
    """Actions within a module."""
    VIEW_OWN = "view_own"
    VIEW_ALL = "view_all"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


MODULES = (
    PermissionModule.COMPANIES,
    PermissionModule.CLIENTS,
    PermissionModule.FILES,
    PermissionModule.INVOICES,
    PermissionModule.DISTRIBUTORS,
    PermissionModule.REPORTS,
    PermissionModule.COMMISSION_TIERS,
    PermissionModule.ROLES,
    PermissionModule.PERMISSIONS,
    PermissionModule.SYSTEM,
)

ACTIONS = (
    PermissionAction.VIEW_OWN,
    PermissionAction.VIEW_ALL,
    PermissionAction.CREATE,
    PermissionAction.UPDATE,
    PermissionAction.DELETE,
)
