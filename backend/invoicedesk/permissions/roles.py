# Overview: Seeded system roles and their default permission sets.

from .categories import PermissionModule as M, PermissionAction as A
from .definitions import PERMISSION_DEFINITIONS


ROLE_ADMIN = "admin"
ROLE_BASIC_DISTRIBUTOR = "basic_distributor"

# (name, display_name, description)
SYSTEM_ROLES = [
    (ROLE_ADMIN, "System Administrator", "Full access to the system"),
    (ROLE_BASIC_DISTRIBUTOR, "Basic Distributor", "Baseline permissions for a distributor"),
]

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: [(module, action) for module, action, _, _ in PERMISSION_DEFINITIONS],
    ROLE_BASIC_DISTRIBUTOR: [
        (M.COMPANIES, A.VIEW_OWN), (M.COMPANIES, A.VIEW_ALL),
        (M.CLIENTS, A.VIEW_OWN), (M.CLIENTS, A.VIEW_ALL),
        (M.CLIENTS, A.CREATE), (M.CLIENTS, A.UPDATE), (M.CLIENTS, A.DELETE),
        (M.FILES, A.VIEW_OWN), (M.FILES, A.VIEW_ALL),
        (M.FILES, A.CREATE), (M.FILES, A.UPDATE), (M.FILES, A.DELETE),
        (M.INVOICES, A.VIEW_OWN), (M.INVOICES, A.VIEW_ALL),
        (M.INVOICES, A.CREATE), (M.INVOICES, A.UPDATE), (M.INVOICES, A.DELETE),
        (M.DISTRIBUTORS, A.VIEW_OWN),
        (M.REPORTS, A.VIEW_OWN),
    ],
}
