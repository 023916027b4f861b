# Overview: All permission definitions organized by module.
# Each permission is defined as: (module, action, display_name, description)

from .categories import PermissionModule as M, PermissionAction as A


# -- DIRECTORY --

COMPANY_PERMISSIONS = [
    (M.COMPANIES, A.VIEW_OWN, "View Own Companies", "View companies created by the user"),
    (M.COMPANIES, A.VIEW_ALL, "View All Companies", "View every company in the system"),
    (M.COMPANIES, A.CREATE, "Create Company", "Add new companies"),
    (M.COMPANIES, A.UPDATE, "Update Company", "Edit company details"),
    (M.COMPANIES, A.DELETE, "Delete Company", "Delete companies"),
]

CLIENT_PERMISSIONS = [
    (M.CLIENTS, A.VIEW_OWN, "View Own Clients", "View clients created by the user"),
    (M.CLIENTS, A.VIEW_ALL, "View All Clients", "View every client in the system"),
    (M.CLIENTS, A.CREATE, "Create Client", "Add new clients"),
    (M.CLIENTS, A.UPDATE, "Update Client", "Edit client details"),
    (M.CLIENTS, A.DELETE, "Delete Client", "Delete clients"),
]

FILE_PERMISSIONS = [
    (M.FILES, A.VIEW_OWN, "View Own Files", "View files created by the user"),
    (M.FILES, A.VIEW_ALL, "View All Files", "View every file in the system"),
    (M.FILES, A.CREATE, "Create File", "Add new files"),
    (M.FILES, A.UPDATE, "Update File", "Edit file details"),
    (M.FILES, A.DELETE, "Delete File", "Delete files"),
]


# -- INVOICES --

INVOICE_PERMISSIONS = [
    (M.INVOICES, A.VIEW_OWN, "View Own Invoices", "View invoices assigned to the user"),
    (M.INVOICES, A.VIEW_ALL, "View All Invoices", "View every invoice in the system"),
    (M.INVOICES, A.CREATE, "Create Invoice", "Add new invoices"),
    (M.INVOICES, A.UPDATE, "Update Invoice", "Edit invoices and recompute commission snapshots"),
    (M.INVOICES, A.DELETE, "Delete Invoice", "Delete invoices"),
]


# -- PEOPLE --

DISTRIBUTOR_PERMISSIONS = [
    (M.DISTRIBUTORS, A.VIEW_OWN, "View Own Profile", "View the distributor's own profile"),
    (M.DISTRIBUTORS, A.VIEW_ALL, "View All Distributors", "View every distributor"),
    (M.DISTRIBUTORS, A.CREATE, "Create Distributor", "Add new distributors"),
    (M.DISTRIBUTORS, A.UPDATE, "Update Distributor", "Edit distributors and their permissions"),
    (M.DISTRIBUTORS, A.DELETE, "Delete Distributor", "Delete distributors"),
]


# -- REPORTING --

REPORT_PERMISSIONS = [
    (M.REPORTS, A.VIEW_OWN, "View Own Reports", "Reports restricted to the user's invoices"),
    (M.REPORTS, A.VIEW_ALL, "View All Reports", "Reports across every invoice"),
]


# -- COMMISSIONS --

COMMISSION_TIER_PERMISSIONS = [
    (M.COMMISSION_TIERS, A.VIEW_OWN, "View Own Commission Tiers", "View tiers created by the user"),
    (M.COMMISSION_TIERS, A.VIEW_ALL, "View All Commission Tiers", "View every commission tier"),
    (M.COMMISSION_TIERS, A.CREATE, "Create Commission Tier", "Add new commission tiers"),
    (M.COMMISSION_TIERS, A.UPDATE, "Update Commission Tier", "Edit commission tiers"),
    (M.COMMISSION_TIERS, A.DELETE, "Delete Commission Tier", "Deactivate commission tiers"),
]


# -- ACCESS CONTROL / SYSTEM --

SYSTEM_PERMISSIONS = [
    (M.ROLES, A.VIEW_ALL, "View Roles", "View roles and their permissions"),
    (M.ROLES, A.CREATE, "Create Role", "Create roles"),
    (M.ROLES, A.UPDATE, "Update Role", "Grant or revoke role permissions"),
    (M.ROLES, A.DELETE, "Delete Role", "Delete custom roles"),
    (M.PERMISSIONS, A.VIEW_ALL, "View Permissions", "View the permission catalogue"),
    (M.SYSTEM, A.VIEW_ALL, "View System", "View system status and audit events"),
    (M.SYSTEM, A.UPDATE, "Manage System", "System-wide configuration"),
]


# Combined list of all permissions (preserves ordering)
PERMISSION_DEFINITIONS = (
    COMPANY_PERMISSIONS
    + CLIENT_PERMISSIONS
    + FILE_PERMISSIONS
    + INVOICE_PERMISSIONS
    + DISTRIBUTOR_PERMISSIONS
    + REPORT_PERMISSIONS
    + COMMISSION_TIER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)

# Seeded definitions that cannot be granted to custom roles
SYSTEM_ONLY_MODULES = {M.ROLES, M.PERMISSIONS, M.SYSTEM}
