# Overview: Projection of fine-grained permissions onto the four legacy flags.

from .categories import PermissionModule as M, PermissionAction as A


# flag -> pairs; a flag is set when the actor holds ANY of its pairs
LEGACY_FLAG_RULES = {
    "can_create_companies": {(M.COMPANIES, A.CREATE)},
    "can_create_invoices": {(M.INVOICES, A.CREATE)},
    "can_manage_clients": {(M.CLIENTS, A.CREATE), (M.CLIENTS, A.UPDATE), (M.CLIENTS, A.DELETE)},
    "can_view_reports": {(M.REPORTS, A.VIEW_OWN), (M.REPORTS, A.VIEW_ALL)},
}

LEGACY_FLAGS = tuple(LEGACY_FLAG_RULES)


def compute_legacy_flags(pairs, *, is_admin: bool = False) -> dict[str, bool]:
    """Pure function: (module, action) pairs -> legacy flag dict."""
    if is_admin:
        return {flag: True for flag in LEGACY_FLAGS}
    held = set(pairs)
    return {flag: bool(held & required) for flag, required in LEGACY_FLAG_RULES.items()}
