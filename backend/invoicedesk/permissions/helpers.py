# Overview: Utility functions for permission lookups and validation.

from .categories import MODULES, ACTIONS
from .definitions import PERMISSION_DEFINITIONS


def permission_name(module, action):
    """Canonical permission name, e.g. "invoices.create"."""
    return f"{module}.{action}"


def get_all_permission_pairs():
    """Get list of all (module, action) pairs."""
    return [(perm[0], perm[1]) for perm in PERMISSION_DEFINITIONS]


def validate_module_action(module, action):
    """Check that module and action are known vocabulary."""
    return module in MODULES and action in ACTIONS
