from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken
from .security import SecurityEvent
from .directory import Company, Client, File, CommissionTier
from .invoices import Invoice

__all__ = [
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
    'SecurityEvent',
    'Company', 'Client', 'File', 'CommissionTier',
    'Invoice',
]
