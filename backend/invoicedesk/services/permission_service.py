# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Resolution and Security Event Logging

WHY: Every request is gated by a (module, action) decision, and every
payment-stage change is gated by it too.

DESIGN PRINCIPLES:
- Admin bypass: role "admin" is authorized for every pair, unconditionally
- Union: a distributor holds the union of its roles' permissions
- Fail closed: anything not granted is denied
- Log denials only: grants are not logged
- The resolver reads roles through a PermissionLookup, so it never imports
  the session layer or the actor model at decision time
- Legacy flags are a derived snapshot, recomputed whenever a role's
  permission set changes
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Protocol

from ..extensions import db
from ..models import User, UserRole, Role, RolePermission, Permission, SecurityEvent
from ..permissions import (
    PERMISSION_DEFINITIONS,
    DEFAULT_ROLE_PERMISSIONS,
    SYSTEM_ROLES,
    PermissionAction,
    compute_legacy_flags,
    permission_name,
    get_all_permission_pairs,
    validate_module_action,
)
from ..time_utils import utcnow
from .errors import NotAuthorizedError, ActorNotFoundError, ValidationError, NotFoundError


class PermissionDeniedError(NotAuthorizedError):
    """Raised when user lacks required permission."""
    pass


# =============================================================================
# LOOKUP
# =============================================================================

class PermissionLookup(Protocol):
    """Storage seam used by the resolver: actor id -> roles -> permissions."""

    def get_actor(self, actor_id: int) -> User | None:
        ...

    def get_permission_pairs(self, actor_id: int) -> set[tuple[str, str]]:
        ...


class DatabasePermissionLookup:
    """PermissionLookup backed by the SQLAlchemy session."""

    def get_actor(self, actor_id: int) -> User | None:
        return db.session.get(User, actor_id)

    def get_permission_pairs(self, actor_id: int) -> set[tuple[str, str]]:
        rows = (
            db.session.query(Permission.module, Permission.action)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .filter(UserRole.user_id == actor_id)
            .distinct()
            .all()
        )
        return {(module, action) for module, action in rows}


# =============================================================================
# RESOLUTION
# =============================================================================

@dataclass(frozen=True)
class PermissionLevel:
    """Per-module capability summary used to scope data queries."""
    can_view_own: bool = False
    can_view_all: bool = False
    can_create: bool = False
    can_update: bool = False
    can_delete: bool = False

    @classmethod
    def full(cls) -> "PermissionLevel":
        return cls(True, True, True, True, True)

    @property
    def has_module_access(self) -> bool:
        return self.can_view_own or self.can_view_all

    @property
    def owner_scoped(self) -> bool:
        """True when every query must be filtered to the actor's own records."""
        return self.can_view_own and not self.can_view_all

    def to_dict(self) -> dict:
        return asdict(self)


class PermissionResolver:
    """
    Decides whether an actor may perform (module, action).

    `actor` may be a User or a user id. A user id that no longer resolves
    raises ActorNotFoundError so callers can force re-authentication
    instead of reporting a plain denial.
    """

    def __init__(self, lookup: PermissionLookup | None = None):
        self.lookup = lookup or DatabasePermissionLookup()

    def load_actor(self, actor) -> User:
        if isinstance(actor, int):
            user = self.lookup.get_actor(actor)
            if user is None:
                raise ActorNotFoundError(f"User {actor} not found")
            return user
        if actor is None:
            raise ActorNotFoundError("User not found")
        return actor

    def permission_pairs(self, actor) -> set[tuple[str, str]]:
        user = self.load_actor(actor)
        if user.is_admin:
            return set(get_all_permission_pairs())
        return set(self.lookup.get_permission_pairs(user.id))

    def authorize(self, actor, module: str, action: str) -> bool:
        user = self.load_actor(actor)
        if user.is_admin:
            return True
        return (module, action) in self.lookup.get_permission_pairs(user.id)

    def compute_level(self, actor, module: str) -> PermissionLevel:
        user = self.load_actor(actor)
        if user.is_admin:
            return PermissionLevel.full()

        pairs = self.lookup.get_permission_pairs(user.id)
        return PermissionLevel(
            can_view_own=(module, PermissionAction.VIEW_OWN) in pairs,
            can_view_all=(module, PermissionAction.VIEW_ALL) in pairs,
            can_create=(module, PermissionAction.CREATE) in pairs,
            can_update=(module, PermissionAction.UPDATE) in pairs,
            can_delete=(module, PermissionAction.DELETE) in pairs,
        )


def authorize(actor, module: str, action: str, lookup: PermissionLookup | None = None) -> bool:
    """Module-level shortcut for PermissionResolver.authorize."""
    return PermissionResolver(lookup).authorize(actor, module, action)


def compute_permission_level(actor, module: str, lookup: PermissionLookup | None = None) -> PermissionLevel:
    """Module-level shortcut for PermissionResolver.compute_level."""
    return PermissionResolver(lookup).compute_level(actor, module)


def get_user_permissions(user_id: int) -> set[tuple[str, str]]:
    """
    Get all (module, action) pairs for a user.

    Admins get every defined pair.
    """
    return PermissionResolver().permission_pairs(user_id)


def user_has_permission(user_id: int, module: str, action: str) -> bool:
    """
    Check a permission without raising.

    A user that no longer exists simply has no permissions here.
    """
    try:
        return authorize(user_id, module, action)
    except ActorNotFoundError:
        return False


def require_permission(
    user: User,
    module: str,
    action: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Denials are logged to security_events.
    """
    if authorize(user, module, action):
        return

    code = permission_name(module, action)
    log_security_event(
        user_id=user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=code,
        reason=f"Missing permission: {code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Permission denied: {code}")


# =============================================================================
# LEGACY PROJECTION
# =============================================================================

def refresh_legacy_flags(user: User, *, commit: bool = False) -> dict[str, bool]:
    """
    Recompute the legacy permission snapshot stored on the user.

    Never set the can_* columns any other way.
    """
    if user.is_admin:
        flags = compute_legacy_flags((), is_admin=True)
    else:
        flags = compute_legacy_flags(DatabasePermissionLookup().get_permission_pairs(user.id))

    for flag, value in flags.items():
        setattr(user, flag, value)

    if commit:
        db.session.commit()
    return flags


def refresh_legacy_flags_for_role(role_id: int) -> int:
    """Refresh the snapshot of every user holding role_id. Returns the user count."""
    db.session.flush()
    users = (
        db.session.query(User)
        .join(UserRole, UserRole.user_id == User.id)
        .filter(UserRole.role_id == role_id)
        .all()
    )
    for user in users:
        refresh_legacy_flags(user)
    return len(users)


# =============================================================================
# AUDIT
# =============================================================================

def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - PAYMENT_STAGE_MARKED
    - PAYMENT_STAGE_UNMARKED
    - ROLE_PERMISSIONS_CHANGED

    Pass commit=False to make the event part of the caller's transaction.
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


# =============================================================================
# SEEDING
# =============================================================================

def initialize_permissions() -> int:
    """
    Initialize all permission definitions in database.

    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for module, action, display_name, description in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(module=module, action=action).first()

        if not existing:
            db.session.add(Permission(
                name=permission_name(module, action),
                display_name=display_name,
                module=module,
                action=action,
                description=description,
                is_system_permission=True,
            ))
            created_count += 1

    db.session.commit()
    return created_count


def create_system_roles() -> int:
    """Create the seeded system roles if they don't exist."""
    created_count = 0
    for name, display_name, description in SYSTEM_ROLES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(
                name=name,
                display_name=display_name,
                description=description,
                is_system_role=True,
            ))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions() -> int:
    """
    Assign default permissions to system roles based on DEFAULT_ROLE_PERMISSIONS.

    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0

    for role_name, pairs in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            continue

        for module, action in pairs:
            permission = db.session.query(Permission).filter_by(module=module, action=action).first()
            if not permission:
                continue

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id,
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

        refresh_legacy_flags_for_role(role.id)

    db.session.commit()
    return created_count


# =============================================================================
# ROLE PERMISSION CHANGES
# =============================================================================

def _get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise NotFoundError(f"Role '{role_name}' not found")
    return role


def _get_permission(module: str, action: str) -> Permission:
    if not validate_module_action(module, action):
        raise ValidationError(f"Unknown permission: {permission_name(module, action)}")
    permission = db.session.query(Permission).filter_by(module=module, action=action).first()
    if not permission:
        raise NotFoundError(f"Permission '{permission_name(module, action)}' not found")
    return permission


def _check_mutable(role: Role, allow_system: bool) -> None:
    if role.is_system_role and not allow_system:
        raise ValidationError(f"System role '{role.name}' cannot be modified")


def grant_permission_to_role(role_name: str, module: str, action: str, *, allow_system: bool = False) -> RolePermission:
    """Grant a permission to a role and refresh holders' legacy flags."""
    role = _get_role(role_name)
    _check_mutable(role, allow_system)
    permission = _get_permission(module, action)

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id,
    ).first()

    if existing:
        return existing  # Already granted

    role_permission = RolePermission(role_id=role.id, permission_id=permission.id)
    db.session.add(role_permission)
    refresh_legacy_flags_for_role(role.id)
    db.session.commit()

    return role_permission


def revoke_permission_from_role(role_name: str, module: str, action: str, *, allow_system: bool = False) -> bool:
    """Revoke a permission from a role. Returns False if it wasn't granted."""
    role = _get_role(role_name)
    _check_mutable(role, allow_system)
    permission = _get_permission(module, action)

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id,
    ).first()

    if not role_permission:
        return False

    db.session.delete(role_permission)
    refresh_legacy_flags_for_role(role.id)
    db.session.commit()
    return True


def set_role_permissions(role: Role, permission_ids, *, allow_system: bool = False) -> list[Permission]:
    """
    Replace a role's permission set with permission_ids.

    Does not commit; callers commit together with their own changes.
    """
    _check_mutable(role, allow_system)

    wanted = {int(pid) for pid in permission_ids or []}
    permissions = []
    if wanted:
        permissions = db.session.query(Permission).filter(Permission.id.in_(wanted)).all()
        missing = wanted - {p.id for p in permissions}
        if missing:
            raise ValidationError(f"Unknown permission ids: {sorted(missing)}")

    current = db.session.query(RolePermission).filter_by(role_id=role.id).all()
    current_ids = {rp.permission_id for rp in current}

    for role_permission in current:
        if role_permission.permission_id not in wanted:
            db.session.delete(role_permission)
    for permission_id in wanted - current_ids:
        db.session.add(RolePermission(role_id=role.id, permission_id=permission_id))

    refresh_legacy_flags_for_role(role.id)
    return permissions


def get_role_permissions(role_id: int) -> list[Permission]:
    return (
        db.session.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .order_by(Permission.module, Permission.action)
        .all()
    )


def get_user_role_names(user_id: int) -> list[str]:
    """Get list of role names for a user."""
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def group_permissions_by_module() -> dict[str, list[dict]]:
    """Permission catalogue grouped by module (distributor permission picker)."""
    grouped: dict[str, list[dict]] = {}
    permissions = db.session.query(Permission).order_by(Permission.module, Permission.action).all()
    for permission in permissions:
        grouped.setdefault(permission.module, []).append(permission.to_dict())
    return grouped
