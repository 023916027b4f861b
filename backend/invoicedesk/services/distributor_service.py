# Overview: Service-layer operations for distributors; encapsulates business logic and database work.

"""
Distributor Management Service

WHY: Each distributor gets a private custom role holding exactly the
permissions the administrator picked for them. Editing a distributor's
permissions edits that role, and the legacy flag snapshot follows.

Custom roles are named distributor_<username>_<epoch millis> and are
never system roles. System-only modules (roles, permissions, system) can
not be granted to a distributor.
"""

from __future__ import annotations

import time

from ..extensions import db
from ..models import Permission, Role, User, UserRole
from ..models.auth import USER_ROLE_DISTRIBUTOR
from ..permissions import SYSTEM_ONLY_MODULES
from . import auth_service, permission_service, session_service
from .commission_service import to_rate
from .errors import NotFoundError, ValidationError


def custom_role_name(username: str) -> str:
    return f"distributor_{username}_{int(time.time() * 1000)}"


def _check_grantable(permission_ids) -> list[int]:
    ids = []
    for pid in permission_ids or []:
        try:
            ids.append(int(pid))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid permission id: {pid!r}")

    if not ids:
        return ids

    blocked = (
        db.session.query(Permission)
        .filter(Permission.id.in_(ids), Permission.module.in_(SYSTEM_ONLY_MODULES))
        .all()
    )
    if blocked:
        raise ValidationError(
            f"Permissions cannot be granted to distributors: {sorted(p.name for p in blocked)}"
        )
    return ids


def _create_custom_role(user: User, created_by_user_id: int | None) -> Role:
    role = Role(
        name=custom_role_name(user.username),
        display_name=f"{user.username} role",
        description=f"Custom role for distributor {user.username}",
        is_system_role=False,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(role)
    db.session.flush()
    db.session.add(UserRole(user_id=user.id, role_id=role.id))
    db.session.flush()
    return role


def get_custom_role(user: User) -> Role | None:
    return (
        db.session.query(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user.id, Role.is_system_role.is_(False))
        .order_by(Role.id)
        .first()
    )


def create_distributor(
    *,
    username: str,
    password: str,
    commission_rate=0,
    permission_ids=None,
    created_by_user_id: int | None = None,
) -> User:
    """
    Create a distributor with its own custom role.

    Raises:
        ValidationError: duplicate username, weak password, bad rate or
            a permission outside what distributors may hold
    """
    ids = _check_grantable(permission_ids)

    user = auth_service.create_user(
        username,
        password,
        role=USER_ROLE_DISTRIBUTOR,
        commission_rate=to_rate(commission_rate or 0),
        commit=False,
    )

    role = _create_custom_role(user, created_by_user_id)
    permission_service.set_role_permissions(role, ids)

    db.session.commit()
    return user


def get_distributor(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.role != USER_ROLE_DISTRIBUTOR:
        raise NotFoundError("Distributor not found")
    return user


def list_distributors(include_inactive: bool = True, owner: User | None = None) -> list[User]:
    """owner restricts the listing to that distributor (view_own scope)."""
    query = db.session.query(User).filter(User.role == USER_ROLE_DISTRIBUTOR)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    if owner is not None:
        query = query.filter(User.id == owner.id)
    return query.order_by(User.username).all()


def update_distributor(
    user_id: int,
    *,
    username: str | None = None,
    commission_rate=None,
    is_active: bool | None = None,
    permission_ids=None,
    updated_by_user_id: int | None = None,
) -> User:
    """
    Update a distributor. permission_ids=None leaves permissions unchanged;
    an empty list clears them.

    Deactivating a distributor revokes all of their sessions.
    """
    user = get_distributor(user_id)

    if username is not None:
        username = username.strip()
        if not username:
            raise ValidationError("Username is required")
        clash = db.session.query(User).filter(User.username == username, User.id != user.id).first()
        if clash:
            raise ValidationError("Username already exists")
        user.username = username

    if commission_rate is not None:
        user.commission_rate = to_rate(commission_rate)

    if permission_ids is not None:
        ids = _check_grantable(permission_ids)
        role = get_custom_role(user) or _create_custom_role(user, updated_by_user_id)
        permission_service.set_role_permissions(role, ids)
        permission_service.log_security_event(
            user_id=updated_by_user_id,
            event_type="ROLE_PERMISSIONS_CHANGED",
            success=True,
            resource=f"role:{role.id}",
            action="set_permissions",
            reason=f"Distributor {user.id} now holds {len(ids)} permissions",
            commit=False,
        )

    deactivated = is_active is not None and user.is_active and not is_active
    if is_active is not None:
        user.is_active = bool(is_active)

    db.session.commit()

    if deactivated:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")

    return user


def serialize_distributor(user: User) -> dict:
    role = get_custom_role(user)
    permissions = permission_service.get_role_permissions(role.id) if role else []
    data = user.to_dict()
    data["roles"] = permission_service.get_user_role_names(user.id)
    data["custom_role_id"] = role.id if role else None
    data["permission_ids"] = [p.id for p in permissions]
    data["permission_names"] = [p.name for p in permissions]
    return data
