# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every payment mark is attributed to an actor. Uses bcrypt for password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, mixed case, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, UserRole
from ..models.auth import USER_ROLE_ADMIN, USER_ROLE_DISTRIBUTOR
from ..permissions import ROLE_ADMIN
from ..time_utils import utcnow
from . import permission_service
from .errors import ValidationError


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(
    username: str,
    password: str,
    role: str = USER_ROLE_DISTRIBUTOR,
    commission_rate=0,
    *,
    commit: bool = True,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: unknown role or duplicate username
        PasswordValidationError: weak password
    """
    if role not in (USER_ROLE_ADMIN, USER_ROLE_DISTRIBUTOR):
        raise ValidationError(f"Invalid role: {role}")

    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required")

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ValidationError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        commission_rate=commission_rate or 0,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def create_admin(username: str, password: str) -> User:
    """
    Create an administrator and attach the seeded admin role.

    The admin role tag alone already bypasses every check; the role link
    keeps the role graph consistent for listings.
    """
    user = create_user(username, password, role=USER_ROLE_ADMIN, commit=False)

    role = db.session.query(Role).filter_by(name=ROLE_ADMIN).first()
    if role:
        db.session.add(UserRole(user_id=user.id, role_id=role.id))

    permission_service.refresh_legacy_flags(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username and password.

    Returns User if credentials valid and account active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.username == username,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign role to user and refresh the user's legacy flags."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValidationError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(
        user_id=user_id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(user_role)
    db.session.flush()

    user = db.session.get(User, user_id)
    if user:
        permission_service.refresh_legacy_flags(user)

    db.session.commit()
    return user_role
