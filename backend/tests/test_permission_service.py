"""
Permission resolution tests.

Verifies:
- Administrators bypass every check
- A distributor's permissions are the union of its roles
- Permission levels and owner scoping
- Legacy flags follow role changes
- A vanished actor is reported distinctly from a denial
"""

import pytest

from invoicedesk.extensions import db
from invoicedesk.models import Role, SecurityEvent, UserRole
from invoicedesk.permissions import (
    PermissionModule as M,
    PermissionAction as A,
    compute_legacy_flags,
    get_all_permission_pairs,
)
from invoicedesk.services import permission_service
from invoicedesk.services.errors import ActorNotFoundError, ValidationError
from invoicedesk.services.permission_service import (
    PermissionDeniedError,
    PermissionResolver,
    authorize,
    compute_permission_level,
)


class FakeLookup:
    """In-memory PermissionLookup."""

    def __init__(self, actors=None, grants=None):
        self.actors = actors or {}
        self.grants = grants or {}

    def get_actor(self, actor_id):
        return self.actors.get(actor_id)

    def get_permission_pairs(self, actor_id):
        return set(self.grants.get(actor_id, set()))


class FakeActor:
    def __init__(self, id, is_admin=False):
        self.id = id
        self.is_admin = is_admin


def _custom_role(name, pairs, user):
    role = Role(name=name, display_name=name, is_system_role=False)
    db.session.add(role)
    db.session.flush()
    db.session.add(UserRole(user_id=user.id, role_id=role.id))
    db.session.commit()
    for module, action in pairs:
        permission_service.grant_permission_to_role(name, module, action)
    return role


# =============================================================================
# RESOLVER (no database)
# =============================================================================


class TestResolverWithFakeLookup:

    def test_admin_is_authorized_for_every_pair(self):
        lookup = FakeLookup(actors={1: FakeActor(1, is_admin=True)})
        resolver = PermissionResolver(lookup)

        for module, action in get_all_permission_pairs():
            assert resolver.authorize(1, module, action)

    def test_admin_bypass_ignores_empty_grants(self):
        lookup = FakeLookup(actors={1: FakeActor(1, is_admin=True)}, grants={1: set()})
        assert authorize(1, M.SYSTEM, A.DELETE, lookup=lookup)

    def test_union_of_roles(self):
        lookup = FakeLookup(
            actors={2: FakeActor(2)},
            grants={2: {(M.INVOICES, A.CREATE)} | {(M.REPORTS, A.VIEW_OWN)}},
        )
        resolver = PermissionResolver(lookup)

        assert resolver.authorize(2, M.INVOICES, A.CREATE)
        assert resolver.authorize(2, M.REPORTS, A.VIEW_OWN)
        assert not resolver.authorize(2, M.INVOICES, A.DELETE)

    def test_missing_actor_raises(self):
        resolver = PermissionResolver(FakeLookup())
        with pytest.raises(ActorNotFoundError) as exc:
            resolver.authorize(99, M.INVOICES, A.VIEW_OWN)
        assert exc.value.code == "ACTOR_NOT_FOUND"

    def test_level_for_view_own_only(self):
        lookup = FakeLookup(actors={3: FakeActor(3)}, grants={3: {(M.INVOICES, A.VIEW_OWN)}})
        level = compute_permission_level(3, M.INVOICES, lookup=lookup)

        assert level.has_module_access
        assert level.owner_scoped
        assert not level.can_create

    def test_level_without_access(self):
        lookup = FakeLookup(actors={3: FakeActor(3)}, grants={3: {(M.CLIENTS, A.VIEW_ALL)}})
        level = compute_permission_level(3, M.INVOICES, lookup=lookup)

        assert not level.has_module_access
        assert not level.owner_scoped

    def test_admin_level_is_full(self):
        lookup = FakeLookup(actors={1: FakeActor(1, is_admin=True)})
        level = compute_permission_level(1, M.REPORTS, lookup=lookup)

        assert level.can_view_all and level.can_delete
        assert not level.owner_scoped


# =============================================================================
# LEGACY PROJECTION
# =============================================================================


class TestLegacyFlags:

    def test_projection(self):
        flags = compute_legacy_flags({(M.CLIENTS, A.DELETE), (M.REPORTS, A.VIEW_ALL)})
        assert flags == {
            "can_create_companies": False,
            "can_create_invoices": False,
            "can_manage_clients": True,
            "can_view_reports": True,
        }

    def test_admin_gets_all_flags(self):
        assert all(compute_legacy_flags((), is_admin=True).values())

    def test_flags_follow_role_grants(self, make_user, db_session):
        user = make_user("flags", role_name=None)
        role = _custom_role("distributor_flags_1", [(M.INVOICES, A.CREATE)], user)
        db_session.refresh(user)
        assert user.can_create_invoices
        assert not user.can_view_reports

        permission_service.grant_permission_to_role(role.name, M.REPORTS, A.VIEW_OWN)
        db_session.refresh(user)
        assert user.can_view_reports

        permission_service.revoke_permission_from_role(role.name, M.INVOICES, A.CREATE)
        db_session.refresh(user)
        assert not user.can_create_invoices


# =============================================================================
# DATABASE-BACKED RESOLUTION
# =============================================================================


class TestDatabaseResolution:

    def test_admin_has_every_permission(self, admin):
        assert permission_service.get_user_permissions(admin.id) == set(get_all_permission_pairs())

    def test_union_across_two_roles(self, make_user):
        user = make_user("multi", role_name=None)
        _custom_role("role_a", [(M.INVOICES, A.VIEW_OWN)], user)
        _custom_role("role_b", [(M.REPORTS, A.VIEW_OWN)], user)

        assert authorize(user.id, M.INVOICES, A.VIEW_OWN)
        assert authorize(user.id, M.REPORTS, A.VIEW_OWN)
        assert not authorize(user.id, M.INVOICES, A.VIEW_ALL)

    def test_require_permission_logs_denial(self, distributor):
        with pytest.raises(PermissionDeniedError) as exc:
            permission_service.require_permission(distributor, M.ROLES, A.UPDATE, resource="/test")
        assert exc.value.code == "NOT_AUTHORIZED"

        event = db.session.query(SecurityEvent).filter_by(user_id=distributor.id).one()
        assert event.event_type == "PERMISSION_DENIED"
        assert event.action == "roles.update"

    def test_user_has_permission_for_unknown_user(self, seed):
        assert permission_service.user_has_permission(12345, M.INVOICES, A.VIEW_OWN) is False

    def test_system_role_is_read_only(self, seed):
        with pytest.raises(ValidationError):
            permission_service.grant_permission_to_role("basic_distributor", M.ROLES, A.UPDATE)

    def test_seeding_is_idempotent(self, seed):
        assert permission_service.initialize_permissions() == 0
        assert permission_service.create_system_roles() == 0
        assert permission_service.assign_default_role_permissions() == 0
