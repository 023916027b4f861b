"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Distributors are denied administrator endpoints (403)
- view_own distributors only reach their own invoices
- Legacy flag gates follow the distributor's permissions
- A session whose user vanished returns ACTOR_NOT_FOUND
"""

import pytest

from invoicedesk.extensions import db
from invoicedesk.models import Permission, SecurityEvent, User
from invoicedesk.services import distributor_service

PASSWORD = "Password123!"


def _permission_ids(*names):
    return [p.id for p in db.session.query(Permission).filter(Permission.name.in_(names)).all()]


@pytest.fixture
def scoped_distributor(admin):
    """Distributor whose custom role only sees its own invoices."""
    return distributor_service.create_distributor(
        username="scoped",
        password=PASSWORD,
        commission_rate=1,
        permission_ids=_permission_ids("invoices.view_own"),
        created_by_user_id=admin.id,
    )


@pytest.fixture
def scoped_headers(login, scoped_distributor):
    return login("scoped")


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("POST", "/api/invoices/1/payment/clientToDistributor"),
            ("POST", "/api/invoices/bulk-pay/distributor/1"),
            ("GET", "/api/dashboard"),
            ("GET", "/api/reports"),
            ("GET", "/api/companies"),
            ("GET", "/api/clients"),
            ("GET", "/api/files"),
            ("GET", "/api/distributors"),
            ("GET", "/api/commission-tiers"),
            ("GET", "/api/admin/roles"),
            ("GET", "/api/admin/permissions"),
        ],
    )
    def test_requires_auth(self, client, seed, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bad_credentials(self, client, distributor):
        resp = client.post("/api/auth/login", json={"username": "dist1", "password": "wrong"})
        assert resp.status_code == 401
        assert resp.json["code"] == "NOT_AUTHORIZED"


# =============================================================================
# DISTRIBUTOR DENIED ADMIN OPERATIONS (403)
# =============================================================================


class TestDistributorDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/roles"),
            ("GET", "/api/admin/permissions"),
            ("GET", "/api/admin/security-events"),
            ("GET", "/api/distributors"),
            ("POST", "/api/companies"),
            ("POST", "/api/commission-tiers"),
        ],
    )
    def test_forbidden(self, client, distributor_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=distributor_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.json["code"] == "NOT_AUTHORIZED"

    def test_denial_is_audited(self, client, distributor, distributor_headers):
        client.get("/api/admin/roles", headers=distributor_headers)

        events = db.session.query(SecurityEvent).filter_by(
            user_id=distributor.id, event_type="PERMISSION_DENIED"
        ).all()
        assert [e.action for e in events] == ["roles.view_all"]


class TestAdminAccess:

    def test_admin_lists_roles(self, client, admin_headers):
        resp = client.get("/api/admin/roles", headers=admin_headers)
        assert resp.status_code == 200
        names = {r["name"] for r in resp.json["roles"]}
        assert {"admin", "basic_distributor"} <= names

    def test_system_role_cannot_be_edited(self, client, admin_headers):
        resp = client.post(
            "/api/admin/roles/basic_distributor/permissions",
            json={"permission": "reports.view_all"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION"

    def test_me_lists_all_permissions(self, client, admin_headers):
        resp = client.get("/api/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        assert "system.view_all" in resp.json["permissions"]
        assert all(resp.json["user"]["permissions"].values())


# =============================================================================
# OWNER SCOPING
# =============================================================================


class TestOwnerScope:

    def test_list_shows_only_own_invoices(self, client, scoped_distributor, scoped_headers, make_invoice):
        own = make_invoice(distributor=scoped_distributor)
        make_invoice()

        resp = client.get("/api/invoices", headers=scoped_headers)

        assert resp.status_code == 200
        assert [i["id"] for i in resp.json["items"]] == [own.id]
        assert resp.json["permission_level"]["can_view_all"] is False

    def test_foreign_invoice_is_not_found(self, client, scoped_headers, make_invoice):
        foreign = make_invoice()

        resp = client.get(f"/api/invoices/{foreign.id}", headers=scoped_headers)
        assert resp.status_code == 404
        assert resp.json["code"] == "NOT_FOUND"

    def test_no_module_access(self, client, scoped_headers):
        resp = client.get("/api/reports", headers=scoped_headers)
        assert resp.status_code == 403
        assert resp.json["required_module"] == "reports"


# =============================================================================
# LEGACY FLAGS
# =============================================================================


class TestLegacyFlagGate:

    def test_flag_missing(self, client, scoped_headers, customer, work_file, scoped_distributor):
        resp = client.post(
            "/api/invoices/calculate-commission",
            json={"client_id": customer.id, "distributor_id": scoped_distributor.id,
                  "file_id": work_file.id, "amount_cents": 1000},
            headers=scoped_headers,
        )
        assert resp.status_code == 403
        assert resp.json["required_flag"] == "can_create_invoices"

    def test_flag_granted_by_permission_update(self, client, admin_headers, scoped_distributor,
                                               scoped_headers, customer, work_file):
        resp = client.put(
            f"/api/distributors/{scoped_distributor.id}",
            json={"permission_ids": _permission_ids("invoices.view_own", "invoices.create")},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["permissions"]["can_create_invoices"] is True

        resp = client.post(
            "/api/invoices/calculate-commission",
            json={"client_id": customer.id, "distributor_id": scoped_distributor.id,
                  "file_id": work_file.id, "amount_cents": 100000},
            headers=scoped_headers,
        )
        assert resp.status_code == 200
        assert resp.json["client_commission_cents"] == 2000
        assert resp.json["distributor_commission_cents"] == 1000
        assert resp.json["company_commission_cents"] == 5000


# =============================================================================
# SESSION EDGE CASES
# =============================================================================


class TestSessions:

    def test_vanished_actor(self, client, distributor, distributor_headers):
        users = User.__table__
        db.session.execute(users.delete().where(users.c.id == distributor.id))
        db.session.commit()
        db.session.expunge_all()

        resp = client.get("/api/auth/me", headers=distributor_headers)
        assert resp.status_code == 401
        assert resp.json["code"] == "ACTOR_NOT_FOUND"

    def test_logout_revokes_token(self, client, login, distributor):
        headers = login("dist1")

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_deactivated_distributor_loses_session(self, client, admin_headers, distributor, distributor_headers):
        resp = client.put(f"/api/distributors/{distributor.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=distributor_headers).status_code == 401
