"""
Invoice, payment, report and dashboard endpoints.
"""

from invoicedesk.models.invoices import STAGE_CLIENT_TO_DISTRIBUTOR


class TestInvoiceCrud:

    def test_create_snapshots_rates(self, client, distributor_headers, distributor, customer, work_file):
        resp = client.post(
            "/api/invoices",
            json={
                "invoice_code": "INV-API-1",
                "client_id": customer.id,
                "file_id": work_file.id,
                "assigned_distributor_id": distributor.id,
                "invoice_date": "2024-05-01",
                "amount_cents": 100000,
            },
            headers=distributor_headers,
        )

        assert resp.status_code == 201
        body = resp.json
        assert body["client_commission_rate"] == 2.0
        assert body["distributor_commission_rate"] == 3.0
        assert body["company_commission_rate"] == 5.0
        assert body["commissions"]["net_profit_cents"] == 90000
        assert body["overall_payment_status"] == "client_pending"
        assert body["payment_progress"] == 0

    def test_create_rejects_bad_amount(self, client, admin_headers, distributor, customer, work_file):
        resp = client.post(
            "/api/invoices",
            json={
                "invoice_code": "INV-BAD",
                "client_id": customer.id,
                "file_id": work_file.id,
                "assigned_distributor_id": distributor.id,
                "invoice_date": "2024-05-01",
                "amount_cents": -5,
            },
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_create_rejects_non_string_date(self, client, admin_headers, distributor, customer, work_file):
        resp = client.post(
            "/api/invoices",
            json={
                "invoice_code": "INV-NUMDATE",
                "client_id": customer.id,
                "file_id": work_file.id,
                "assigned_distributor_id": distributor.id,
                "invoice_date": 20240501,
                "amount_cents": 1000,
            },
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION"

    def test_update_rejects_list_date(self, client, admin_headers, make_invoice):
        invoice = make_invoice()
        resp = client.put(
            f"/api/invoices/{invoice.id}",
            json={"invoice_date": [2024, 5, 1]},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION"

    def test_admin_lists_everything(self, client, admin_headers, make_invoice, other_distributor):
        make_invoice()
        make_invoice(distributor=other_distributor)

        resp = client.get("/api/invoices", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["count"] == 2
        assert resp.json["permission_level"]["can_view_all"] is True


class TestPaymentStageRoutes:

    def test_mark_and_mark_again(self, client, distributor_headers, make_invoice):
        invoice = make_invoice()
        url = f"/api/invoices/{invoice.id}/payment/{STAGE_CLIENT_TO_DISTRIBUTOR}"

        resp = client.post(url, headers=distributor_headers)
        assert resp.status_code == 200
        assert resp.json["payment_status"][STAGE_CLIENT_TO_DISTRIBUTOR]["is_paid"] is True

        resp = client.post(url, headers=distributor_headers)
        assert resp.status_code == 409
        assert resp.json["code"] == "ALREADY_PAID"

    def test_unknown_stage(self, client, admin_headers, make_invoice):
        invoice = make_invoice()
        resp = client.post(f"/api/invoices/{invoice.id}/payment/companyToMoon", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_STAGE"

    def test_unmark_by_admin(self, client, admin_headers, make_invoice):
        invoice = make_invoice()
        url = f"/api/invoices/{invoice.id}/payment/{STAGE_CLIENT_TO_DISTRIBUTOR}"
        client.post(url, headers=admin_headers)

        resp = client.delete(url, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["payment_status"][STAGE_CLIENT_TO_DISTRIBUTOR]["is_paid"] is False


class TestBulkPayRoutes:

    def test_client_then_distributor(self, client, distributor_headers, admin_headers, make_invoice,
                                     customer, distributor):
        make_invoice()
        make_invoice()

        resp = client.post(f"/api/invoices/bulk-pay/client/{customer.id}", headers=distributor_headers)
        assert resp.status_code == 200
        assert resp.json["code"] == "PAID"
        assert resp.json["updated_count"] == 2
        assert resp.json["counterparty_name"] == "Jane Roe"

        resp = client.post(f"/api/invoices/bulk-pay/distributor/{distributor.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["updated_count"] == 2

    def test_nothing_to_pay(self, client, admin_headers, company):
        resp = client.post(f"/api/invoices/bulk-pay/company/{company.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["code"] == "NOTHING_TO_PAY"

    def test_distributor_cannot_pay_companies(self, client, distributor_headers, company):
        resp = client.post(f"/api/invoices/bulk-pay/company/{company.id}", headers=distributor_headers)
        assert resp.status_code == 403
        assert resp.json["code"] == "NOT_AUTHORIZED"


class TestReports:

    def test_report_for_month(self, client, admin_headers, make_invoice):
        make_invoice(invoice_date="2024-05-10")
        make_invoice(invoice_date="2024-07-10")

        resp = client.get("/api/reports?month=2024-05", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["month"] == "2024-05"
        assert resp.json["pagination"]["total"] == 1
        assert resp.json["profit_stats"]["total_amount_cents"] == 100000

    def test_invalid_month(self, client, admin_headers):
        resp = client.get("/api/reports?month=May", headers=admin_headers)
        assert resp.status_code == 400

    def test_csv_export(self, client, admin_headers, make_invoice):
        make_invoice(code="INV-CSV", invoice_date="2024-05-10")

        resp = client.get("/api/reports/export?format=csv&month=2024-05", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "invoices-report-2024-05.csv" in resp.headers["Content-Disposition"]
        assert resp.data.startswith("\ufeff".encode("utf-8"))
        assert b"INV-CSV" in resp.data

    def test_unknown_export_format(self, client, admin_headers):
        resp = client.get("/api/reports/export?format=xml", headers=admin_headers)
        assert resp.status_code == 400


class TestDashboard:

    def test_admin_dashboard(self, client, admin_headers, make_invoice):
        make_invoice()

        resp = client.get("/api/dashboard", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["total_invoices"] == 1
        assert resp.json["total_distributors"] == 1
        assert resp.json["bulk_payment_data"]["clients"] == []

    def test_distributor_dashboard(self, client, distributor_headers, make_invoice, other_distributor, customer):
        make_invoice()
        make_invoice(distributor=other_distributor)

        resp = client.get("/api/dashboard", headers=distributor_headers)

        assert resp.status_code == 200
        assert resp.json["total_invoices"] == 1
        assert len(resp.json["recent_invoices"]) == 1
        assert resp.json["bulk_payment_data"]["clients"][0]["client_id"] == customer.id


class TestSystemEndpoints:

    def test_health(self, client, seed):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert set(resp.json["checks"]) == {"database", "session_service", "auth_service"}

    def test_version(self, client):
        resp = client.get("/version")
        assert resp.status_code == 200
        assert resp.json["stage_order_policy"] == "admin_override"
