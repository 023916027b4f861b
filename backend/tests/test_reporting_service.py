"""
Reporting tests: month filtering, profit statistics and CSV export.
"""

import pytest

from invoicedesk.models.invoices import (
    STAGE_CLIENT_TO_DISTRIBUTOR,
    STAGE_DISTRIBUTOR_TO_ADMIN,
    STAGE_ADMIN_TO_COMPANY,
)
from invoicedesk.services import invoice_service, payment_service, reporting_service
from invoicedesk.services.reporting_service import ReportError


class TestReportInvoices:

    def test_month_filter(self, make_invoice, admin):
        may = make_invoice(invoice_date="2024-05-10")
        make_invoice(invoice_date="2024-06-01")

        invoices, month_key = reporting_service.report_invoices(admin, False, month="2024-05")

        assert month_key == "2024-05"
        assert [i.id for i in invoices] == [may.id]

    def test_owner_scope(self, make_invoice, admin, distributor, other_distributor):
        mine = make_invoice(distributor=distributor, invoice_date="2024-05-10")
        make_invoice(distributor=other_distributor, invoice_date="2024-05-11")

        invoices, _ = reporting_service.report_invoices(distributor, True, month="2024-05")
        assert [i.id for i in invoices] == [mine.id]

        # A distributor filter cannot widen the scope
        invoices, _ = reporting_service.report_invoices(
            distributor, True, month="2024-05", distributor_id=other_distributor.id
        )
        assert invoices == []

    def test_payment_status_filter(self, make_invoice, admin):
        collected = make_invoice(invoice_date="2024-05-10")
        make_invoice(invoice_date="2024-05-11")
        payment_service.mark_stage(collected.id, STAGE_CLIENT_TO_DISTRIBUTOR, admin)

        invoices, _ = reporting_service.report_invoices(
            admin, False, month="2024-05", payment_status="distributor_pending"
        )
        assert [i.id for i in invoices] == [collected.id]

    def test_invalid_month(self, admin):
        with pytest.raises(ReportError):
            reporting_service.report_invoices(admin, False, month="2024-13")


class TestProfitStats:

    def test_totals_and_breakdowns(self, make_invoice, admin):
        first = make_invoice(amount_cents=100000, invoice_date="2024-05-10")
        make_invoice(amount_cents=50001, invoice_date="2024-05-20")
        payment_service.mark_stage(first.id, STAGE_CLIENT_TO_DISTRIBUTOR, admin)

        invoices, _ = reporting_service.report_invoices(admin, False, month="2024-05")
        stats = reporting_service.calculate_profit_stats(invoices)

        assert stats["total_invoices"] == 2
        assert stats["total_amount_cents"] == 150001
        # 2% + 3% + 5% of 50001 -> 1000 + 1500 + 2500 (half-up)
        assert stats["total_client_commission_cents"] == 2000 + 1000
        assert stats["total_net_profit_cents"] == 90000 + (50001 - 1000 - 1500 - 2500)
        assert stats["average_amount_cents"] == 75001   # 75000.5 rounds up
        assert stats["status_breakdown"]["pending"] == 2
        assert stats["payment_status_breakdown"]["distributor_pending"] == 1
        assert stats["payment_status_breakdown"]["client_pending"] == 1
        assert stats["monthly_breakdown"]["2024-05"]["count"] == 2

    def test_empty(self):
        stats = reporting_service.calculate_profit_stats([])
        assert stats["total_invoices"] == 0
        assert stats["average_amount_cents"] == 0


class TestExport:

    def test_csv_has_bom_and_header(self, make_invoice, admin):
        make_invoice(code="INV-CSV", invoice_date="2024-05-10")
        invoices, _ = reporting_service.report_invoices(admin, False, month="2024-05")

        rows = reporting_service.build_export_rows(invoices)
        text = reporting_service.render_csv(rows)

        assert text.startswith("\ufeff")
        header, line = text[1:].splitlines()[:2]
        assert header.split(",") == reporting_service.EXPORT_COLUMNS
        assert line.startswith("INV-CSV,Jane Roe,acme-2024.pdf,Acme Shipping,dist1,100000,")
        assert rows[0]["client_to_distributor_paid_at"] is None


class TestPaymentStatusFilter:

    def test_out_of_order_invoice_matches_one_status(self, make_invoice, admin):
        invoice = make_invoice(invoice_date="2024-05-10")
        make_invoice(invoice_date="2024-05-11")
        invoice = payment_service.mark_stage(invoice.id, STAGE_ADMIN_TO_COMPANY, admin)
        assert payment_service.overall_payment_status(invoice) == "fully_completed"

        matching = []
        for status in payment_service.OVERALL_STATUSES:
            listed, _ = invoice_service.list_invoices(admin, False, payment_status=status)
            if invoice.id in [i.id for i in listed]:
                matching.append(status)
        assert matching == ["fully_completed"]

    def test_filtered_report_agrees_with_breakdown(self, make_invoice, admin):
        skipped = make_invoice(invoice_date="2024-05-10")
        make_invoice(invoice_date="2024-05-11")
        payment_service.mark_stage(skipped.id, STAGE_DISTRIBUTOR_TO_ADMIN, admin)

        invoices, _ = reporting_service.report_invoices(admin, False, month="2024-05")
        breakdown = reporting_service.calculate_profit_stats(invoices)["payment_status_breakdown"]

        for status, expected in breakdown.items():
            filtered, _ = reporting_service.report_invoices(
                admin, False, month="2024-05", payment_status=status
            )
            assert len(filtered) == expected, status
