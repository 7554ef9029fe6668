"""
Tests for the invoice API endpoints.

These test the HTTP layer: status codes, response format,
actor headers and error rendering. Business logic is tested
in tests/services.
"""

from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from lab_billing.models import OrderStatus
from lab_billing.services.audit_service import AuditService

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
STAFF = {"X-User-Id": "staff-1", "X-User-Role": "lab_staff", "X-Lab-Id": "1"}
DOCTOR = {"X-User-Id": "doctor-1", "X-User-Role": "doctor"}
OTHER_LAB_STAFF = {"X-User-Id": "staff-9", "X-User-Role": "lab_staff", "X-Lab-Id": "2"}


def generate(client, order_id, headers=ADMIN):
    return client.post("/invoices", json={"order_id": order_id}, headers=headers)


class TestGenerateInvoice:

    def test_returns_201_with_detail(self, client, make_order, platform_pricing):
        order = make_order(unit_count=3, is_urgent=True)

        response = generate(client, order.id)

        assert response.status_code == 201
        data = response.json()
        assert data["order_id"] == order.id
        assert data["status"] == "generated"
        assert data["payment_status"] == "pending"
        assert data["subtotal"] == "330.00"
        assert data["final_total"] == "330.00"
        assert [line["line_type"] for line in data["line_items"]] == [
            "base_price",
            "urgency_fee",
        ]
        assert [entry["action"] for entry in data["audit_entries"]] == ["generated"]

    def test_lab_staff_can_generate(self, client, make_order, platform_pricing):
        order = make_order()

        response = generate(client, order.id, headers=STAFF)

        assert response.status_code == 201

    def test_staff_of_other_lab_forbidden(self, client, make_order, platform_pricing):
        order = make_order(lab_id=1)

        response = generate(client, order.id, headers=OTHER_LAB_STAFF)

        assert response.status_code == 403
        assert response.json()["error_code"] == "ERR_FORBIDDEN"

    def test_agreed_fee_priced_invoice(self, client, make_order):
        order = make_order(agreed_fee=Decimal("220.00"))

        response = generate(client, order.id)

        assert response.status_code == 201
        data = response.json()
        assert data["subtotal"] == "220.00"
        assert data["line_items"][0]["rule_applied"] == "agreed_fee"

    def test_doctor_forbidden(self, client, make_order, platform_pricing):
        order = make_order()

        response = generate(client, order.id, headers=DOCTOR)

        assert response.status_code == 403
        assert response.json()["error_code"] == "ERR_FORBIDDEN"

    def test_missing_actor_headers_rejected(self, client, make_order, platform_pricing):
        order = make_order()

        response = client.post("/invoices", json={"order_id": order.id})

        assert response.status_code == 422

    def test_unknown_role_rejected(self, client, make_order, platform_pricing):
        order = make_order()

        response = generate(
            client, order.id, headers={"X-User-Id": "x", "X-User-Role": "janitor"}
        )

        assert response.status_code == 422

    def test_unknown_order_returns_404(self, client, platform_pricing):
        response = generate(client, 999)

        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "ERR_NOT_FOUND"
        assert data["details"] == {"resource": "order", "id": 999}

    def test_ineligible_order_returns_409(self, client, make_order, platform_pricing):
        order = make_order(status=OrderStatus.IN_PROGRESS, delivery_confirmed_at=None)

        response = generate(client, order.id)

        assert response.status_code == 409
        assert response.json()["error_code"] == "ERR_NOT_ELIGIBLE"

    def test_second_generation_returns_409(self, client, make_order, platform_pricing):
        order = make_order()
        generate(client, order.id)

        response = generate(client, order.id)

        assert response.status_code == 409
        assert response.json()["error_code"] == "ERR_ALREADY_EXISTS"

    def test_missing_price_returns_422(self, client, make_order, platform_pricing):
        order = make_order(restoration_type="veneer")

        response = generate(client, order.id)

        assert response.status_code == 422
        assert response.json()["error_code"] == "ERR_NO_PRICE"

    def test_storage_failure_returns_generic_500(
        self, client, make_order, platform_pricing, monkeypatch
    ):
        order = make_order()

        def broken_record(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(AuditService, "record", broken_record)

        response = generate(client, order.id)

        assert response.status_code == 500
        assert response.json() == {
            "error_code": "ERR_INTERNAL",
            "message": "Operation failed, try again",
            "details": {},
        }
        assert client.get("/invoices").json() == []


class TestReadInvoices:

    def test_get_invoice(self, client, make_invoice):
        invoice = make_invoice()

        response = client.get(f"/invoices/{invoice.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["invoice_number"] == invoice.invoice_number
        assert data["adjustments"] == []
        assert data["expenses"] == []

    def test_get_unknown_invoice_returns_404(self, client):
        response = client.get("/invoices/999")

        assert response.status_code == 404
        assert response.json()["message"] == "Invoice 999 not found"

    def test_get_invoice_by_order(self, client, make_invoice):
        invoice = make_invoice()

        response = client.get(f"/invoices/by-order/{invoice.order_id}")

        assert response.status_code == 200
        assert response.json()["id"] == invoice.id

    def test_get_invoice_by_order_without_invoice(self, client, make_order):
        order = make_order()

        response = client.get(f"/invoices/by-order/{order.id}")

        assert response.status_code == 404

    def test_list_filters_by_status(self, client, make_invoice):
        first = make_invoice()
        second = make_invoice()
        client.post(f"/invoices/{first.id}/lock", headers=ADMIN)

        locked = client.get("/invoices", params={"status": "locked"}).json()
        everything = client.get("/invoices").json()

        assert [row["id"] for row in locked] == [first.id]
        assert {row["id"] for row in everything} == {first.id, second.id}

    def test_eligible_orders(self, client, make_order, make_invoice):
        invoiced = make_invoice()
        waiting = make_order()
        make_order(delivery_confirmed_at=None)

        response = client.get("/invoices/eligible-orders")

        assert response.status_code == 200
        ids = [row["id"] for row in response.json()]
        assert ids == [waiting.id]
        assert invoiced.order_id not in ids


class TestTransitions:

    def test_lock_then_finalize(self, client, make_invoice):
        invoice = make_invoice()

        locked = client.post(f"/invoices/{invoice.id}/lock", headers=ADMIN)
        finalized = client.post(f"/invoices/{invoice.id}/finalize", headers=ADMIN)

        assert locked.status_code == 200
        assert locked.json()["status"] == "locked"
        assert finalized.status_code == 200
        assert finalized.json()["status"] == "finalized"
        assert finalized.json()["finalized_by"] == "admin-1"

    def test_finalize_generated_invoice_returns_409(self, client, make_invoice):
        invoice = make_invoice()

        response = client.post(f"/invoices/{invoice.id}/finalize", headers=ADMIN)

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "ERR_INVALID_TRANSITION"
        assert data["details"]["current_status"] == "generated"

    def test_lab_staff_cannot_lock(self, client, make_invoice):
        invoice = make_invoice()

        response = client.post(f"/invoices/{invoice.id}/lock", headers=STAFF)

        assert response.status_code == 403
