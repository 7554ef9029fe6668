"""
Tests for the invoice request API endpoints.
"""

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
STAFF = {"X-User-Id": "staff-1", "X-User-Role": "lab_staff", "X-Lab-Id": "1"}
DOCTOR = {"X-User-Id": "doctor-1", "X-User-Role": "doctor"}


def create_request(client, order_id, headers=DOCTOR):
    return client.post(
        "/invoice-requests",
        json={"order_id": order_id, "notes": "needed for insurance"},
        headers=headers,
    )


def test_doctor_creates_request(client, make_order):
    order = make_order()

    response = create_request(client, order.id)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["requested_by"] == "doctor-1"


def test_duplicate_pending_request_returns_409(client, make_order):
    order = make_order()
    create_request(client, order.id)

    response = create_request(client, order.id)

    assert response.status_code == 409


def test_staff_approves_request(client, make_order, platform_pricing):
    order = make_order()
    request_id = create_request(client, order.id).json()["id"]

    response = client.post(f"/invoice-requests/{request_id}/approve", headers=STAFF)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "generated"
    invoice = client.get(f"/invoices/{data['invoice_id']}").json()
    assert invoice["order_id"] == order.id


def test_admin_rejects_request(client, make_order):
    order = make_order()
    request_id = create_request(client, order.id).json()["id"]

    response = client.post(
        f"/invoice-requests/{request_id}/reject",
        json={"reason": "covered by warranty"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "covered by warranty"

    pending = client.get("/invoice-requests", params={"status": "pending"}).json()
    assert pending == []


def test_unknown_request_returns_404(client):
    response = client.post("/invoice-requests/999/approve", headers=ADMIN)

    assert response.status_code == 404
    assert response.json()["details"]["resource"] == "invoice request"
