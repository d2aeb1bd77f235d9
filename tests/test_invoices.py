from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi import HTTPException

from fieldops.models.invoice import Invoice
from fieldops.models.job_activity import JobActivity
from fieldops.services.invoices import (
    approve_invoice,
    due_date_for,
    format_invoice_number,
    record_payment,
    send_invoice,
    summarize_invoices,
    update_invoice,
    void_invoice,
)
from tests.fixtures_data import auth_headers, make_company, make_job, make_user

LINES = [
    {"name": "Labour", "quantity": 2, "cost": 40, "price": 100, "discount": 10, "tax": 10},
    {"name": "Parts", "quantity": 1, "cost": 20, "price": 50, "markup": 30, "tax": 10},
]


def _setup(db_session):
    company = make_company(db_session)
    admin = make_user(db_session, company, email="admin@example.com", role="admin")
    job = make_job(db_session, company, title="Kitchen rewire")
    return company, admin, job


def test_format_invoice_number():
    assert format_invoice_number(42, year=2024) == "INV-2024-00042"


@pytest.mark.parametrize(
    ("period", "expected"),
    [
        ("DUE_ON_RECEIPT", date(2024, 3, 1)),
        ("7_DAYS", date(2024, 3, 8)),
        ("30_days", date(2024, 3, 31)),
        (None, date(2024, 3, 15)),
        ("WHENEVER", date(2024, 3, 15)),
    ],
)
def test_due_date_for(period, expected):
    assert due_date_for(period, date(2024, 3, 1)) == expected


def test_payment_state_machine():
    invoice = Invoice(type="SENT", status="UNPAID", total_with_tax=Decimal("110.00"), amount_paid=Decimal("0"))

    record_payment(invoice, "10.00")
    assert invoice.status == "PARTIALLY_PAID"
    assert invoice.amount_unpaid == Decimal("100.00")

    record_payment(invoice, Decimal("100"), now=datetime(2024, 5, 1))
    assert invoice.status == "PAID"
    assert invoice.type == "PAID"
    assert invoice.paid_at == datetime(2024, 5, 1)


@pytest.mark.parametrize("amount", ["0", "-5", "200"])
def test_invalid_payments_are_rejected(amount):
    invoice = Invoice(type="SENT", status="UNPAID", total_with_tax=Decimal("110.00"), amount_paid=Decimal("0"))

    with pytest.raises(HTTPException) as exc:
        record_payment(invoice, amount)

    assert exc.value.status_code == 400


def test_send_sets_due_date_and_rejects_void():
    invoice = Invoice(type="APPROVED", payment_period="7_DAYS")
    send_invoice(invoice, now=datetime(2024, 1, 10, 9, 30))
    assert invoice.delivery_status == "SENT"
    assert invoice.type == "SENT"
    assert invoice.due_date == date(2024, 1, 17)

    with pytest.raises(HTTPException) as exc:
        send_invoice(Invoice(type="VOID"))
    assert exc.value.status_code == 409


def test_approve_only_from_draft():
    assert approve_invoice(Invoice(type="DRAFT")).type == "APPROVED"
    with pytest.raises(HTTPException):
        approve_invoice(Invoice(type="SENT"))


@pytest.mark.parametrize("invoice_type", ["DRAFT", "VOID"])
def test_payments_need_an_issued_invoice(invoice_type):
    invoice = Invoice(type=invoice_type, status="UNPAID", total_with_tax=Decimal("110.00"), amount_paid=Decimal("0"))

    with pytest.raises(HTTPException) as exc:
        record_payment(invoice, "10.00")

    assert exc.value.status_code == 409
    assert invoice.amount_paid == Decimal("0")


def test_approve_derives_status_from_amounts():
    invoice = Invoice(type="DRAFT", status="PAID", total_with_tax=Decimal("110.00"), amount_paid=Decimal("0"))

    approve_invoice(invoice)

    assert invoice.type == "APPROVED"
    assert invoice.status == "UNPAID"
    assert invoice.amount_unpaid == Decimal("110.00")


def test_new_lines_recompute_payment_status():
    invoice = Invoice(
        type="SENT",
        status="PARTIALLY_PAID",
        pricing_mode="full",
        total_with_tax=Decimal("253.00"),
        amount_paid=Decimal("110.00"),
    )

    update_invoice(invoice, {}, [{"name": "Call out", "quantity": 1, "price": 100, "tax": 10}])

    assert invoice.total_with_tax == Decimal("110.00")
    assert invoice.amount_unpaid == Decimal("0.00")
    assert invoice.status == "PAID"
    assert invoice.type == "PAID"
    assert invoice.paid_at is not None


def test_total_below_amount_paid_is_refused():
    invoice = Invoice(
        type="SENT",
        status="PARTIALLY_PAID",
        pricing_mode="full",
        subtotal=Decimal("230.00"),
        total_with_tax=Decimal("253.00"),
        amount_paid=Decimal("100.00"),
        amount_unpaid=Decimal("153.00"),
    )

    with pytest.raises(HTTPException) as exc:
        update_invoice(invoice, {"notes": "cheaper"}, [{"name": "Call out", "quantity": 1, "price": 50}])

    assert exc.value.status_code == 409
    assert invoice.total_with_tax == Decimal("253.00")
    assert invoice.amount_unpaid == Decimal("153.00")
    assert invoice.notes is None


def test_void_rules():
    sent = Invoice(type="SENT", total_with_tax=Decimal("110.00"), amount_paid=Decimal("0"))
    assert void_invoice(sent).type == "VOID"
    assert sent.amount_unpaid == Decimal("0")
    assert void_invoice(sent).type == "VOID"

    part_paid = Invoice(type="SENT", total_with_tax=Decimal("110.00"), amount_paid=Decimal("10.00"))
    with pytest.raises(HTTPException) as exc:
        void_invoice(part_paid)
    assert exc.value.status_code == 409
    assert part_paid.type == "SENT"


def test_summary_totals():
    invoices = [
        Invoice(total_with_tax=Decimal("110"), tax_amount=Decimal("10"), amount_unpaid=Decimal("110"), amount_paid=Decimal("0")),
        Invoice(total_with_tax=Decimal("55"), tax_amount=Decimal("5"), amount_unpaid=Decimal("0"), amount_paid=Decimal("55")),
    ]

    assert summarize_invoices(invoices) == {
        "total_claimed": 165.0,
        "total_gst": 15.0,
        "total_unpaid": 110.0,
        "total_paid": 55.0,
    }


def test_create_full_invoice_via_api(client, db_session):
    company, admin, job = _setup(db_session)

    response = client.post(
        "/api/invoices",
        json={"job_id": job.id, "line_items": LINES},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    invoice = response.json()["invoice"]
    assert invoice["invoice_number"] == format_invoice_number(invoice["id"])
    assert invoice["type"] == "DRAFT"
    assert invoice["pricing_mode"] == "full"
    assert invoice["subtotal"] == 230.0
    assert invoice["tax_amount"] == 23.0
    assert invoice["total_with_tax"] == 253.0
    assert [line["total"] for line in invoice["line_items"]] == [198.0, 55.0]
    assert response.json()["margins"]["total_cost"] == 100.0

    activity = db_session.query(JobActivity).filter(JobActivity.job_id == job.id).all()
    assert [entry.type for entry in activity] == ["invoice_created"]


def test_quick_invoice_keeps_its_formula_on_update(client, db_session):
    company, admin, job = _setup(db_session)
    created = client.post(
        "/api/invoices",
        json={"job_id": job.id, "pricing": "quick", "line_items": LINES},
        headers=auth_headers(admin),
    ).json()["invoice"]

    assert created["subtotal"] == 250.0
    assert created["tax_amount"] == 25.0

    updated = client.put(
        f"/api/invoices/{created['id']}",
        json={"line_items": [{"name": "Call out", "quantity": 1, "price": 80, "discount": 50}]},
        headers=auth_headers(admin),
    )

    assert updated.status_code == 200
    body = updated.json()["invoice"]
    assert body["pricing_mode"] == "quick"
    assert body["subtotal"] == 80.0
    assert body["total_with_tax"] == 88.0


def test_invoice_lifecycle_via_api(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    invoice_id = client.post("/api/invoices", json={"job_id": job.id, "line_items": LINES}, headers=headers).json()[
        "invoice"
    ]["id"]

    assert client.post(f"/api/invoices/{invoice_id}/approve", headers=headers).json()["type"] == "APPROVED"

    sent = client.post(f"/api/invoices/{invoice_id}/send", headers=headers).json()
    assert sent["delivery_status"] == "SENT"
    assert sent["due_date"] is not None

    partial = client.post(f"/api/invoices/{invoice_id}/payments", json={"amount": 53}, headers=headers).json()
    assert partial["status"] == "PARTIALLY_PAID"
    assert partial["amount_unpaid"] == 200.0

    paid = client.post(f"/api/invoices/{invoice_id}/payments", json={"amount": 200}, headers=headers).json()
    assert paid["status"] == "PAID"

    locked = client.put(f"/api/invoices/{invoice_id}", json={"notes": "late edit"}, headers=headers)
    assert locked.status_code == 409
    assert client.delete(f"/api/invoices/{invoice_id}", headers=headers).status_code == 409

    listing = client.get("/api/invoices", headers=headers).json()
    assert listing["has_history"] is True
    assert listing["summary"]["total_paid"] == 253.0
    assert listing["invoices"][0]["job_name"] == "Kitchen rewire"


def test_staff_cannot_create_invoices(client, db_session):
    company, _admin, job = _setup(db_session)
    staff = make_user(db_session, company, email="staff@example.com", role="staff")

    response = client.post("/api/invoices", json={"job_id": job.id}, headers=auth_headers(staff))

    assert response.status_code == 403


def test_foreign_job_invoice_is_not_found(client, db_session):
    company, admin, _job = _setup(db_session)
    other_job = make_job(db_session, make_company(db_session, "Other"))

    response = client.post("/api/invoices", json={"job_id": other_job.id}, headers=auth_headers(admin))

    assert response.status_code == 404


def test_draft_can_be_deleted_and_pdf_rendered(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    invoice_id = client.post("/api/invoices", json={"job_id": job.id, "line_items": LINES}, headers=headers).json()[
        "invoice"
    ]["id"]

    pdf = client.get(f"/api/invoices/{invoice_id}/pdf", headers=headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    assert client.delete(f"/api/invoices/{invoice_id}", headers=headers).status_code == 200
    assert client.get(f"/api/invoices/{invoice_id}", headers=headers).status_code == 404


def test_job_invoices_listing(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    client.post("/api/invoices", json={"job_id": job.id}, headers=headers)
    client.post("/api/invoices", json={"job_id": job.id}, headers=headers)

    response = client.get(f"/api/jobs/{job.id}/invoices", headers=headers)

    assert response.status_code == 200
    assert len(response.json()) == 2


def test_void_via_api(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    invoice_id = client.post("/api/invoices", json={"job_id": job.id, "line_items": LINES}, headers=headers).json()[
        "invoice"
    ]["id"]

    voided = client.post(f"/api/invoices/{invoice_id}/void", headers=headers)

    assert voided.status_code == 200
    assert voided.json()["type"] == "VOID"
    assert voided.json()["amount_unpaid"] == 0.0
    assert client.post(f"/api/invoices/{invoice_id}/send", headers=headers).status_code == 409
    assert client.post(f"/api/invoices/{invoice_id}/payments", json={"amount": 10}, headers=headers).status_code == 409
    assert client.put(f"/api/invoices/{invoice_id}", json={"notes": "x"}, headers=headers).status_code == 409

    activity = db_session.query(JobActivity).filter(JobActivity.job_id == job.id).all()
    assert [entry.type for entry in activity] == ["invoice_created", "invoice_voided"]


def test_paid_invoice_cannot_be_voided_via_api(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    invoice_id = client.post("/api/invoices", json={"job_id": job.id, "line_items": LINES}, headers=headers).json()[
        "invoice"
    ]["id"]

    assert client.post(f"/api/invoices/{invoice_id}/payments", json={"amount": 10}, headers=headers).status_code == 409
    client.post(f"/api/invoices/{invoice_id}/approve", headers=headers)
    client.post(f"/api/invoices/{invoice_id}/payments", json={"amount": 10}, headers=headers)

    response = client.post(f"/api/invoices/{invoice_id}/void", headers=headers)

    assert response.status_code == 409
    assert client.get(f"/api/invoices/{invoice_id}", headers=headers).json()["invoice"]["type"] == "APPROVED"


def test_shrinking_a_part_paid_invoice_is_refused_via_api(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    invoice_id = client.post("/api/invoices", json={"job_id": job.id, "line_items": LINES}, headers=headers).json()[
        "invoice"
    ]["id"]
    client.post(f"/api/invoices/{invoice_id}/approve", headers=headers)
    client.post(f"/api/invoices/{invoice_id}/payments", json={"amount": 100}, headers=headers)

    response = client.put(
        f"/api/invoices/{invoice_id}",
        json={"line_items": [{"name": "Call out", "quantity": 1, "price": 50}]},
        headers=headers,
    )

    assert response.status_code == 409
    body = client.get(f"/api/invoices/{invoice_id}", headers=headers).json()["invoice"]
    assert body["total_with_tax"] == 253.0
    assert body["amount_unpaid"] == 153.0
    assert body["status"] == "PARTIALLY_PAID"


@pytest.mark.parametrize(
    "line",
    [
        {"name": "Parts", "quantity": 1, "price": 50, "markup": 1000},
        {"name": "Parts", "quantity": 1, "price": 50, "tax": 1000},
        {"name": "Parts", "quantity": 1, "price": 50, "discount": 101},
        {"name": "Parts", "quantity": -1, "price": 50},
    ],
)
def test_out_of_range_line_values_are_rejected(client, db_session, line):
    company, admin, job = _setup(db_session)

    response = client.post("/api/invoices", json={"job_id": job.id, "line_items": [line]}, headers=auth_headers(admin))

    assert response.status_code == 422


@pytest.mark.parametrize(("pricing", "line_total", "subtotal"), [("full", 1100.0, 1000.0), ("quick", 1000.0, 1000.0)])
def test_ten_units_at_one_hundred(client, db_session, pricing, line_total, subtotal):
    company, admin, job = _setup(db_session)
    line = {"name": "Labour", "quantity": 10, "price": 100, "discount": 0, "tax": 10}

    response = client.post(
        "/api/invoices",
        json={"job_id": job.id, "pricing": pricing, "line_items": [line]},
        headers=auth_headers(admin),
    )

    invoice = response.json()["invoice"]
    assert invoice["line_items"][0]["total"] == line_total
    assert invoice["subtotal"] == subtotal
    assert invoice["total_with_tax"] == 1100.0


def test_resaving_returned_lines_keeps_totals(client, db_session):
    company, admin, job = _setup(db_session)
    headers = auth_headers(admin)
    lines = [{"name": "Cable", "quantity": "0.333", "price": "7.775", "discount": "12.5", "tax": "10"}, *LINES]
    created = client.post("/api/invoices", json={"job_id": job.id, "line_items": lines}, headers=headers).json()[
        "invoice"
    ]

    resaved = client.put(
        f"/api/invoices/{created['id']}",
        json={"line_items": created["line_items"]},
        headers=headers,
    ).json()["invoice"]

    assert [line["total"] for line in resaved["line_items"]] == [line["total"] for line in created["line_items"]]
    assert resaved["total_with_tax"] == created["total_with_tax"]
