from app.models.email_log import EmailLog
from app.models.payment import PaymentTransaction

STAY = {
    "houseboatId": "boat-1",
    "clientName": "Joana Reis",
    "clientEmail": "Joana@Example.com",
    "startTime": "2030-06-03T14:00:00Z",
    "endTime": "2030-06-06T10:00:00Z",
    "numberOfGuests": 2,
    "source": "phone",
}


def test_manual_booking_is_priced_from_the_boat_model(client, staff_headers, catalog):
    res = client.post("/api/v1/bookings", json=STAY, headers=staff_headers)

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["totalPrice"] == 376.0
    assert body["clientEmail"] == "joana@example.com"
    assert body["status"] == "Pending"
    assert body["paymentStatus"] == "unpaid"


def test_initial_payment_confirms_booking(client, db, staff_headers, catalog):
    res = client.post(
        "/api/v1/bookings",
        json={**STAY, "price": 500, "initialPaymentAmount": 150, "initialPaymentMethod": "cash"},
        headers=staff_headers,
    )
    body = res.json()

    assert body["totalPrice"] == 500.0
    assert body["amountPaid"] == 150.0
    assert body["paymentStatus"] == "deposit_paid"
    assert body["status"] == "Confirmed"
    assert db.query(PaymentTransaction).filter(PaymentTransaction.booking_id == body["id"]).count() == 1


def test_double_booking_a_boat_is_a_conflict(client, staff_headers, catalog):
    assert client.post("/api/v1/bookings", json=STAY, headers=staff_headers).status_code == 200

    clash = {**STAY, "startTime": "2030-06-05T14:00:00Z", "endTime": "2030-06-08T10:00:00Z"}
    assert client.post("/api/v1/bookings", json=clash, headers=staff_headers).status_code == 409

    turnover = {**STAY, "startTime": "2030-06-06T10:00:00Z", "endTime": "2030-06-08T10:00:00Z"}
    assert client.post("/api/v1/bookings", json=turnover, headers=staff_headers).status_code == 200


def test_cancel_frees_the_boat_and_notifies(client, db, staff_headers, catalog):
    booking_id = client.post("/api/v1/bookings", json={**STAY, "status": "Confirmed"}, headers=staff_headers).json()["id"]

    res = client.put(f"/api/v1/bookings/{booking_id}", json={"status": "Cancelled"}, headers=staff_headers)
    assert res.status_code == 200
    assert res.json()["status"] == "Cancelled"
    assert db.query(EmailLog).filter(EmailLog.template == "status_update").count() == 1

    assert client.post("/api/v1/bookings", json=STAY, headers=staff_headers).status_code == 200


def test_moving_onto_a_taken_boat_is_refused(client, staff_headers, catalog):
    client.post("/api/v1/bookings", json=STAY, headers=staff_headers)
    other = client.post("/api/v1/bookings", json={**STAY, "houseboatId": "boat-2"}, headers=staff_headers).json()

    res = client.put(f"/api/v1/bookings/{other['id']}", json={"houseboatId": "boat-1"}, headers=staff_headers)
    assert res.status_code == 409


def test_price_change_rederives_payment_status(client, staff_headers, catalog):
    b = client.post("/api/v1/bookings", json={**STAY, "price": 300, "initialPaymentAmount": 300}, headers=staff_headers).json()
    assert b["paymentStatus"] == "fully_paid"

    res = client.put(f"/api/v1/bookings/{b['id']}", json={"price": 600}, headers=staff_headers)
    assert res.json()["paymentStatus"] == "deposit_paid"
    assert res.json()["remaining"] == 300.0


def test_get_includes_transactions_and_delete_removes_them(client, db, staff_headers, catalog):
    b = client.post("/api/v1/bookings", json={**STAY, "price": 300, "initialPaymentAmount": 100}, headers=staff_headers).json()

    detail = client.get(f"/api/v1/bookings/{b['id']}", headers=staff_headers).json()
    assert [t["amount"] for t in detail["transactions"]] == [100.0]

    assert client.delete(f"/api/v1/bookings/{b['id']}", headers=staff_headers).json() == {"ok": True}
    assert client.get(f"/api/v1/bookings/{b['id']}", headers=staff_headers).status_code == 404
    assert db.query(PaymentTransaction).count() == 0


def test_list_filters_by_boat(client, staff_headers, catalog):
    client.post("/api/v1/bookings", json=STAY, headers=staff_headers)
    client.post("/api/v1/bookings", json={**STAY, "houseboatId": "boat-2"}, headers=staff_headers)

    rows = client.get("/api/v1/bookings", params={"houseboatId": "boat-2"}, headers=staff_headers).json()
    assert [r["houseboatId"] for r in rows] == ["boat-2"]


def test_bookings_require_auth(client):
    assert client.get("/api/v1/bookings").status_code == 401
