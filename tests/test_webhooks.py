from unittest import mock

from staff_portal.models import KitchenTicket, Notification, Order, Reservation
from staff_portal.routes.webhook_routes import compute_signature, verify_signature

ORDER = {
    "order_number": "WEB-1001",
    "customer_name": "Bob Marley",
    "customer_email": "bob@example.com",
    "order_type": "delivery",
    "delivery_address": "56 Hope Road",
    "subtotal": 30,
    "tax": 3.5,
    "delivery_fee": 5,
    "total": 38.5,
    "items": [
        {"name": "Jerk Chicken", "quantity": 2, "price": 12.5, "special_instructions": "Extra spicy"},
        {"name": "Festival", "quantity": 1, "price": 5},
    ],
}

RESERVATION = {
    "customer_name": "Rita Marley",
    "customer_email": "rita@example.com",
    "party_size": 6,
    "reservation_date": "2026-12-24",
    "reservation_time": "20:00",
}


def test_verify_signature_accepts_prefix():
    body = b'{"a": 1}'
    sig = compute_signature(body, "k")
    assert verify_signature(body, sig, "k")
    assert verify_signature(body, f"sha256={sig}", "k")
    assert not verify_signature(body, sig, "other")
    assert not verify_signature(body, None, "k")


def test_order_webhook_creates_order_ticket_and_notification(post_signed):
    res = post_signed("/api/webhook/orders", ORDER)
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True

    order = Order.query.filter_by(order_number="WEB-1001").one()
    assert order.id == body["order_id"]
    assert order.status == "pending"
    assert order.source == "website"
    assert float(order.total_amount) == 38.5
    assert sorted(i.total_price for i in order.items) == [5, 25]

    ticket = KitchenTicket.query.one()
    assert ticket.order_id == order.id
    assert ticket.special_instructions == "Extra spicy"

    notification = Notification.query.one()
    assert notification.title == "New Website Order"
    assert notification.meta["order_number"] == "WEB-1001"


def test_order_webhook_defaults_and_duplicates(post_signed):
    payload = {k: v for k, v in ORDER.items() if k != "order_type"}
    post_signed("/api/webhook/orders", payload)
    assert Order.query.one().order_type == "takeout"

    res = post_signed("/api/webhook/orders", payload)
    assert res.status_code == 409


def test_order_webhook_duplicate_race(post_signed):
    post_signed("/api/webhook/orders", ORDER)
    # A second delivery that passed the existence check before the first was stored
    with mock.patch("staff_portal.routes.webhook_routes._order_exists", return_value=False):
        res = post_signed("/api/webhook/orders", ORDER)
    assert res.status_code == 409
    assert res.get_json() == {"error": "Order WEB-1001 already exists"}
    assert Order.query.count() == 1
    assert Notification.query.count() == 1


def test_order_webhook_rejects_non_finite_amounts(post_signed):
    res = post_signed("/api/webhook/orders", {**ORDER, "total": "NaN"})
    assert res.status_code == 400
    assert Order.query.count() == 0


def test_order_webhook_missing_field(post_signed):
    res = post_signed("/api/webhook/orders", {**ORDER, "items": []})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Missing required field: items"


def test_webhook_signature_required(client, post_signed):
    res = client.post("/api/webhook/orders", json=ORDER)
    assert res.status_code == 401
    assert res.get_json()["error"] == "Missing webhook signature"

    res = post_signed("/api/webhook/orders", ORDER, signature="deadbeef")
    assert res.status_code == 401
    assert res.get_json()["error"] == "Invalid webhook signature"
    assert Order.query.count() == 0


def test_webhook_rejects_non_json(client, app):
    body = b"not json"
    res = client.post("/api/webhook/orders", data=body, headers={
        "X-Webhook-Signature": compute_signature(body, app.config["WEBHOOK_SECRET"]),
    })
    assert res.status_code == 400


def test_webhook_without_secret_configured(app, post_signed):
    app.config["WEBHOOK_SECRET"] = ""
    res = post_signed("/api/webhook/orders", ORDER, signature="anything")
    assert res.status_code == 500


def test_reservation_webhook(post_signed):
    res = post_signed("/api/webhook/reservations", RESERVATION)
    assert res.status_code == 200
    r = Reservation.query.one()
    assert r.id == res.get_json()["reservation_id"]
    assert r.status == "confirmed"
    assert r.source == "website"
    assert r.table_number is None
    assert r.created_by_name == "Website"
    assert Notification.query.one().title == "New Website Reservation"


def test_reservation_webhook_validation(post_signed):
    res = post_signed("/api/webhook/reservations", {**RESERVATION, "party_size": 0})
    assert res.status_code == 400
    res = post_signed("/api/webhook/reservations", {**RESERVATION, "reservation_time": "late"})
    assert res.status_code == 400
    assert Reservation.query.count() == 0
