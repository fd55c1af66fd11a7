# routes/webhook_routes.py
"""
Webhooks from the customer-facing website.

Every request must carry X-Webhook-Signature: the hex HMAC-SHA256 of the raw
request body keyed with WEBHOOK_SECRET (a "sha256=" prefix is accepted).
"""
import hashlib
import hmac
import json
from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import KitchenTicket, Order, OrderItem, OrderStatus, Reservation, ReservationStatus
from staff_portal.routes.notification_routes import create_notification
from staff_portal.routes.reservation_routes import (
    parse_party_size, parse_reservation_date, parse_reservation_time,
)

webhook_bp = Blueprint("webhooks", __name__)

ORDER_REQUIRED_FIELDS = ["order_number", "customer_name", "customer_email", "items", "total"]
RESERVATION_REQUIRED_FIELDS = ["customer_name", "customer_email", "party_size",
                               "reservation_date", "reservation_time"]


def compute_signature(payload, secret):
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload, signature, secret):
    if not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    return hmac.compare_digest(compute_signature(payload, secret), signature)


def _read_signed_json():
    """Return (data, None) or (None, error response)."""
    secret = current_app.config.get("WEBHOOK_SECRET")
    if not secret:
        current_app.logger.error("Webhook received but WEBHOOK_SECRET is not configured")
        return None, (jsonify({"error": "Webhook secret not configured"}), 500)

    payload = request.get_data()
    signature = request.headers.get("X-Webhook-Signature")
    if not signature:
        return None, (jsonify({"error": "Missing webhook signature"}), 401)
    if not verify_signature(payload, signature, secret):
        current_app.logger.warning("Rejected webhook with invalid signature from %s", request.remote_addr)
        return None, (jsonify({"error": "Invalid webhook signature"}), 401)

    try:
        data = json.loads(payload)
    except ValueError:
        return None, (jsonify({"error": "Body must be valid JSON"}), 400)
    if not isinstance(data, dict):
        return None, (jsonify({"error": "Body must be a JSON object"}), 400)
    return data, None


def _missing_field(data, fields):
    for field in fields:
        if not data.get(field):
            return field
    return None


def _money(value):
    try:
        amount = Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value}")
    return amount


def _order_exists(order_number):
    return db.session.query(Order.id).filter_by(order_number=order_number).first() is not None


# ---------------------- ORDERS ----------------------
@webhook_bp.route("/orders", methods=["POST"])
def order_webhook():
    data, error = _read_signed_json()
    if error:
        return error

    missing = _missing_field(data, ORDER_REQUIRED_FIELDS)
    if missing:
        return jsonify({"error": f"Missing required field: {missing}"}), 400
    if not isinstance(data["items"], list):
        return jsonify({"error": "items must be a list"}), 400
    if _order_exists(str(data["order_number"])):
        return jsonify({"error": f"Order {data['order_number']} already exists"}), 409

    order_type = data.get("order_type") or "takeout"
    try:
        order = Order(
            order_number=str(data["order_number"]),
            customer_name=data["customer_name"],
            customer_email=data["customer_email"],
            customer_phone=data.get("customer_phone") or None,
            order_type=order_type,
            delivery_address=data.get("delivery_address") or None,
            status=OrderStatus.PENDING.value,
            subtotal=_money(data.get("subtotal")),
            tax_amount=_money(data.get("tax")),
            delivery_fee=_money(data.get("delivery_fee")),
            total_amount=_money(data["total"]),
            payment_status=data.get("payment_status") or "pending",
            source="website",
        )
        for item in data["items"]:
            quantity = int(item.get("quantity", 1))
            unit_price = _money(item.get("price"))
            order.items.append(OrderItem(
                menu_item_id=item.get("menu_item_id"),
                item_name=item.get("name") or "Unnamed item",
                quantity=quantity,
                unit_price=unit_price,
                total_price=unit_price * quantity,
                special_instructions=item.get("special_instructions") or None,
            ))
    except (AttributeError, TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid order payload: {e}"}), 400

    instructions = "; ".join(i.get("special_instructions") for i in data["items"] if i.get("special_instructions"))
    order.ticket = KitchenTicket(
        order_number=order.order_number,
        customer_name=order.customer_name,
        items=data["items"],
        status="pending",
        priority="normal",
        special_instructions=instructions or None,
    )
    db.session.add(order)
    try:
        db.session.flush()
        create_notification(
            "New Website Order",
            f"New {order_type} order {order.order_number} from {order.customer_name}",
            {"order_id": order.id, "order_number": order.order_number,
             "total": float(order.total_amount), "source": "website"},
        )
        db.session.commit()
    except IntegrityError:
        # Concurrent delivery of the same order
        db.session.rollback()
        current_app.logger.warning("Duplicate website order %s rejected", data["order_number"])
        return jsonify({"error": f"Order {data['order_number']} already exists"}), 409
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error creating order from webhook")
        return jsonify({"error": "Failed to create order"}), 500

    current_app.logger.info("Website order %s ingested as order %s", order.order_number, order.id)
    return jsonify({"success": True, "order_id": order.id, "message": "Order created successfully"})


# ---------------------- RESERVATIONS ----------------------
@webhook_bp.route("/reservations", methods=["POST"])
def reservation_webhook():
    data, error = _read_signed_json()
    if error:
        return error

    missing = _missing_field(data, RESERVATION_REQUIRED_FIELDS)
    if missing:
        return jsonify({"error": f"Missing required field: {missing}"}), 400
    try:
        party_size = parse_party_size(data["party_size"])
        reservation_date = parse_reservation_date(data["reservation_date"])
        reservation_time = parse_reservation_time(data["reservation_time"])
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    # Website bookings arrive confirmed; the table is assigned by staff
    r = Reservation(
        customer_name=data["customer_name"],
        customer_email=data["customer_email"],
        customer_phone=data.get("customer_phone") or None,
        party_size=party_size,
        reservation_date=reservation_date,
        reservation_time=reservation_time,
        special_requests=data.get("special_requests") or None,
        status=ReservationStatus.CONFIRMED.value,
        source="website",
        table_number=None,
        created_by_name="Website",
    )
    db.session.add(r)
    try:
        db.session.flush()
        create_notification(
            "New Website Reservation",
            f"New reservation for {r.customer_name} on {r.reservation_date.isoformat()} at {r.reservation_time}",
            {"reservation_id": r.id, "party_size": r.party_size, "source": "website"},
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error creating reservation from webhook")
        return jsonify({"error": "Failed to create reservation"}), 500

    current_app.logger.info("Website reservation ingested as reservation %s", r.id)
    return jsonify({"success": True, "reservation_id": r.id, "message": "Reservation created successfully"})
