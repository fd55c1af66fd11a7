# routes/order_routes.py
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import Order, OrderStatus, isoformat
from staff_portal.auth import staff_required
from staff_portal.activity import record_activity

order_bp = Blueprint("orders", __name__)

ORDER_STATUSES = [s.value for s in OrderStatus]


def serialize_order(o):
    return {
        "id": o.id,
        "order_number": o.order_number,
        "customer_name": o.customer_name,
        "customer_email": o.customer_email,
        "customer_phone": o.customer_phone,
        "order_type": o.order_type,
        "delivery_address": o.delivery_address,
        "status": o.status,
        "subtotal": float(o.subtotal or 0),
        "tax_amount": float(o.tax_amount or 0),
        "delivery_fee": float(o.delivery_fee or 0),
        "total_amount": float(o.total_amount or 0),
        "payment_status": o.payment_status,
        "source": o.source,
        "items": [{
            "id": i.id,
            "menu_item_id": i.menu_item_id,
            "name": i.item_name,
            "quantity": i.quantity,
            "unit_price": float(i.unit_price),
            "total_price": float(i.total_price),
            "special_instructions": i.special_instructions,
        } for i in o.items],
        "created_at": isoformat(o.created_at),
        "updated_at": isoformat(o.updated_at),
    }


@order_bp.route("", methods=["GET"])
@staff_required()
def list_orders(staff):
    status = request.args.get("status")
    query = Order.query
    if status and status != "all":
        query = query.filter_by(status=status)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return jsonify({"orders": [serialize_order(o) for o in orders]})


@order_bp.route("/<int:order_id>/status", methods=["POST"])
@staff_required()
def update_order_status(staff, order_id):
    data = request.get_json(silent=True) or {}
    new_status = data.get("status")
    if new_status not in ORDER_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(ORDER_STATUSES)}"}), 400

    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    previous = order.status
    order.status = new_status
    if order.ticket is not None:
        order.ticket.status = new_status
    record_activity(staff, "update_order_status", "order", order.id, {
        "order_number": order.order_number,
        "previous_status": previous,
        "new_status": new_status,
    })
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error updating status for order %s", order_id)
        return jsonify({"error": "Failed to update order status"}), 500
    return jsonify({"message": f"Order status updated to {new_status}", "order": serialize_order(order)})
