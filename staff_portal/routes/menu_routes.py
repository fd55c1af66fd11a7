# routes/menu_routes.py
"""
Menu management.

Endpoints:
- GET    /api/dishes                       -> public menu (category_id, available filters)
- POST   /api/dishes                       -> add dish (staff)
- PUT    /api/dishes/<id>                  -> update dish (staff)
- DELETE /api/dishes/<id>                  -> delete dish (staff)
- PATCH  /api/dishes/<id>/availability     -> toggle availability (staff)
- GET    /api/categories                   -> categories by order_index
- POST   /api/categories                   -> add category (staff)
"""
from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import Category, Dish, isoformat
from staff_portal.auth import staff_required
from staff_portal.activity import record_activity

menu_bp = Blueprint("menu", __name__)

DISH_FIELDS = ["name", "short_desc", "full_desc", "price", "currency", "category_id", "image_url", "available"]


def serialize_dish(d):
    return {
        "id": d.id,
        "name": d.name,
        "short_desc": d.short_desc or "",
        "full_desc": d.full_desc or "",
        "price": float(d.price or 0),
        "currency": d.currency or "USD",
        "category_id": d.category_id,
        "category": d.category.name if d.category else None,
        "image_url": d.image_url,
        "available": d.available,
        "updated_at": isoformat(d.updated_at),
    }


def serialize_category(c):
    return {"id": c.id, "name": c.name, "order_index": c.order_index}


def _clean_dish_fields(data, partial=False):
    """Validate and coerce incoming dish fields; raises ValueError."""
    values = {k: data[k] for k in DISH_FIELDS if k in data}

    if not partial or "name" in values:
        name = values.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise ValueError("name is required")
        values["name"] = name

    if "price" in values:
        try:
            price = Decimal(str(values["price"]))
        except InvalidOperation:
            raise ValueError("price must be a number")
        if not price.is_finite():
            raise ValueError("price must be a finite number")
        if price < 0:
            raise ValueError("price must not be negative")
        values["price"] = price

    if "currency" in values:
        currency = str(values["currency"] or "USD").upper()
        if len(currency) != 3:
            raise ValueError("currency must be a 3-letter code")
        values["currency"] = currency

    if values.get("category_id") is not None:
        if isinstance(values["category_id"], bool) or not isinstance(values["category_id"], int):
            raise ValueError("category_id must be an integer")
        if not db.session.get(Category, values["category_id"]):
            raise ValueError("Unknown category_id")

    if "available" in values:
        values["available"] = bool(values["available"])
    return values


# ---------------------- DISHES ----------------------
@menu_bp.route("/dishes", methods=["GET"])
def list_dishes():
    query = Dish.query
    category_id = request.args.get("category_id", type=int)
    available = request.args.get("available")
    if category_id:
        query = query.filter_by(category_id=category_id)
    if available in ("true", "false"):
        query = query.filter_by(available=available == "true")
    dishes = query.order_by(Dish.name).all()
    return jsonify({"dishes": [serialize_dish(d) for d in dishes]})


@menu_bp.route("/dishes", methods=["POST"])
@staff_required()
def add_dish(staff):
    data = request.get_json(silent=True) or {}
    try:
        values = _clean_dish_fields(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    dish = Dish(**values)
    db.session.add(dish)
    try:
        db.session.flush()
        record_activity(staff, "create_dish", "dish", dish.id, {"name": dish.name})
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error creating dish")
        return jsonify({"error": "Failed to create dish"}), 500
    return jsonify({"message": "Dish added", "dish": serialize_dish(dish)}), 201


@menu_bp.route("/dishes/<int:dish_id>", methods=["PUT"])
@staff_required()
def update_dish(staff, dish_id):
    dish = db.session.get(Dish, dish_id)
    if not dish:
        return jsonify({"error": "Dish not found"}), 404
    data = request.get_json(silent=True) or {}
    try:
        values = _clean_dish_fields(data, partial=True)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    for key, value in values.items():
        setattr(dish, key, value)
    record_activity(staff, "update_dish", "dish", dish.id, {"fields": sorted(values)})
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error updating dish %s", dish_id)
        return jsonify({"error": "Failed to update dish"}), 500
    return jsonify({"message": "Dish updated", "dish": serialize_dish(dish)})


@menu_bp.route("/dishes/<int:dish_id>", methods=["DELETE"])
@staff_required()
def delete_dish(staff, dish_id):
    dish = db.session.get(Dish, dish_id)
    if not dish:
        return jsonify({"error": "Dish not found"}), 404
    name = dish.name
    db.session.delete(dish)
    record_activity(staff, "delete_dish", "dish", dish_id, {"name": name})
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error deleting dish %s", dish_id)
        return jsonify({"error": "Failed to delete dish"}), 500
    return jsonify({"message": f"Dish {name} deleted"})


@menu_bp.route("/dishes/<int:dish_id>/availability", methods=["PATCH"])
@staff_required()
def toggle_dish_availability(staff, dish_id):
    dish = db.session.get(Dish, dish_id)
    if not dish:
        return jsonify({"error": "Dish not found"}), 404
    dish.available = not dish.available
    record_activity(staff, "toggle_dish_availability", "dish", dish.id, {"available": dish.available})
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error toggling availability for dish %s", dish_id)
        return jsonify({"error": "Failed to update dish availability"}), 500
    return jsonify({"message": f"Dish availability set to {dish.available}", "dish": serialize_dish(dish)})


# ---------------------- CATEGORIES ----------------------
@menu_bp.route("/categories", methods=["GET"])
def list_categories():
    categories = Category.query.order_by(Category.order_index, Category.name).all()
    return jsonify({"categories": [serialize_category(c) for c in categories]})


@menu_bp.route("/categories", methods=["POST"])
@staff_required()
def add_category(staff):
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        return jsonify({"error": "name is required"}), 400
    try:
        order_index = int(data.get("order_index", 0))
    except (TypeError, ValueError):
        return jsonify({"error": "order_index must be an integer"}), 400

    category = Category(name=name, order_index=order_index)
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": f"Category {name} already exists"}), 409
    return jsonify({"message": "Category added", "category": serialize_category(category)}), 201
