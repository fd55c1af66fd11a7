# routes/reservation_routes.py
"""
Reservation routes for the staff portal.

Role required: any active staff user (export: owner / admin / manager)

Endpoints:
- GET    /api/reservations                     -> list (status, limit, offset)
- POST   /api/reservations                     -> create (status pending)
- GET    /api/reservations/export              -> Excel export
- POST   /api/reservations/<id>/confirm        -> pending -> confirmed
- POST   /api/reservations/<id>/mark-arrived   -> arrived (+ table number)
- POST   /api/reservations/<id>/mark-completed -> completed (+ loyalty points)
- POST   /api/reservations/<id>/cancel         -> cancelled (+ reason)
- POST   /api/reservations/<id>/no-show        -> no_show

completed, cancelled and no_show are terminal.
"""
import io
from datetime import date, datetime

import pandas as pd
from flask import Blueprint, request, jsonify, current_app, send_file
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import Reservation, ReservationStatus, isoformat
from staff_portal.auth import staff_required, MANAGEMENT_ROLES
from staff_portal.activity import record_activity
from staff_portal.loyalty import award_points, LoyaltyError

reservation_bp = Blueprint("reservations", __name__)

DEFAULT_PAGE_SIZE = 50


# ---------------------- Helpers ----------------------
def serialize_reservation(r):
    return {
        "id": r.id,
        "customerName": r.customer_name,
        "customerEmail": r.customer_email,
        "customerPhone": r.customer_phone,
        "partySize": r.party_size,
        "date": isoformat(r.reservation_date),
        "time": r.reservation_time,
        "tableNumber": r.table_number,
        "specialRequests": r.special_requests,
        "status": r.status,
        "source": r.source,
        "createdAt": isoformat(r.created_at),
        "updatedAt": isoformat(r.updated_at),
        "createdBy": r.created_by,
        "createdByName": r.created_by_name or "Unknown",
    }


def parse_reservation_date(value):
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_reservation_time(value):
    value = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValueError(f"Invalid time: {value}")


def parse_party_size(value):
    size = int(value)
    if size <= 0:
        raise ValueError("partySize must be positive")
    return size


def _status_payload(r, message, **extra):
    payload = {
        "success": True,
        "message": message,
        "reservation": {"id": r.id, "status": r.status, "updatedAt": isoformat(r.updated_at)},
    }
    payload["reservation"].update(extra)
    return payload


def _terminal_error(r):
    if r.status == ReservationStatus.CANCELLED.value:
        return jsonify({"error": "Reservation is already cancelled"}), 400
    return jsonify({"error": f"Reservation is already {r.status}"}), 400


def _commit(operation):
    """Commit the session; on failure roll back and return an error response."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed", operation)
        return jsonify({"error": f"Failed to {operation}"}), 500
    return None


# ---------------------- List / Create ----------------------
@reservation_bp.route("", methods=["GET"])
@staff_required()
def list_reservations(staff):
    status = request.args.get("status")
    try:
        limit = int(request.args.get("limit", DEFAULT_PAGE_SIZE))
        offset = int(request.args.get("offset", 0))
    except ValueError:
        return jsonify({"error": "limit and offset must be integers"}), 400
    if limit <= 0 or offset < 0:
        return jsonify({"error": "limit must be positive and offset non-negative"}), 400

    query = Reservation.query
    if status and status != "all":
        query = query.filter_by(status=status)
    reservations = query.order_by(Reservation.created_at.desc(), Reservation.id.desc())\
                        .offset(offset).limit(limit).all()

    data = [serialize_reservation(r) for r in reservations]
    return jsonify({
        "success": True,
        "reservations": data,
        "total": len(data),
        "pagination": {"offset": offset, "limit": limit, "hasMore": len(data) == limit},
    })


@reservation_bp.route("", methods=["POST"])
@staff_required()
def create_reservation(staff):
    data = request.get_json(silent=True) or {}
    if not all(data.get(k) for k in ("customerName", "partySize", "date", "time")):
        return jsonify({"error": "Missing required fields: customerName, partySize, date, time"}), 400

    try:
        party_size = parse_party_size(data["partySize"])
        reservation_date = parse_reservation_date(data["date"])
        reservation_time = parse_reservation_time(data["time"])
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    r = Reservation(
        customer_name=data["customerName"],
        customer_email=data.get("customerEmail") or None,
        customer_phone=data.get("customerPhone") or None,
        party_size=party_size,
        reservation_date=reservation_date,
        reservation_time=reservation_time,
        table_number=data.get("tableNumber") or None,
        special_requests=data.get("specialRequests") or None,
        status=ReservationStatus.PENDING.value,
        source="staff",
        created_by=staff.id,
        created_by_name=staff.full_name,
    )
    db.session.add(r)
    try:
        db.session.flush()
        record_activity(staff, "create_reservation", "reservation", r.id, {
            "customer_name": r.customer_name,
            "party_size": r.party_size,
            "reservation_date": isoformat(r.reservation_date),
            "reservation_time": r.reservation_time,
        })
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error creating reservation")
        return jsonify({"error": "Failed to create reservation"}), 500

    return jsonify({
        "success": True,
        "message": "Reservation created successfully",
        "reservation": serialize_reservation(r),
    }), 201


@reservation_bp.route("/export", methods=["GET"])
@staff_required(*MANAGEMENT_ROLES)
def export_reservations(staff):
    rows = []
    for r in Reservation.query.order_by(Reservation.reservation_date, Reservation.reservation_time).all():
        rows.append({
            "ID": r.id,
            "Customer": r.customer_name,
            "Email": r.customer_email,
            "Phone": r.customer_phone,
            "Party Size": r.party_size,
            "Date": isoformat(r.reservation_date),
            "Time": r.reservation_time,
            "Table": r.table_number,
            "Status": r.status,
            "Source": r.source,
        })
    df = pd.DataFrame(rows, columns=["ID", "Customer", "Email", "Phone", "Party Size",
                                     "Date", "Time", "Table", "Status", "Source"])
    buffer = io.BytesIO()
    df.to_excel(buffer, index=False)
    buffer.seek(0)
    filename = f"reservations_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return send_file(
        buffer,
        as_attachment=True,
        download_name=filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


# ---------------------- Status changes ----------------------
@reservation_bp.route("/<int:reservation_id>/confirm", methods=["POST"])
@staff_required()
def confirm_reservation(staff, reservation_id):
    r = db.session.get(Reservation, reservation_id)
    if not r:
        return jsonify({"error": "Reservation not found"}), 404
    if r.is_terminal():
        return _terminal_error(r)

    previous = r.status
    r.status = ReservationStatus.CONFIRMED.value
    record_activity(staff, "confirm_reservation", "reservation", r.id, {
        "customer_name": r.customer_name,
        "reservation_date": isoformat(r.reservation_date),
        "reservation_time": r.reservation_time,
        "previous_status": previous,
        "new_status": r.status,
    })
    error = _commit("confirm reservation")
    if error:
        return error
    return jsonify(_status_payload(r, "Reservation confirmed successfully"))


@reservation_bp.route("/<int:reservation_id>/mark-arrived", methods=["POST"])
@staff_required()
def mark_arrived(staff, reservation_id):
    data = request.get_json(silent=True) or {}
    r = db.session.get(Reservation, reservation_id)
    if not r:
        return jsonify({"error": "Reservation not found"}), 404
    if r.is_terminal():
        return _terminal_error(r)

    previous = r.status
    r.status = ReservationStatus.ARRIVED.value
    if data.get("tableNumber"):
        r.table_number = str(data["tableNumber"])
    record_activity(staff, "mark_reservation_arrived", "reservation", r.id, {
        "customer_name": r.customer_name,
        "reservation_date": isoformat(r.reservation_date),
        "reservation_time": r.reservation_time,
        "table_number": r.table_number,
        "previous_status": previous,
        "new_status": r.status,
    })
    error = _commit("mark reservation as arrived")
    if error:
        return error
    return jsonify(_status_payload(r, "Customer marked as arrived", tableNumber=r.table_number))


@reservation_bp.route("/<int:reservation_id>/mark-completed", methods=["POST"])
@staff_required()
def mark_completed(staff, reservation_id):
    data = request.get_json(silent=True) or {}
    try:
        loyalty_points = int(data.get("loyaltyPoints", current_app.config["DEFAULT_COMPLETION_POINTS"]))
    except (TypeError, ValueError):
        return jsonify({"error": "loyaltyPoints must be an integer"}), 400
    if loyalty_points < 0:
        return jsonify({"error": "loyaltyPoints must not be negative"}), 400

    r = db.session.get(Reservation, reservation_id)
    if not r:
        return jsonify({"error": "Reservation not found"}), 404
    if r.is_terminal():
        return _terminal_error(r)

    previous = r.status
    r.status = ReservationStatus.COMPLETED.value
    error = _commit("complete reservation")
    if error:
        return error

    # Loyalty failures never undo the completion
    loyalty = None
    if loyalty_points and (r.customer_email or r.customer_phone):
        try:
            transaction, account = award_points(
                loyalty_points,
                "Completed reservation",
                email=r.customer_email,
                phone=r.customer_phone,
                reference_type="reservation",
                reference_id=r.id,
                staff_user_id=staff.id,
                metadata={
                    "customer_name": r.customer_name,
                    "reservation_date": isoformat(r.reservation_date),
                    "reservation_time": r.reservation_time,
                    "party_size": r.party_size,
                },
            )
            db.session.commit()
            loyalty = {
                "pointsAwarded": loyalty_points,
                "newBalance": account.points,
                "message": f"Successfully awarded {loyalty_points} points",
            }
        except (LoyaltyError, SQLAlchemyError):
            db.session.rollback()
            current_app.logger.exception("Awarding loyalty points for reservation %s failed", r.id)

    record_activity(staff, "complete_reservation", "reservation", r.id, {
        "customer_name": r.customer_name,
        "customer_email": r.customer_email,
        "reservation_date": isoformat(r.reservation_date),
        "reservation_time": r.reservation_time,
        "party_size": r.party_size,
        "previous_status": previous,
        "new_status": r.status,
        "loyalty_points_awarded": loyalty_points if loyalty else 0,
        "loyalty_success": loyalty is not None,
    })
    error = _commit("record reservation completion")
    if error:
        return error

    payload = _status_payload(r, "Reservation completed successfully")
    if loyalty:
        payload["loyalty"] = loyalty
    return jsonify(payload)


@reservation_bp.route("/<int:reservation_id>/cancel", methods=["POST"])
@staff_required()
def cancel_reservation(staff, reservation_id):
    data = request.get_json(silent=True) or {}
    reason = data.get("reason") or "No reason provided"
    notify_customer = bool(data.get("notifyCustomer", False))

    r = db.session.get(Reservation, reservation_id)
    if not r:
        return jsonify({"error": "Reservation not found"}), 404
    if r.is_terminal():
        return _terminal_error(r)

    previous = r.status
    note = f"Cancellation reason: {reason}"
    r.special_requests = f"{r.special_requests}\n\n{note}" if r.special_requests else note
    r.status = ReservationStatus.CANCELLED.value
    record_activity(staff, "cancel_reservation", "reservation", r.id, {
        "customer_name": r.customer_name,
        "customer_email": r.customer_email,
        "reservation_date": isoformat(r.reservation_date),
        "reservation_time": r.reservation_time,
        "party_size": r.party_size,
        "previous_status": previous,
        "new_status": r.status,
        "cancellation_reason": data.get("reason"),
        "notify_customer": notify_customer,
    })
    error = _commit("cancel reservation")
    if error:
        return error
    return jsonify(_status_payload(r, "Reservation cancelled successfully"))


@reservation_bp.route("/<int:reservation_id>/no-show", methods=["POST"])
@staff_required()
def mark_no_show(staff, reservation_id):
    r = db.session.get(Reservation, reservation_id)
    if not r:
        return jsonify({"error": "Reservation not found"}), 404
    if r.is_terminal():
        return _terminal_error(r)

    previous = r.status
    r.status = ReservationStatus.NO_SHOW.value
    record_activity(staff, "mark_reservation_no_show", "reservation", r.id, {
        "customer_name": r.customer_name,
        "reservation_date": isoformat(r.reservation_date),
        "reservation_time": r.reservation_time,
        "previous_status": previous,
        "new_status": r.status,
    })
    error = _commit("mark reservation as no-show")
    if error:
        return error
    return jsonify(_status_payload(r, "Reservation marked as no-show"))
