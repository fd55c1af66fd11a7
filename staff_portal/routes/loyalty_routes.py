# routes/loyalty_routes.py
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import LoyaltyTransaction, TransactionType, isoformat
from staff_portal.auth import staff_required, optional_staff, MANAGEMENT_ROLES
from staff_portal.activity import record_activity
from staff_portal.loyalty import (
    award_points, adjust_points, lookup_account, LoyaltyError, ADJUSTMENT_TYPES,
)

loyalty_bp = Blueprint("loyalty", __name__)

HISTORY_LIMIT = 50
RECENT_ACTIVITY = 10


def serialize_account(account):
    return {
        "id": account.id,
        "userId": account.user_id,
        "email": account.email,
        "phone": account.phone,
        "points": account.points,
        "tier": account.tier,
        "totalEarned": account.total_earned,
        "totalRedeemed": account.total_redeemed,
        "createdAt": isoformat(account.created_at),
        "updatedAt": isoformat(account.updated_at),
    }


def _positive_int(value):
    points = int(value)
    if points <= 0:
        raise ValueError
    return points


# ------------------ AWARD ------------------
@loyalty_bp.route("/award", methods=["POST"])
def award():
    data = request.get_json(silent=True) or {}
    user_id, email, phone = data.get("userId"), data.get("email"), data.get("phone")

    if not data.get("points") or not data.get("reason"):
        return jsonify({"error": "Points and reason are required"}), 400
    if not (user_id or email or phone):
        return jsonify({"error": "User identifier required (userId, email, or phone)"}), 400
    try:
        points = _positive_int(data["points"])
    except (TypeError, ValueError):
        return jsonify({"error": "Points must be a positive integer"}), 400

    staff = optional_staff()
    try:
        transaction, account = award_points(
            points,
            data["reason"],
            user_id=user_id,
            email=email,
            phone=phone,
            reference_type=data.get("referenceType"),
            reference_id=data.get("referenceId"),
            staff_user_id=staff.id if staff else None,
            metadata=data.get("metadata") or {},
        )
        if staff:
            record_activity(staff, "award_loyalty_points", "loyalty_transaction", transaction.id, {
                "points": points,
                "reason": data["reason"],
                "customer_identifier": user_id or email or phone,
                "reference_type": data.get("referenceType"),
                "reference_id": data.get("referenceId"),
            })
        db.session.commit()
    except LoyaltyError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error awarding loyalty points")
        return jsonify({"error": "Failed to award points"}), 500

    return jsonify({
        "success": True,
        "message": f"Successfully awarded {points} points",
        "transactionId": transaction.id,
        "accountId": account.id,
        "newBalance": account.points,
    })


# ------------------ LOOKUP ------------------
@loyalty_bp.route("/<identifier>", methods=["GET"])
@staff_required()
def get_account(staff, identifier):
    lookup_type = request.args.get("type", "userId")
    if lookup_type not in ("userId", "email", "phone"):
        return jsonify({"error": "type must be userId, email, or phone"}), 400

    account = lookup_account(identifier, lookup_type)
    if not account:
        return jsonify({"account": None, "transactions": [], "message": "No loyalty account found"})

    transactions = account.transactions\
        .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())\
        .limit(HISTORY_LIMIT).all()

    total_earned = sum(t.points for t in transactions if t.transaction_type == TransactionType.EARN.value)
    total_redeemed = sum(
        abs(t.points) for t in transactions
        if t.transaction_type in (TransactionType.REDEEM.value, TransactionType.EXPIRE.value)
    )

    recent = [{
        "id": t.id,
        "type": t.transaction_type,
        "points": t.points,
        "reason": t.reason,
        "date": isoformat(t.created_at),
        "staffUser": t.staff_user.full_name if t.staff_user else "System",
        "expiresAt": isoformat(t.expires_at),
    } for t in transactions[:RECENT_ACTIVITY]]

    return jsonify({
        "account": serialize_account(account),
        "transactions": recent,
        "summary": {
            "currentBalance": account.points,
            "totalEarned": total_earned,
            "totalRedeemed": total_redeemed,
            "totalTransactions": len(transactions),
            "tier": account.tier,
        },
    })


# ------------------ MANUAL ADJUSTMENT ------------------
@loyalty_bp.route("/<user_id>", methods=["POST"])
@staff_required(*MANAGEMENT_ROLES, error="Admin access required for manual adjustments")
def manual_adjustment(staff, user_id):
    data = request.get_json(silent=True) or {}
    points, reason, adjustment_type = data.get("points"), data.get("reason"), data.get("adjustmentType")

    if not points or not reason or not adjustment_type:
        return jsonify({"error": "Points, reason, and adjustment type are required"}), 400
    if adjustment_type not in ADJUSTMENT_TYPES:
        return jsonify({"error": "Invalid adjustment type. Must be earn, redeem, or adjust"}), 400
    try:
        points = int(points)
    except (TypeError, ValueError):
        return jsonify({"error": "Points must be an integer"}), 400

    account = lookup_account(user_id, "userId")
    if not account:
        return jsonify({"error": "Loyalty account not found"}), 404

    try:
        transaction = adjust_points(account, adjustment_type, points, reason, staff)
        record_activity(staff, "manual_loyalty_adjustment", "loyalty_transaction", transaction.id, {
            "customer_id": user_id,
            "points": transaction.points,
            "reason": reason,
            "adjustment_type": adjustment_type,
        })
        db.session.commit()
    except LoyaltyError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error creating loyalty transaction")
        return jsonify({"error": "Failed to adjust points"}), 500

    verb = "deducted" if adjustment_type == TransactionType.REDEEM.value else "added"
    return jsonify({
        "success": True,
        "message": f"Successfully {verb} {abs(transaction.points)} points",
        "newBalance": account.points,
        "transaction": {
            "id": transaction.id,
            "points": transaction.points,
            "reason": transaction.reason,
            "createdAt": isoformat(transaction.created_at),
        },
    })
