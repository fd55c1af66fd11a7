# routes/notification_routes.py
from datetime import datetime

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import Notification
from staff_portal.auth import staff_required

notification_bp = Blueprint("notifications", __name__)


def create_notification(title, message, metadata=None, type="info"):
    """Queue a staff notification on the current session; the caller commits."""
    notification = Notification(type=type, title=title, message=message, meta=metadata or {})
    db.session.add(notification)
    return notification


@notification_bp.route("", methods=["GET"])
@staff_required()
def unread_notifications(staff):
    notifications = Notification.query.filter(Notification.read_at.is_(None))\
        .order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unreadCount": len(notifications),
    })


@notification_bp.route("", methods=["PUT"])
@staff_required()
def mark_read(staff):
    data = request.get_json(silent=True) or {}
    try:
        notification_id = int(data["notificationId"])
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "notificationId required"}), 400
    notification = db.session.get(Notification, notification_id)
    if not notification:
        return jsonify({"error": "Notification not found"}), 404
    if notification.read_at is None:
        notification.read_at = datetime.utcnow()
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Error marking notification %s read", notification_id)
            return jsonify({"error": "Failed to mark notification read"}), 500
    return jsonify({"success": True})
