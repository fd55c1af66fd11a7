# routes/analytics_routes.py
"""
Website analytics, dashboard metrics and the owner value report.

Endpoints:
- POST /api/analytics/batch    -> ingest tracked events (public, from the website)
- GET  /api/analytics/metrics  -> visitor / funnel metrics (owner / admin)
- GET  /api/metrics            -> staff dashboard counters
- GET  /api/reports/value      -> value KPIs as JSON or xlsx (owner)
- GET  /api/activity           -> staff activity log (owner / admin)
"""
import io
from datetime import datetime, timezone

import pandas as pd
from flask import Blueprint, request, jsonify, current_app, send_file
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import AnalyticsEvent, StaffActivity, StaffRole, Visitor, isoformat
from staff_portal.auth import staff_required, ANALYTICS_ROLES
from staff_portal.analytics import (
    dashboard_metrics, finite_number, get_analytics_metrics, scalar_text, value_report_kpis,
)

analytics_bp = Blueprint("analytics", __name__)

MAX_DAYS = 365
MAX_ACTIVITY = 500
TEXT_PROPS = ("page", "selector")
NUMBER_PROPS = ("time_on_page", "timeOnPage")


def parse_event_time(value):
    """Event timestamps arrive as ISO strings or epoch milliseconds; stored as naive UTC."""
    if value is None:
        return datetime.utcnow()
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return datetime.utcnow()
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def clean_event_props(props):
    """Drop property values the metrics cannot group by or average."""
    if not isinstance(props, dict):
        return {}
    cleaned = dict(props)
    for key in TEXT_PROPS:
        if key in cleaned and scalar_text(cleaned[key]) is None:
            del cleaned[key]
    for key in NUMBER_PROPS:
        if key in cleaned and finite_number(cleaned[key]) is None:
            del cleaned[key]
    return cleaned


def _int_arg(name, default, minimum, maximum):
    value = request.args.get(name, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")
    if value < minimum or value > maximum:
        raise ValueError(f"{name} must be between {minimum} and {maximum}")
    return value


# ------------------ EVENT INGESTION ------------------
@analytics_bp.route("/analytics/batch", methods=["POST"])
def ingest_batch():
    data = request.get_json(silent=True) or {}
    events = data.get("events")
    visitor_id = data.get("visitorId")
    if not isinstance(events, list) or not visitor_id:
        return jsonify({"error": "Invalid payload"}), 400
    visitor_id = str(visitor_id)

    now = datetime.utcnow()
    visitor = db.session.get(Visitor, visitor_id)
    if visitor is None:
        visitor = Visitor(visitor_id=visitor_id, first_seen=now)
        db.session.add(visitor)
    visitor.last_seen = now
    if data.get("visitorMeta"):
        visitor.device_meta = data["visitorMeta"]

    processed = 0
    for event in events:
        if not isinstance(event, dict) or not event.get("event_name"):
            continue
        db.session.add(AnalyticsEvent(
            visitor_id=visitor_id,
            event_name=str(event["event_name"]),
            event_props=clean_event_props(event.get("event_props")),
            url=event.get("url"),
            referrer=event.get("referrer"),
            created_at=parse_event_time(event.get("timestamp")),
        ))
        processed += 1

    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Analytics batch insert failed")
        return jsonify({"error": "Failed to store events"}), 500
    current_app.logger.debug("Stored %s analytics events for visitor %s", processed, visitor_id)
    return jsonify({"success": True, "eventsProcessed": processed})


# ------------------ METRICS ------------------
@analytics_bp.route("/analytics/metrics", methods=["GET"])
@staff_required(*ANALYTICS_ROLES, error="Owner or admin access required")
def analytics_metrics(staff):
    try:
        days = _int_arg("days", 30, 1, MAX_DAYS)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(get_analytics_metrics(days))


@analytics_bp.route("/metrics", methods=["GET"])
@staff_required()
def dashboard(staff):
    return jsonify(dashboard_metrics())


# ------------------ VALUE REPORT ------------------
@analytics_bp.route("/reports/value", methods=["GET"])
@staff_required(StaffRole.OWNER.value, error="Owner access required")
def value_report(staff):
    try:
        period = _int_arg("period", 30, 1, MAX_DAYS)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    fmt = request.args.get("format", "json")
    if fmt not in ("json", "xlsx"):
        return jsonify({"error": "format must be json or xlsx"}), 400

    kpis = value_report_kpis(period, current_app.config["AVG_BOOKING_VALUE"])
    if fmt == "json":
        return jsonify({"success": True, "report": kpis, "generatedAt": datetime.utcnow().isoformat()})

    summary = {k: v for k, v in kpis.items() if k != "statusBreakdown"}
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame(list(summary.items()), columns=["Metric", "Value"])\
            .to_excel(writer, sheet_name="Summary", index=False)
        pd.DataFrame(list(kpis["statusBreakdown"].items()), columns=["Status", "Reservations"])\
            .to_excel(writer, sheet_name="Reservations", index=False)
    buffer.seek(0)
    return send_file(
        buffer,
        as_attachment=True,
        download_name=f"value_report_{period}d_{datetime.utcnow().strftime('%Y%m%d')}.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


# ------------------ STAFF ACTIVITY ------------------
@analytics_bp.route("/activity", methods=["GET"])
@staff_required(*ANALYTICS_ROLES)
def staff_activity(staff):
    try:
        limit = _int_arg("limit", 100, 1, MAX_ACTIVITY)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    query = StaffActivity.query
    if request.args.get("entityType"):
        query = query.filter_by(entity_type=request.args["entityType"])
    rows = query.order_by(StaffActivity.created_at.desc(), StaffActivity.id.desc()).limit(limit).all()
    return jsonify({"activity": [{
        "id": a.id,
        "userId": a.user_id,
        "userName": a.user_name,
        "action": a.action,
        "entityType": a.entity_type,
        "entityId": a.entity_id,
        "details": a.details or {},
        "createdAt": isoformat(a.created_at),
    } for a in rows]})
