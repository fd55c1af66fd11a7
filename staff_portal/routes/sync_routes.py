# routes/sync_routes.py
"""
Menu and legal-page exchange with the customer website, authenticated with X-API-Key.

Endpoints:
- GET  /api/sync/menu   -> customer website menu (staff)
- POST /api/sync/menu   -> push menu updates to the customer website (staff)
- GET  /api/sync/legal  -> customer website legal pages (staff)
"""
from datetime import datetime

import requests
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.auth import staff_required
from staff_portal.activity import record_activity
from staff_portal.extensions import db

sync_bp = Blueprint("sync", __name__)


def customer_request(method, path, payload=None, params=None, failure="Customer website request failed"):
    """Call the customer website; returns (response, None) or (None, error response)."""
    api_key = current_app.config.get("CUSTOMER_API_KEY")
    if not api_key:
        return None, (jsonify({"error": "Customer API key not configured"}), 500)

    url = f"{current_app.config['CUSTOMER_WEBSITE_URL'].rstrip('/')}{path}"
    try:
        response = requests.request(
            method,
            url,
            json=payload,
            params=params,
            headers={"X-API-Key": api_key, "Content-Type": "application/json"},
            timeout=current_app.config["CUSTOMER_SYNC_TIMEOUT"],
        )
    except requests.RequestException as e:
        current_app.logger.exception("Customer website request %s %s failed", method, url)
        return None, (jsonify({"error": "Failed to connect to customer website", "details": str(e)}), 500)

    if not response.ok:
        current_app.logger.warning("Customer website %s %s returned %s", method, url, response.status_code)
        return None, (jsonify({"error": failure, "status": response.status_code}), 502)
    return response, None


def json_body(response):
    try:
        return response.json()
    except ValueError:
        return None


def _fetched(path, failure):
    response, error = customer_request("GET", path, failure=failure)
    if error:
        return error
    data = json_body(response)
    if data is None:
        return jsonify({"error": "Customer website returned invalid JSON"}), 502
    return jsonify({
        "success": True,
        "data": data,
        "source": "customer_website",
        "fetched_at": datetime.utcnow().isoformat(),
    })


@sync_bp.route("/menu", methods=["GET"])
@staff_required()
def fetch_customer_menu(staff):
    return _fetched("/api/menu", "Failed to fetch menu from customer website")


@sync_bp.route("/legal", methods=["GET"])
@staff_required()
def fetch_customer_legal_pages(staff):
    return _fetched("/api/legal", "Failed to fetch legal pages from customer website")


@sync_bp.route("/menu", methods=["POST"])
@staff_required()
def push_customer_menu(staff):
    updates = request.get_json(silent=True)
    if updates is None:
        return jsonify({"error": "Body must be valid JSON"}), 400
    response, error = customer_request("POST", "/api/menu/sync", updates,
                                       failure="Failed to sync menu to customer website")
    if error:
        return error

    record_activity(staff, "sync_menu", "menu", None, {"target": current_app.config["CUSTOMER_WEBSITE_URL"]})
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Menu pushed but the sync activity could not be saved")
        return jsonify({"error": "Failed to record menu sync"}), 500
    return jsonify({
        "success": True,
        "message": "Menu synced to customer website successfully",
        "result": json_body(response),
    })
