# routes/auth_routes.py
from datetime import datetime

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token

from staff_portal.extensions import db
from staff_portal.models import StaffUser
from staff_portal.auth import staff_required

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: {username | email, password}"""
    data = request.get_json(silent=True) or {}
    login_name = data.get("username") or data.get("email")
    password = data.get("password")
    if not login_name or not password:
        return jsonify({"error": "username (or email) and password required"}), 400

    staff = StaffUser.query.filter(
        (StaffUser.username == login_name) | (StaffUser.email == login_name)
    ).first()
    if not staff or not staff.check_password(password):
        current_app.logger.warning("Failed staff login for %s", login_name)
        return jsonify({"error": "Invalid credentials"}), 401
    if not staff.is_active:
        return jsonify({"error": "Account is disabled"}), 401

    staff.last_login_at = datetime.utcnow()
    db.session.commit()

    token = create_access_token(identity=str(staff.id), additional_claims={"role": staff.role})
    return jsonify({"access_token": token, "staff": staff.to_dict()})


@auth_bp.route("/me", methods=["GET"])
@staff_required()
def me(staff):
    return jsonify({"staff": staff.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@staff_required()
def logout(staff):
    # JWT logout is the client's responsibility (discard the token)
    return jsonify({"message": "Logged out"})
