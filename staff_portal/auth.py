# ---------------------------- auth.py ----------------------------
"""Staff authentication helpers shared by every blueprint.

Tokens are issued by Flask-JWT-Extended with the staff id as identity and the
role as an additional claim. The role in the token is informational only: the
decorators always re-read the staff row so that deactivated users or role
changes take effect immediately.
"""
from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt_identity, jwt_required, verify_jwt_in_request

from .extensions import db
from .models import StaffRole, StaffUser

ALL_ROLES = tuple(r.value for r in StaffRole)
MANAGEMENT_ROLES = (StaffRole.OWNER.value, StaffRole.ADMIN.value, StaffRole.MANAGER.value)
ANALYTICS_ROLES = (StaffRole.OWNER.value, StaffRole.ADMIN.value)


def load_staff(identity):
    if identity is None:
        return None
    try:
        staff_id = int(identity)
    except (TypeError, ValueError):
        return None
    staff = db.session.get(StaffUser, staff_id)
    if staff is None or not staff.is_active:
        return None
    return staff


def staff_required(*roles, error="Insufficient permissions"):
    """Require a valid token for an active staff user, optionally in `roles`.

    The staff row is passed to the view as its first positional argument.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            staff = load_staff(get_jwt_identity())
            if staff is None:
                return jsonify({"error": "Staff access required"}), 403
            if roles and staff.role not in roles:
                return jsonify({"error": error}), 403
            return fn(staff, *args, **kwargs)
        return wrapper
    return decorator


def optional_staff():
    """Return the staff user behind the request token, or None without one."""
    verify_jwt_in_request(optional=True)
    return load_staff(get_jwt_identity())
