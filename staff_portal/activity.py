from flask import current_app

from .extensions import db
from .models import StaffActivity


def record_activity(staff, action, entity_type, entity_id, details=None):
    """Queue a staff-activity row on the current session; the caller commits."""
    entry = StaffActivity(
        user_id=staff.id if staff else None,
        user_name=staff.full_name if staff else "System",
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details or {},
    )
    db.session.add(entry)
    current_app.logger.info("%s by %s on %s %s", action, entry.user_name, entity_type, entity_id)
    return entry
