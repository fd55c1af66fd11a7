import json
from datetime import date

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from staff_portal.app import create_app
from staff_portal.config import TestConfig
from staff_portal.extensions import db
from staff_portal.models import Reservation, ReservationStatus, StaffRole, StaffUser
from staff_portal.routes.webhook_routes import compute_signature

PASSWORD = "s3cret-pass"


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def staff_users(app):
    """One active staff user per role, keyed by role name."""
    # Cheap hash keeps the suite fast
    password_hash = generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000")
    users = {}
    for role in StaffRole:
        staff = StaffUser(
            username=role.value,
            email=f"{role.value}@portantonio.com",
            first_name=role.value.title(),
            last_name="Tester",
            role=role.value,
            password_hash=password_hash,
        )
        db.session.add(staff)
        users[role.value] = staff
    db.session.commit()
    return users


@pytest.fixture
def auth(staff_users):
    def _headers(role="worker"):
        staff = staff_users[role]
        token = create_access_token(identity=str(staff.id), additional_claims={"role": staff.role})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_reservation(staff_users):
    def _make(**overrides):
        values = {
            "customer_name": "Ada Lovelace",
            "customer_email": "ada@example.com",
            "customer_phone": "+15550001",
            "party_size": 4,
            "reservation_date": date(2026, 11, 2),
            "reservation_time": "19:30",
            "status": ReservationStatus.PENDING.value,
            "source": "staff",
            "created_by": staff_users["worker"].id,
            "created_by_name": staff_users["worker"].full_name,
        }
        values.update(overrides)
        r = Reservation(**values)
        db.session.add(r)
        db.session.commit()
        return r
    return _make


@pytest.fixture
def post_signed(client, app):
    """POST a JSON body with a valid webhook signature."""
    def _post(url, payload, signature=None):
        body = json.dumps(payload).encode()
        if signature is None:
            signature = compute_signature(body, app.config["WEBHOOK_SECRET"])
        return client.post(url, data=body, content_type="application/json",
                           headers={"X-Webhook-Signature": signature})
    return _post
