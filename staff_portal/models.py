# ---------------------------- MODELS.PY ----------------------------
from .extensions import db
from datetime import datetime
from sqlalchemy import CheckConstraint, Index
from werkzeug.security import generate_password_hash, check_password_hash
import enum


# ---------------------------- MIXINS ----------------------------
class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow,
                           onupdate=datetime.utcnow, nullable=False)


def isoformat(value):
    return value.isoformat() if value is not None else None


# ---------------------------- ENUMS ----------------------------
class StaffRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    WORKER = "worker"


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_RESERVATION_STATUSES = {
    ReservationStatus.COMPLETED.value,
    ReservationStatus.CANCELLED.value,
    ReservationStatus.NO_SHOW.value,
}


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    CANCELLED = "cancelled"


class TransactionType(str, enum.Enum):
    EARN = "earn"
    REDEEM = "redeem"
    ADJUST = "adjust"
    EXPIRE = "expire"


class LegalPageType(str, enum.Enum):
    PRIVACY = "privacy"
    TERMS = "terms"
    ACCESSIBILITY = "accessibility"


# ---------------------------- STAFF ----------------------------
class StaffUser(db.Model, TimestampMixin):
    __tablename__ = "staff_users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(100), default="", nullable=False)
    last_name = db.Column(db.String(100), default="", nullable=False)
    role = db.Column(db.String(20), default=StaffRole.WORKER.value, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    activity = db.relationship("StaffActivity", backref="user", lazy="dynamic")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.username

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "isActive": self.is_active,
            "lastLoginAt": isoformat(self.last_login_at),
        }


class StaffActivity(db.Model):
    __tablename__ = "staff_activity"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_name = db.Column(db.String(200), nullable=False)
    action = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)


# ---------------------------- RESERVATION ----------------------------
class Reservation(db.Model, TimestampMixin):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True, index=True)
    customer_phone = db.Column(db.String(32), nullable=True, index=True)
    party_size = db.Column(db.Integer, nullable=False)
    reservation_date = db.Column(db.Date, nullable=False, index=True)
    reservation_time = db.Column(db.String(10), nullable=False)
    table_number = db.Column(db.String(20), nullable=True)
    special_requests = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default=ReservationStatus.PENDING.value, nullable=False, index=True)
    source = db.Column(db.String(20), default="staff", nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True)
    created_by_name = db.Column(db.String(200), nullable=True)

    __table_args__ = (
        CheckConstraint("party_size > 0", name="reservation_party_size_check"),
    )

    def is_terminal(self):
        return self.status in TERMINAL_RESERVATION_STATUSES


# ---------------------------- LOYALTY ----------------------------
class LoyaltyAccount(db.Model, TimestampMixin):
    __tablename__ = "loyalty_accounts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=True, index=True)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    phone = db.Column(db.String(32), unique=True, nullable=True, index=True)
    points = db.Column(db.Integer, default=0, nullable=False)
    tier = db.Column(db.String(20), default="bronze", nullable=False)
    total_earned = db.Column(db.Integer, default=0, nullable=False)
    total_redeemed = db.Column(db.Integer, default=0, nullable=False)

    transactions = db.relationship("LoyaltyTransaction", back_populates="account", lazy="dynamic")

    __table_args__ = (
        CheckConstraint("points >= 0", name="loyalty_points_non_negative"),
    )


class LoyaltyTransaction(db.Model):
    __tablename__ = "loyalty_transactions"

    id = db.Column(db.Integer, primary_key=True)
    loyalty_account_id = db.Column(db.Integer, db.ForeignKey("loyalty_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_type = db.Column(db.String(20), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    reference_type = db.Column(db.String(50), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    staff_user_id = db.Column(db.Integer, db.ForeignKey("staff_users.id", ondelete="SET NULL"), nullable=True)
    meta = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=True)

    account = db.relationship("LoyaltyAccount", back_populates="transactions")
    staff_user = db.relationship("StaffUser")


# ---------------------------- MENU ----------------------------
class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    order_index = db.Column(db.Integer, default=0, nullable=False)

    dishes = db.relationship("Dish", back_populates="category", lazy="dynamic")


class Dish(db.Model, TimestampMixin):
    __tablename__ = "dishes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    short_desc = db.Column(db.String(500), default="", nullable=False)
    full_desc = db.Column(db.Text, default="", nullable=False)
    price = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    currency = db.Column(db.String(3), default="USD", nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    image_url = db.Column(db.String(500), nullable=True)
    available = db.Column(db.Boolean, default=True, nullable=False)

    category = db.relationship("Category", back_populates="dishes")

    __table_args__ = (
        CheckConstraint("price >= 0", name="dish_price_check"),
    )


# ---------------------------- CONTENT ----------------------------
class LegalPage(db.Model, TimestampMixin):
    __tablename__ = "legal_pages"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(20), unique=True, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    sections = db.Column(db.JSON, default=list, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "sections": sorted(self.sections or [], key=lambda s: s.get("order", 0)),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class FooterSettings(db.Model, TimestampMixin):
    __tablename__ = "footer_settings"

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(200), default="", nullable=False)
    description = db.Column(db.Text, default="", nullable=False)
    address = db.Column(db.Text, default="", nullable=False)
    phone = db.Column(db.String(50), default="", nullable=False)
    email = db.Column(db.String(255), default="", nullable=False)
    dining_hours = db.Column(db.String(200), default="", nullable=False)
    dining_location = db.Column(db.String(200), default="", nullable=False)
    social_links = db.Column(db.JSON, default=dict, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "company_name": self.company_name,
            "description": self.description,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "dining_hours": self.dining_hours,
            "dining_location": self.dining_location,
            "social_links": self.social_links or {},
            "updated_at": isoformat(self.updated_at),
        }


# ---------------------------- NOTIFICATION ----------------------------
class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(20), default="info", nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    meta = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    read_at = db.Column(db.DateTime, nullable=True, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "metadata": self.meta or {},
            "created_at": isoformat(self.created_at),
            "read_at": isoformat(self.read_at),
        }


# ---------------------------- ORDERS ----------------------------
class Order(db.Model, TimestampMixin):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), unique=True, nullable=False, index=True)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    order_type = db.Column(db.String(20), default="takeout", nullable=False)
    delivery_address = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default=OrderStatus.PENDING.value, nullable=False, index=True)
    subtotal = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    tax_amount = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    delivery_fee = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_status = db.Column(db.String(20), default="pending", nullable=False)
    source = db.Column(db.String(20), default="website", nullable=False)

    items = db.relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="joined")
    ticket = db.relationship("KitchenTicket", back_populates="order", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_orders_status_created", "status", "created_at"),
    )


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("dishes.id", ondelete="SET NULL"), nullable=True)
    item_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    special_instructions = db.Column(db.Text, nullable=True)

    order = db.relationship("Order", back_populates="items")


class KitchenTicket(db.Model, TimestampMixin):
    __tablename__ = "kitchen_tickets"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    order_number = db.Column(db.String(64), nullable=False)
    customer_name = db.Column(db.String(200), nullable=False)
    items = db.Column(db.JSON, nullable=False)
    status = db.Column(db.String(20), default="pending", nullable=False)
    priority = db.Column(db.String(20), default="normal", nullable=False)
    special_instructions = db.Column(db.Text, nullable=True)

    order = db.relationship("Order", back_populates="ticket")


# ---------------------------- ANALYTICS ----------------------------
class Visitor(db.Model):
    __tablename__ = "visitors"

    visitor_id = db.Column(db.String(64), primary_key=True)
    first_seen = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_seen = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    device_meta = db.Column(db.JSON, nullable=True)


class AnalyticsEvent(db.Model):
    __tablename__ = "analytics_events"

    id = db.Column(db.Integer, primary_key=True)
    visitor_id = db.Column(db.String(64), nullable=False, index=True)
    event_name = db.Column(db.String(64), nullable=False, index=True)
    event_props = db.Column(db.JSON, default=dict, nullable=False)
    url = db.Column(db.String(1000), nullable=True)
    referrer = db.Column(db.String(1000), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
