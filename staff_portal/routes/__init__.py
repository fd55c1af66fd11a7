from .auth_routes import auth_bp
from .reservation_routes import reservation_bp
from .loyalty_routes import loyalty_bp
from .menu_routes import menu_bp
from .content_routes import content_bp
from .notification_routes import notification_bp
from .webhook_routes import webhook_bp
from .order_routes import order_bp
from .analytics_routes import analytics_bp
from .upload_routes import upload_bp
from .sync_routes import sync_bp

def register_routes(app):
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(reservation_bp, url_prefix="/api/reservations")
    app.register_blueprint(loyalty_bp, url_prefix="/api/loyalty")
    app.register_blueprint(menu_bp, url_prefix="/api")
    app.register_blueprint(content_bp, url_prefix="/api")
    app.register_blueprint(notification_bp, url_prefix="/api/notifications")
    app.register_blueprint(webhook_bp, url_prefix="/api/webhook")
    app.register_blueprint(order_bp, url_prefix="/api/orders")
    app.register_blueprint(analytics_bp, url_prefix="/api")
    app.register_blueprint(upload_bp, url_prefix="/api")
    app.register_blueprint(sync_bp, url_prefix="/api/sync")
