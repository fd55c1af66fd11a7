# ---------------------------- app.py ----------------------------
from datetime import timedelta

from flask import Flask, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate, jwt
from .routes import register_routes
from .cli import register_commands


def register_error_handlers(app):

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        app.logger.exception("Unhandled error")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": "Staff authentication required"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": "Unauthorized"}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.setdefault(
        "JWT_ACCESS_TOKEN_EXPIRES", timedelta(hours=app.config["JWT_ACCESS_TOKEN_HOURS"])
    )
    # Leave headroom for the multipart envelope around an upload
    if app.config.get("MAX_CONTENT_LENGTH") is None:
        app.config["MAX_CONTENT_LENGTH"] = app.config["MAX_UPLOAD_BYTES"] * 2
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    register_error_handlers(app)
    register_routes(app)
    register_commands(app)

    # Root check
    @app.route("/")
    def index():
        return {"message": "Staff portal API is running"}, 200

    @app.route("/api/health")
    def health():
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            app.logger.exception("Database health check failed")
            return jsonify({"status": "error", "database": False, "details": str(e)}), 500
        return jsonify({"status": "ok", "database": True})

    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
