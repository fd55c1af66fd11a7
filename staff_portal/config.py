import os
from dotenv import load_dotenv

load_dotenv()


BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "staff-portal-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///staff_portal.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "staff-portal-jwt")
    JWT_ACCESS_TOKEN_HOURS = int(os.getenv("JWT_ACCESS_TOKEN_HOURS", 12))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Companion customer website
    WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")
    CUSTOMER_WEBSITE_URL = os.getenv("CUSTOMER_WEBSITE_URL", "https://port-antonio.com")
    CUSTOMER_API_KEY = os.getenv("CUSTOMER_API_KEY", "")
    CUSTOMER_SYNC_TIMEOUT = int(os.getenv("CUSTOMER_SYNC_TIMEOUT", 10))

    # Uploads (images only)
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))

    # Loyalty / reporting
    DEFAULT_COMPLETION_POINTS = int(os.getenv("DEFAULT_COMPLETION_POINTS", 200))
    AVG_BOOKING_VALUE = float(os.getenv("AVG_BOOKING_VALUE", 85))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    WEBHOOK_SECRET = "test-webhook-secret"
    CUSTOMER_API_KEY = "test-api-key"
    CUSTOMER_WEBSITE_URL = "https://customer.example"
    LOG_LEVEL = "DEBUG"
