import os
import tempfile
from datetime import timedelta


def _env_bool(name, default=False):
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "production")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    REFRESH_TOKEN_TTL_DAYS = int(os.getenv("REFRESH_TOKEN_TTL_DAYS", "7"))

    CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS")

    # uploads: 5 images + 1 video, 10 MB each
    UPLOAD_ROOT = os.getenv("UPLOAD_ROOT")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(60 * 1024 * 1024)))
    MAX_PRODUCT_IMAGES = 5

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_SENDER = os.getenv("MAIL_SENDER", "E-Shop <no-reply@example.com>")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND")
    OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))

    DEFAULT_COUNTRY = os.getenv("DEFAULT_COUNTRY", "India")

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config.setdefault(
                "SQLALCHEMY_DATABASE_URI",
                f"sqlite:///{os.path.join(app.instance_path, 'app.db')}",
            )
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")

        if not app.config.get("UPLOAD_ROOT"):
            app.config["UPLOAD_ROOT"] = os.path.join(app.root_path, "uploads")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    MAIL_SUPPRESS_SEND = True
    EXPOSE_ERROR_DETAILS = True

    @staticmethod
    def init_app(app):
        if not app.config.get("UPLOAD_ROOT"):
            app.config["UPLOAD_ROOT"] = tempfile.mkdtemp(prefix="storefront-uploads-")
