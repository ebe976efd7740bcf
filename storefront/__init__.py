# --- storefront/__init__.py ---
import logging
import os
from flask import Flask, send_from_directory
from .extensions import db, jwt, cors, migrate
from .config import Config
from .errors import register_error_handlers
from .utils.api import ok, err


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    cfg = config_object or Config
    app.config.from_object(cfg)
    cfg.init_app(app)
    os.makedirs(app.config["UPLOAD_ROOT"], exist_ok=True)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": app.config["CORS_ORIGIN"]}})
    migrate.init_app(app, db)

    _register_jwt_responses()

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .category import bp as category_bp; app.register_blueprint(category_bp)
    from .banner import bp as banner_bp; app.register_blueprint(banner_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .deal import bp as deal_bp; app.register_blueprint(deal_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .user import bp as user_bp; app.register_blueprint(user_bp)

    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.get("/api/health")
    def health():
        return ok("API running")

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_ROOT"], filename)

    with app.app_context():
        from . import model  # noqa: F401  register tables
        db.create_all()

    app.logger.info("storefront started (%d routes)", len(list(app.url_map.iter_rules())))
    return app


def _register_jwt_responses():
    @jwt.unauthorized_loader
    def _missing_token(reason):
        return err("Authorization token required", status_code=401)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return err("Invalid token", status_code=401)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return err("Token has expired", status_code=401)
