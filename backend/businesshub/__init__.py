# backend/businesshub/__init__.py
import logging
from logging.handlers import RotatingFileHandler

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("businesshub").setLevel(level)

    log_file = app.config.get("LOG_FILE")
    if log_file and not (app.debug or app.testing):
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))
        handler.setLevel(level)
        app.logger.addHandler(handler)
        logging.getLogger("businesshub").addHandler(handler)


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.businesses import businesses_bp
    from .routes.products import products_bp
    from .routes.product_instances import product_instances_bp
    from .routes.business_products import business_products_bp
    from .routes.quotes import quotes_bp
    from .routes.tasks import tasks_bp
    from .routes.messages import messages_bp
    from .routes.documents import documents_bp
    from .routes.analytics import analytics_bp
    from .routes.data import data_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(businesses_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(product_instances_bp)
    app.register_blueprint(business_products_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(messages_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(data_bp)
    app.register_blueprint(admin_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
