# backend/freshcount/__init__.py
import time

from flask import Flask, g, request
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import FreshCountError, InternalError, ServiceUnavailableError
from .extensions import db, migrate


def create_app(config_object=None, config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions (after config so the engine sees the final URI)
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.categories import categories_bp
    from .routes.products import products_bp
    from .routes.stock import stock_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(stock_bp)

    _register_request_logging(app)
    _register_error_handlers(app)

    allowed_origins = set(app.config.get("CORS_ORIGINS", []))

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def _register_request_logging(app: Flask) -> None:
    @app.before_request
    def start_timer():
        g.request_started_at = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop("request_started_at", None)
        duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        app.logger.info(
            "%s %s %s %.1fms",
            request.method, request.path, response.status_code, duration_ms,
        )
        return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(FreshCountError)
    def handle_domain_error(e: FreshCountError):
        return e.to_dict(), e.status_code

    @app.errorhandler(OperationalError)
    def handle_database_unavailable(e: OperationalError):
        db.session.rollback()
        app.logger.exception("Database unavailable while handling %s %s", request.method, request.path)
        error = ServiceUnavailableError("Database service unavailable")
        return error.to_dict(), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        if e.code == 404:
            return {"error": "Route not found"}, 404
        return {"error": e.name}, e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        error = InternalError("Internal server error")
        return error.to_dict(), error.status_code
