# backend/zimmet/__init__.py
from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .errors import DomainError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    # Overrides must land before db.init_app; the engine is built there
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.transactions import transactions_bp
    from .routes.documents import documents_bp
    from .routes.reports import reports_bp
    from .routes.users import users_bp
    from .routes.admin import admin_bp
    from .routes.notifications import notifications_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(notifications_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError):
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"error": "Database error"}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found", "path": request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(error):
        app.logger.error("500 error on %s: %s", request.path, error)
        return jsonify({"error": "Internal server error"}), 500
