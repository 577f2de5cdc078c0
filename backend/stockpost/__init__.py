# backend/stockpost/__init__.py
import logging

from flask import Flask, request
from sqlalchemy import event

from .config import Config
from .extensions import db, enable_sqlite_foreign_keys, migrate

API_HEADERS = "Content-Type, X-Company-Id, X-User-Id, X-User-Role"


def create_app(config_overrides: dict | None = None) -> Flask:
    """Application factory. Tests pass config_overrides (in-memory DB, enforcement mode)."""
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Service loggers (stockpost.services.*) propagate to app.logger ("stockpost")
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(getattr(logging, level_name, logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            event.listen(db.engine, "connect", enable_sqlite_foreign_keys)

    # Models must be imported before create_all / autogenerate see the metadata
    from . import models  # noqa: F401

    from .routes.system import system_bp
    from .routes.stock import stock_bp
    from .routes.variants import variants_bp
    from .routes.sales import sales_bp

    for blueprint in (system_bp, stock_bp, variants_bp, sales_bp):
        app.register_blueprint(blueprint)

    allowed_origins = set(app.config.get("CORS_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = API_HEADERS
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    app.logger.debug("stockpost ready (stock enforcement: %s)", app.config.get("STOCK_ENFORCEMENT"))
    return app
