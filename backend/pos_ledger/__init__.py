# backend/pos_ledger/__init__.py
import logging

from flask import Flask, jsonify

from .config import Config
from .errors import LedgerError
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.inventory import inventory_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(inventory_bp)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        return jsonify(exc.to_dict()), exc.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
