# backend/imeipos/__init__.py
from flask import Flask, jsonify

from .config import Config
from .errors import LedgerError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.registers import registers_bp
    from .routes.sales import sales_bp
    from .routes.purchases import purchases_bp
    from .routes.payments import payments_bp
    from .routes.expenses import expenses_bp
    from .routes.entities import entities_bp
    from .routes.ledger import ledger_bp

    app.register_blueprint(registers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(entities_bp)
    app.register_blueprint(ledger_bp)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        return jsonify(exc.to_dict()), exc.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
