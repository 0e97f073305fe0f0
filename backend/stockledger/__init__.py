# backend/stockledger/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate



def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.stock import stock_bp
    from .routes.adjustments import adjustments_bp
    from .routes.audits import audits_bp
    from .routes.transfers import transfers_bp
    from .routes.bundles import bundles_bp

    app.register_blueprint(stock_bp)
    app.register_blueprint(adjustments_bp)
    app.register_blueprint(audits_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(bundles_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
