import os
from flask import Flask
from dotenv import load_dotenv

load_dotenv()


def config_name_from_env():
    """SHOPSYNC_ENV wins over FLASK_ENV; development when neither is set."""
    return os.environ.get("SHOPSYNC_ENV") or os.environ.get("FLASK_ENV") or "development"


def create_app(config_name=None):
    flask_app = Flask(__name__)

    if config_name is None:
        config_name = config_name_from_env()

    from shopsync.config import config_map

    config_cls = config_map.get(config_name, config_map["development"])
    flask_app.config.from_object(config_cls)

    if hasattr(config_cls, "init_app"):
        config_cls.init_app(flask_app)

    # Initialize extensions
    from shopsync.extensions import db, migrate, init_redis
    from shopsync.services.shopify_gateway import init_gateway

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    init_redis(flask_app)
    init_gateway(flask_app)

    # Import models so Alembic sees them
    from shopsync.models import Product, Variant, ProductImage, BulkOperation  # noqa: F401

    # Register blueprints
    from shopsync.blueprints.api import api_bp

    flask_app.register_blueprint(api_bp, url_prefix="/api/v1")

    # Register CLI commands
    from shopsync.cli import register_cli

    register_cli(flask_app)

    def _probe():
        from shopsync.extensions import redis_client

        checks = {"status": "ok"}
        try:
            db.session.execute(db.text("SELECT 1"))
            checks["db"] = "ok"
        except Exception:
            flask_app.logger.exception("Health check DB probe failed")
            checks["db"] = "error"
            checks["status"] = "degraded"
        try:
            if redis_client:
                redis_client.ping()
                checks["redis"] = "ok"
            else:
                checks["redis"] = "not configured"
        except Exception:
            flask_app.logger.exception("Health check Redis probe failed")
            checks["redis"] = "error"
            checks["status"] = "degraded"
        return checks

    @flask_app.route("/health")
    def health():
        checks = _probe()
        checks["version"] = flask_app.config["APP_VERSION"]
        status_code = 200 if checks["status"] == "ok" else 503
        return checks, status_code

    @flask_app.route("/health/detailed")
    def health_detailed():
        checks = _probe()
        gateway = flask_app.extensions["shopify"]
        if gateway.validate_credentials():
            checks["shopify"] = "ok"
        else:
            checks["shopify"] = "error"
            checks["status"] = "degraded"
        checks["version"] = flask_app.config["APP_VERSION"]
        status_code = 200 if checks["status"] == "ok" else 503
        return checks, status_code

    return flask_app
