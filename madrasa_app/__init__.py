# madrasa_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .errors import register_error_handlers
from .extensions import scheduler, init_extensions, register_cli, register_jobs
from .logging_utils import setup_logging
from .services.signatures import init_payment_providers
from .blueprints.webhooks import bp as webhooks_bp
from .blueprints.checkout import bp as checkout_bp
from .blueprints.subscriptions import bp as subscriptions_bp
from .blueprints.notifications import bp as notifications_bp

_CONFIGS = {
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    if config_object is None:
        config_object = _CONFIGS.get(os.getenv("APP_ENV", "").lower(), Config)
    app.config.from_object(config_object)
    # Arabic messages go out as-is, not \u-escaped
    app.json.ensure_ascii = app.config.get("JSON_AS_ASCII", False)

    if not app.config.get("TESTING"):
        setup_logging(app.config.get("LOG_LEVEL", "INFO"), json_lines=app.config.get("LOG_JSON", True))

    # Extensions (DB/Migrate/Scheduler)
    init_extensions(app)

    # Signature verifiers -> app.extensions["payment_verifiers"]
    init_payment_providers(app)
    register_error_handlers(app)

    # Blueprints
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(subscriptions_bp)
    app.register_blueprint(notifications_bp)

    # CLI (flask init-db, flask expire-payments, flask notify-expiring)
    register_cli(app)

    # Scheduler: hourly pending-payment expiry, daily expiry notices
    if not app.config.get("TESTING") and os.getenv("DISABLE_SCHEDULER") != "1":
        register_jobs(app)
        if not scheduler.running:
            scheduler.start()

    return app
