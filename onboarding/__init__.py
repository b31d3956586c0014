from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from onboarding.config import get_config
from onboarding.db import init_mongo
from onboarding.middlewares.error_handler import init_error_handlers
from onboarding.middlewares.logging import init_request_logging
from onboarding.middlewares.rate_limit import init_rate_limiting
from onboarding.middlewares.request_id import init_request_id
from onboarding.middlewares.security_headers import init_security_headers
from onboarding.routes.audit import audit_bp
from onboarding.routes.auth import auth_bp
from onboarding.routes.core import core_bp
from onboarding.routes.persons import persons_bp
from onboarding.routes.reports import reports_bp
from onboarding.services import init_workflow
from onboarding.utils.logging import setup_logging


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL, cfg.LOG_FORMAT)

    app = Flask(__name__)
    app.config["CFG"] = cfg

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    init_request_id(app)
    init_security_headers(app)
    init_rate_limiting(app)
    init_request_logging(app)
    init_error_handlers(app)

    init_mongo(app)
    init_workflow(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(persons_bp, url_prefix="/api/v1/persons")
    app.register_blueprint(audit_bp, url_prefix="/api/v1/audit")
    app.register_blueprint(reports_bp, url_prefix="/api/v1/reports")

    return app
