from __future__ import annotations

from flask import Flask, request

from onboarding.utils.auth import client_ip
from onboarding.utils.rate_limiter import InMemoryRateLimiter

_EXEMPT_PATHS = {"/health", "/version"}


def init_rate_limiting(app: Flask) -> None:
    cfg = app.config["CFG"]
    limiter = InMemoryRateLimiter()
    app.extensions["rate_limiter"] = limiter

    @app.before_request
    def _rate_limit():
        path = request.path or ""
        if path in _EXEMPT_PATHS or request.method == "OPTIONS":
            return None

        ip = client_ip()

        if path.startswith("/api/v1/auth/login"):
            limiter.check(f"{ip}:LOGIN", cfg.RATE_LIMIT_LOGIN)
            return None

        if path.startswith("/api/v1/"):
            limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)
            # Collapse ids so every person shares one bucket per route shape.
            route = request.url_rule.rule if request.url_rule is not None else path
            limiter.check(f"{ip}:{request.method}:{route}", cfg.RATE_LIMIT_DEFAULT)

        return None
