from __future__ import annotations

from flask import Flask, request

_COMMON_HEADERS = (
    ("X-Content-Type-Options", "nosniff"),
    ("X-Frame-Options", "DENY"),
    ("Referrer-Policy", "no-referrer"),
    ("Permissions-Policy", "geolocation=(), microphone=(), camera=()"),
)

# API responses carry person PII and are never cached.
_API_HEADERS = (
    ("Cache-Control", "no-store"),
    ("Pragma", "no-cache"),
)

_HSTS = ("Strict-Transport-Security", "max-age=31536000; includeSubDomains")


def _served_over_https(trust_proxy: bool) -> bool:
    if request.is_secure:
        return True
    if not trust_proxy:
        return False
    proto = str(request.headers.get("X-Forwarded-Proto") or "").split(",", 1)[0]
    return proto.strip().lower() == "https"


def init_security_headers(app: Flask) -> None:
    cfg = app.config["CFG"]

    @app.after_request
    def _apply_security_headers(resp):
        headers = list(_COMMON_HEADERS)
        if request.path.startswith("/api/"):
            headers.extend(_API_HEADERS)
        if cfg.IS_PRODUCTION and _served_over_https(cfg.TRUST_PROXY_HEADERS):
            headers.append(_HSTS)

        for name, value in headers:
            resp.headers.setdefault(name, value)
        return resp
