from __future__ import annotations

import os
import re
import time

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"

# Anything else sent by the client is replaced with a generated id.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


def _new_request_id() -> str:
    return os.urandom(8).hex()


def resolve_request_id(raw: str | None) -> str:
    incoming = str(raw or "").strip()
    if _REQUEST_ID_RE.match(incoming):
        return incoming
    return _new_request_id()


def current_request_id() -> str:
    if not has_request_context():
        return ""
    return str(getattr(g, "request_id", "") or "")


def request_elapsed_ms() -> int | None:
    started = getattr(g, "start_ts", None) if has_request_context() else None
    if not isinstance(started, (int, float)):
        return None
    return int((time.monotonic() - started) * 1000)


def init_request_id(app: Flask) -> None:
    @app.before_request
    def _assign_request_id():
        g.request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        g.start_ts = time.monotonic()

    @app.after_request
    def _echo_request_id(resp):
        rid = current_request_id()
        if rid:
            resp.headers[REQUEST_ID_HEADER] = rid
        return resp
