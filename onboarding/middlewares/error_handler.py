from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import HTTPException

from onboarding.middlewares.request_id import current_request_id
from onboarding.utils.errors import ApiError

logger = logging.getLogger("onboarding")


def _error_response(code: str, message: str, status: int, details: Any | None = None):
    payload: dict[str, Any] = {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }
    rid = current_request_id()
    if rid:
        payload["request_id"] = rid
    return jsonify(payload), status


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(err: ApiError):
        if err.status >= 500:
            logger.error("ApiError %s request_id=%s: %s", err.code, current_request_id(), err.message)
        return _error_response(err.code, err.message, err.status, err.details)

    @app.errorhandler(DuplicateKeyError)
    def _duplicate_key(err: DuplicateKeyError):
        logger.warning("Duplicate key request_id=%s: %s", current_request_id(), err)
        return _error_response("CONFLICT", "Resource already exists", 409)

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        status = int(err.code or 500)
        return _error_response(f"HTTP_{status}", str(err.description or "HTTP error"), status)

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        logger.exception("Unhandled exception request_id=%s", current_request_id())
        return _error_response("INTERNAL", "Unexpected error", 500)
