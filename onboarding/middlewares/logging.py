from __future__ import annotations

import json
import logging
from typing import Any

from flask import Flask, g, request

from onboarding.middlewares.request_id import current_request_id, request_elapsed_ms
from onboarding.utils.auth import client_ip


def init_request_logging(app: Flask) -> None:
    logger = logging.getLogger("onboarding.request")

    @app.after_request
    def _log(resp):
        user = getattr(g, "current_user", None) or {}
        data: dict[str, Any] = {
            "type": "request",
            "request_id": current_request_id(),
            "method": request.method,
            "path": request.path,
            "status": resp.status_code,
            "latency_ms": request_elapsed_ms(),
            "ip": client_ip(),
            "user_id": user.get("id"),
        }

        if resp.status_code >= 500:
            logger.error(json.dumps(data, separators=(",", ":")))
        else:
            logger.info(json.dumps(data, separators=(",", ":")))
        return resp
