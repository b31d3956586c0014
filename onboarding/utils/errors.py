from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ApiError(Exception):
    code: str
    message: str
    status: int = 400
    details: Any | None = None


def bad_request(message: str, details: Any | None = None) -> ApiError:
    return ApiError("BAD_REQUEST", message, status=400, details=details)


def not_found(message: str) -> ApiError:
    return ApiError("NOT_FOUND", message, status=404)


def conflict(message: str, details: Any | None = None) -> ApiError:
    return ApiError("CONFLICT", message, status=409, details=details)


def invalid_state(message: str, current_status: str) -> ApiError:
    return ApiError("INVALID_STATE", message, status=409, details={"currentStatus": current_status})


def forbidden(message: str, details: Any | None = None) -> ApiError:
    return ApiError("FORBIDDEN", message, status=403, details=details)


def validation_failed(message: str, details: Any | None = None) -> ApiError:
    return ApiError("VALIDATION_FAILED", message, status=400, details=details)


def department_not_configured(name: str) -> ApiError:
    return ApiError(
        "DEPARTMENT_NOT_CONFIGURED",
        f"{name} department not found. Please contact administrator.",
        status=500,
        details={"department": name},
    )
