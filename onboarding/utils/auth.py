from __future__ import annotations

import functools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, TypeVar

import bcrypt
import jwt
from bson import ObjectId
from flask import current_app, g, request

from onboarding.utils.errors import ApiError
from onboarding.workflow.engine import Caller


_T = TypeVar("_T", bound=Callable[..., Any])


def normalize_permissions(values) -> list[str]:
    out: list[str] = []
    for v in values or []:
        p = str(v or "").strip().upper()
        if p and p not in out:
            out.append(p)
    return out


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except Exception:
        return False


def create_access_token(app, user: dict[str, Any]) -> str:
    cfg = app.config["CFG"]
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user["_id"]),
        "email": str(user.get("email") or ""),
        "departmentId": str(user.get("departmentId") or ""),
        "permissions": normalize_permissions(user.get("permissions")),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=cfg.JWT_EXP_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, cfg.JWT_SECRET, algorithm="HS256")


def _decode_token(token: str) -> dict[str, Any]:
    cfg = current_app.config["CFG"]
    try:
        return jwt.decode(token, cfg.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        raise ApiError("AUTH_INVALID", "Token expired", status=401) from e
    except jwt.InvalidTokenError as e:
        raise ApiError("AUTH_INVALID", "Invalid token", status=401) from e


def _bearer_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return ""


def client_ip() -> str:
    cfg = current_app.config["CFG"]
    ip = request.remote_addr or ""
    if cfg.TRUST_PROXY_HEADERS:
        ip = request.headers.get("X-Forwarded-For", ip) or ip
    if ip and "," in ip:
        ip = ip.split(",", 1)[0].strip()
    return ip


def get_current_user() -> dict[str, Any]:
    """Resolve the bearer token to an ACTIVE user row (cached on ``g`` per request)."""
    cached = getattr(g, "current_user", None)
    if cached is not None:
        return cached

    token = _bearer_token()
    if not token:
        raise ApiError("AUTH_INVALID", "Missing bearer token", status=401)

    payload = _decode_token(token)
    sub = str(payload.get("sub") or "").strip()
    if not sub:
        raise ApiError("AUTH_INVALID", "Invalid token payload", status=401)

    try:
        user_id = ObjectId(sub)
    except Exception as e:
        raise ApiError("AUTH_INVALID", "Invalid token subject", status=401) from e

    db = current_app.extensions.get("mongo_db")
    if db is None:
        raise ApiError("INTERNAL", "Database not initialized", status=500)

    user = db.users.find_one({"_id": user_id})
    if not user:
        raise ApiError("AUTH_INVALID", "User not found", status=401)
    if not user.get("isActive", True):
        raise ApiError("FORBIDDEN", "User account is deactivated", status=403)

    current = {
        "id": str(user["_id"]),
        "email": str(user.get("email") or "").strip().lower(),
        "fullName": user.get("fullName"),
        "departmentId": str(user.get("departmentId") or "") or None,
        "permissions": normalize_permissions(user.get("permissions")),
    }
    g.current_user = current
    return current


def current_caller() -> Caller:
    user = get_current_user()
    return Caller(
        user_id=user["id"],
        department_id=user["departmentId"],
        permissions=frozenset(user["permissions"]),
        ip_address=client_ip() or None,
        user_agent=str(request.headers.get("User-Agent") or "") or None,
    )


def require_permissions(permissions: list[str]) -> Callable[[_T], _T]:
    required = set(normalize_permissions(permissions))

    def _decorator(fn: _T) -> _T:
        @functools.wraps(fn)
        def _wrapped(*args, **kwargs):
            user = get_current_user()
            missing = required - set(user["permissions"])
            if missing:
                raise ApiError(
                    "FORBIDDEN", "Insufficient permissions", status=403, details={"required": sorted(required)}
                )
            return fn(*args, **kwargs)

        return _wrapped  # type: ignore[return-value]

    return _decorator


def require_auth(fn: _T) -> _T:
    """Authenticate only; the workflow engine checks and audits permission flags itself."""

    @functools.wraps(fn)
    def _wrapped(*args, **kwargs):
        get_current_user()
        return fn(*args, **kwargs)

    return _wrapped  # type: ignore[return-value]
