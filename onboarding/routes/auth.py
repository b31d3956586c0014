from __future__ import annotations

import os
import re

from flask import Blueprint, current_app, jsonify, request
from pymongo.errors import DuplicateKeyError

from onboarding.utils.auth import (
    client_ip,
    create_access_token,
    current_caller,
    get_current_user,
    hash_password,
    normalize_permissions,
    require_permissions,
    verify_password,
)
from onboarding.utils.datetime import utc_now
from onboarding.utils.errors import ApiError, bad_request
from onboarding.utils.validators import require_json, validate_email, validate_password
from onboarding.workflow.audit import AuditAction
from onboarding.workflow.permissions import DEPARTMENT_PERMISSIONS, PERMISSIONS


auth_bp = Blueprint("auth", __name__)


def _department_by_code(db, code: str) -> dict:
    dept = db.departments.find_one({"code": {"$regex": f"^{re.escape(code)}$", "$options": "i"}})
    if not dept:
        raise ApiError("NOT_FOUND", f"Department {code} not found", status=404)
    if not dept.get("isActive", True):
        raise bad_request(f"Department {code} is inactive")
    return dept


def _user_payload(user: dict, dept: dict | None) -> dict:
    return {
        "id": str(user["_id"]),
        "email": user["email"],
        "fullName": user.get("fullName"),
        "department": {"id": str(dept["_id"]), "name": dept.get("name"), "code": dept.get("code")} if dept else None,
        "permissions": normalize_permissions(user.get("permissions")),
    }


@auth_bp.post("/bootstrap")
def bootstrap():
    bootstrap_token = str(os.getenv("BOOTSTRAP_TOKEN", "") or "").strip()
    if not bootstrap_token:
        raise ApiError("FORBIDDEN", "Bootstrap is disabled", status=403)

    provided = str(request.headers.get("X-Bootstrap-Token") or "").strip()
    if not provided or provided != bootstrap_token:
        raise ApiError("FORBIDDEN", "Invalid bootstrap token", status=403)

    db = current_app.extensions["mongo_db"]
    if db.users.count_documents({}) > 0:
        raise ApiError("CONFLICT", "Bootstrap already completed", status=409)

    body = require_json()
    email = validate_email(body.get("email"))
    password = validate_password(body.get("password"), allow_short=False)
    full_name = str(body.get("fullName") or "").strip() or "Administrator"
    dept = _department_by_code(db, "ADMIN")

    now = utc_now()
    user = {
        "email": email,
        "fullName": full_name,
        "passwordHash": hash_password(password),
        "departmentId": dept["_id"],
        "permissions": list(PERMISSIONS),
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    user["_id"] = db.users.insert_one(user).inserted_id

    return jsonify({"success": True, "data": _user_payload(user, dept)}), 201


@auth_bp.post("/login")
def login():
    body = require_json()
    email = validate_email(body.get("email"))
    password = validate_password(body.get("password"), allow_short=False)

    db = current_app.extensions["mongo_db"]
    audit = current_app.extensions["audit"]
    user = db.users.find_one({"email": email})

    def _failed(reason: str, user_id=None) -> None:
        audit.record(
            AuditAction.LOGIN_FAILED,
            performed_by=user_id,
            target_entity="User",
            target_id=user_id,
            metadata={"email": email, "reason": reason},
            ip_address=client_ip() or None,
            user_agent=str(request.headers.get("User-Agent") or "") or None,
        )

    if not user or not verify_password(password, str(user.get("passwordHash") or "")):
        _failed("Invalid credentials", user["_id"] if user else None)
        raise ApiError("AUTH_INVALID", "Invalid credentials", status=401)

    if not user.get("isActive", True):
        _failed("Account deactivated", user["_id"])
        raise ApiError("FORBIDDEN", "User account is deactivated", status=403)

    token = create_access_token(current_app, user)
    db.users.update_one({"_id": user["_id"]}, {"$set": {"lastLoginAt": utc_now()}})
    audit.record(
        AuditAction.LOGIN_SUCCESS,
        performed_by=user["_id"],
        target_entity="User",
        target_id=user["_id"],
        ip_address=client_ip() or None,
        user_agent=str(request.headers.get("User-Agent") or "") or None,
    )

    dept = current_app.extensions["departments"].find_by_id(user.get("departmentId"))
    return jsonify(
        {
            "success": True,
            "data": {
                "access_token": token,
                "token_type": "bearer",
                "user": _user_payload(user, dept),
            },
        }
    )


@auth_bp.get("/me")
def me():
    user = get_current_user()
    dept = current_app.extensions["departments"].find_by_id(user["departmentId"])
    return jsonify(
        {
            "success": True,
            "data": {
                "id": user["id"],
                "email": user["email"],
                "fullName": user["fullName"],
                "department": {"id": str(dept["_id"]), "name": dept.get("name"), "code": dept.get("code")}
                if dept
                else None,
                "permissions": user["permissions"],
            },
        }
    )


@auth_bp.post("/users")
@require_permissions(["USER_CREATE"])
def create_user():
    body = require_json()
    email = validate_email(body.get("email"))
    password = validate_password(body.get("password"), allow_short=False)
    full_name = str(body.get("fullName") or "").strip()
    if not full_name:
        raise bad_request("fullName is required")

    db = current_app.extensions["mongo_db"]
    dept_code = str(body.get("departmentCode") or "").strip().upper()
    if not dept_code:
        raise bad_request("departmentCode is required")
    dept = _department_by_code(db, dept_code)

    if body.get("permissions") is None:
        permissions = list(DEPARTMENT_PERMISSIONS.get(str(dept.get("code") or "").upper(), ()))
    else:
        permissions = normalize_permissions(body.get("permissions"))
        unknown = sorted(set(permissions) - set(PERMISSIONS))
        if unknown:
            raise bad_request("Unknown permissions", {"unknown": unknown})

    now = utc_now()
    user = {
        "email": email,
        "fullName": full_name,
        "passwordHash": hash_password(password),
        "departmentId": dept["_id"],
        "permissions": permissions,
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        user["_id"] = db.users.insert_one(user).inserted_id
    except DuplicateKeyError as e:
        raise ApiError("CONFLICT", "Email already exists", status=409) from e

    caller = current_caller()
    current_app.extensions["audit"].record(
        AuditAction.USER_CREATE,
        performed_by=caller.user_id,
        target_entity="User",
        target_id=user["_id"],
        changes={"email": email, "department": dept.get("code"), "permissions": permissions},
        ip_address=caller.ip_address,
        user_agent=caller.user_agent,
    )

    return jsonify({"success": True, "data": _user_payload(user, dept)}), 201
