from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from onboarding.utils.auth import require_permissions
from onboarding.utils.errors import bad_request, not_found
from onboarding.utils.paging import get_paging, page_payload
from onboarding.utils.validators import parse_datetime_arg
from onboarding.workflow.projection import to_json
from onboarding.workflow.store import as_ref, to_object_id

audit_bp = Blueprint("audit", __name__)


@audit_bp.get("")
@require_permissions(["AUDIT_LOG_READ"])
def list_audit_logs():
    args = request.args
    filters: dict = {}

    if args.get("action"):
        filters["action"] = str(args.get("action")).strip().upper()
    if args.get("targetEntity"):
        filters["targetEntity"] = str(args.get("targetEntity")).strip()
    if args.get("targetId"):
        filters["targetId"] = as_ref(str(args.get("targetId")).strip())
    if args.get("performedBy"):
        filters["performedBy"] = as_ref(str(args.get("performedBy")).strip())

    start = parse_datetime_arg(args.get("startDate"), "startDate")
    end = parse_datetime_arg(args.get("endDate"), "endDate", end_of_day=True)
    if start and end and end <= start:
        raise bad_request("endDate must be after startDate")
    if start or end:
        filters["createdAt"] = {}
        if start:
            filters["createdAt"]["$gte"] = start
        if end:
            filters["createdAt"]["$lt"] = end

    skip, limit = get_paging(args)
    db = current_app.extensions["mongo_db"]
    total = db.audit_logs.count_documents(filters)
    items = list(db.audit_logs.find(filters).sort("createdAt", -1).skip(skip).limit(limit))
    return jsonify(
        {"success": True, "data": page_payload(to_json(items), total=total, skip=skip, limit=limit)}
    )


@audit_bp.get("/<log_id>")
@require_permissions(["AUDIT_LOG_READ"])
def get_audit_log(log_id: str):
    oid = to_object_id(log_id)
    db = current_app.extensions["mongo_db"]
    entry = db.audit_logs.find_one({"_id": oid}) if oid is not None else None
    if not entry:
        raise not_found("Audit log not found")
    return jsonify({"success": True, "data": to_json(entry)})
