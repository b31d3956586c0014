from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from onboarding.utils.auth import current_caller, require_auth, require_permissions
from onboarding.utils.errors import bad_request
from onboarding.utils.paging import get_paging, page_payload
from onboarding.utils.validators import (
    parse_document_type,
    parse_finance_payload,
    parse_person_payload,
    require_json,
    require_text,
)
from onboarding.workflow.status import Category, PersonStatus
from onboarding.workflow.store import to_object_id

persons_bp = Blueprint("persons", __name__)


def _engine():
    return current_app.extensions["workflow"]


def _projection():
    return current_app.extensions["projection"]


def _ok(person: dict, status: int = 200, message: str | None = None):
    payload: dict = {"success": True, "data": {"person": _projection().person(person)}}
    if message:
        payload["message"] = message
    return jsonify(payload), status


@persons_bp.post("")
@require_auth
def create_person():
    data = parse_person_payload(require_json())
    person = _engine().create_person(current_caller(), data)
    return _ok(person, 201, "Person created successfully")


@persons_bp.get("")
@require_permissions(["PERSON_READ"])
def list_persons():
    args = request.args
    status = None
    if args.get("status"):
        status = PersonStatus.parse(args.get("status"))
        if status is None:
            raise bad_request("Invalid status filter")

    category = None
    if args.get("category"):
        try:
            category = Category(str(args.get("category")).strip().upper())
        except ValueError as e:
            raise bad_request("Invalid category filter") from e

    owning_department = None
    if args.get("owningDepartment"):
        owning_department = to_object_id(args.get("owningDepartment"))
        if owning_department is None:
            raise bad_request("Invalid owningDepartment filter")

    skip, limit = get_paging(args)
    result = _engine().list_persons(
        status=status, category=category, owning_department=owning_department, skip=skip, limit=limit
    )
    items = _projection().persons(result["items"])
    data = page_payload(items, total=result["total"], skip=result["skip"], limit=result["limit"])
    return jsonify({"success": True, "data": data})


@persons_bp.get("/<person_id>")
@require_permissions(["PERSON_READ"])
def get_person(person_id: str):
    return _ok(_engine().get_person(person_id))


@persons_bp.post("/<person_id>/submit-to-finance")
@require_auth
def submit_to_finance(person_id: str):
    person = _engine().submit_to_finance(current_caller(), person_id)
    return _ok(person, message="Person submitted to Finance successfully")


@persons_bp.put("/<person_id>/finance")
@require_auth
def update_finance(person_id: str):
    details, documents = parse_finance_payload(require_json())
    person = _engine().update_finance_details(current_caller(), person_id, details=details, documents=documents)
    return _ok(person, message="Finance details updated successfully")


@persons_bp.post("/<person_id>/finance/complete")
@require_auth
def complete_finance(person_id: str):
    person = _engine().complete_finance(current_caller(), person_id)
    return _ok(person, message="Finance KYC completed successfully")


@persons_bp.post("/<person_id>/employee-code")
@require_auth
def assign_employee_code(person_id: str):
    person = _engine().assign_employee_code(current_caller(), person_id)
    return _ok(person, message=f"Employee code {person['employeeCode']} assigned successfully")


@persons_bp.get("/<person_id>/hr")
@require_permissions(["HR_READ"])
def view_hr(person_id: str):
    person = _engine().view_hr_documents(current_caller(), person_id)
    return jsonify({"success": True, "data": _projection().hr_view(person)})


@persons_bp.post("/<person_id>/hr/generate")
@require_auth
def generate_hr_document(person_id: str):
    body = require_json()
    document_type = parse_document_type(body.get("documentType"))
    template_id = require_text(body, "templateId")
    person = _engine().generate_hr_document(
        current_caller(), person_id, document_type=document_type, template_id=template_id
    )
    return _ok(person, message=f"{document_type.label} generated successfully")


@persons_bp.post("/<person_id>/hr/upload")
@require_auth
def upload_signed_hr_document(person_id: str):
    body = require_json()
    document_type = parse_document_type(body.get("documentType"))
    signed_file = require_text(body, "signedFile")
    person = _engine().upload_signed_hr_document(
        current_caller(), person_id, document_type=document_type, signed_file=signed_file
    )
    return _ok(person, message=f"Signed {document_type.label.lower()} uploaded successfully")


@persons_bp.post("/<person_id>/hr/complete")
@require_auth
def complete_hr(person_id: str):
    person = _engine().complete_hr(current_caller(), person_id)
    return _ok(person, message="HR completed successfully")
