from __future__ import annotations

from datetime import datetime
from typing import Any

from bson import ObjectId

from onboarding.utils.datetime import iso_utc


def to_json(value: Any) -> Any:
    """ObjectIds to strings and datetimes to ISO-8601, recursively."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return iso_utc(value)
    if isinstance(value, dict):
        return {("id" if k == "_id" else k): to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value


class PersonProjection:
    """Read-side view of persons with department and creator references expanded."""

    def __init__(self, db, departments):
        self._users = db.users
        self._templates = db.templates
        self._departments = departments

    def _department(self, dept_id) -> dict[str, Any] | None:
        dept = self._departments.find_by_id(dept_id)
        if not dept:
            return None
        return {"id": str(dept["_id"]), "name": dept.get("name"), "code": dept.get("code")}

    def _user(self, user_id, cache: dict[Any, Any]) -> dict[str, Any] | None:
        if not isinstance(user_id, ObjectId):
            return None
        if user_id not in cache:
            user = self._users.find_one({"_id": user_id}, {"fullName": 1, "email": 1})
            cache[user_id] = (
                {"id": str(user["_id"]), "fullName": user.get("fullName"), "email": user.get("email")}
                if user
                else None
            )
        return cache[user_id]

    def person(self, doc: dict[str, Any], *, _users: dict[Any, Any] | None = None) -> dict[str, Any]:
        users = _users if _users is not None else {}
        out = to_json(doc)
        out["owningDepartment"] = self._department(doc.get("owningDepartment")) or to_json(doc.get("owningDepartment"))
        out["createdBy"] = self._user(doc.get("createdBy"), users) or to_json(doc.get("createdBy"))
        return out

    def persons(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        users: dict[Any, Any] = {}
        return [self.person(d, _users=users) for d in docs]

    def _hr_slot(self, slot: dict[str, Any] | None) -> dict[str, Any] | None:
        if not slot:
            return None
        out = to_json(slot)
        template_id = slot.get("templateId")
        if template_id is not None:
            template = self._templates.find_one({"_id": template_id}, {"name": 1, "type": 1})
            out["templateId"] = (
                {"id": str(template["_id"]), "name": template.get("name"), "type": template.get("type")}
                if template
                else {"id": str(template_id), "name": None, "type": None}
            )
        return out

    def hr_view(self, doc: dict[str, Any]) -> dict[str, Any]:
        hr = doc.get("hrDetails") or {}
        return {
            "person": {
                "id": str(doc["_id"]),
                "fullName": doc.get("fullName"),
                "email": doc.get("email"),
                "primaryMobile": doc.get("primaryMobile"),
                "category": doc.get("category"),
                "employmentType": doc.get("employmentType"),
                "employeeCode": doc.get("employeeCode"),
                "currentStatus": doc.get("currentStatus"),
                "owningDepartment": self._department(doc.get("owningDepartment")),
            },
            "hrDocuments": {
                "offerLetter": self._hr_slot(hr.get("offerLetter")),
                "declaration": self._hr_slot(hr.get("declaration")),
                "hrCompleted": bool(hr.get("hrCompleted")),
                "hrCompletedAt": iso_utc(hr.get("hrCompletedAt")),
            },
        }
