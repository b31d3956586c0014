from __future__ import annotations

import re
from typing import Any, Iterable

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument


def to_object_id(value: Any) -> ObjectId | None:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def as_ref(value: Any) -> Any:
    """ObjectId for anything that looks like one, the raw value otherwise."""
    oid = to_object_id(value) if isinstance(value, (str, ObjectId)) else None
    return oid if oid is not None else value


class PersonStore:
    """Persistence for the ``persons`` collection.

    Uniqueness of email, primary mobile and employee code is enforced by
    unique indexes; ``insert`` and ``transition`` let ``DuplicateKeyError``
    propagate for the caller to translate.
    """

    def __init__(self, db):
        self._col = db.persons

    def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        res = self._col.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    def get(self, person_id) -> dict[str, Any] | None:
        oid = to_object_id(person_id)
        if oid is None:
            return None
        return self._col.find_one({"_id": oid})

    def find_by_email(self, email: str) -> dict[str, Any] | None:
        return self._col.find_one({"email": str(email or "").strip().lower()})

    def find_by_mobile(self, mobile: str) -> dict[str, Any] | None:
        return self._col.find_one({"primaryMobile": str(mobile or "").strip()})

    def transition(
        self,
        person_id,
        *,
        expected_status: str | Iterable[str],
        set_fields: dict[str, Any],
        history_entry: dict[str, Any] | None = None,
        extra_filter: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Conditionally update one person in a single write.

        The update only applies while ``currentStatus`` still matches
        ``expected_status`` (and ``extra_filter``). Returns the updated
        document, or None when the precondition no longer holds.
        """
        oid = to_object_id(person_id)
        if oid is None:
            return None

        if isinstance(expected_status, str):
            status_filter: Any = expected_status
        else:
            status_filter = {"$in": list(expected_status)}

        filt: dict[str, Any] = {"_id": oid, "currentStatus": status_filter}
        filt.update(extra_filter or {})

        update: dict[str, Any] = {"$set": set_fields}
        if history_entry is not None:
            update["$push"] = {"statusHistory": history_entry}

        return self._col.find_one_and_update(filt, update, return_document=ReturnDocument.AFTER)

    def code_exists(self, code: str) -> bool:
        return self._col.find_one({"employeeCode": code}, {"_id": 1}) is not None

    def highest_code(self, prefix: str) -> str | None:
        cursor = (
            self._col.find({"employeeCode": {"$regex": f"^{re.escape(prefix)}"}}, {"employeeCode": 1})
            .sort("employeeCode", DESCENDING)
            .limit(1)
        )
        for doc in cursor:
            return str(doc.get("employeeCode") or "") or None
        return None

    def list(
        self, *, filters: dict[str, Any], skip: int, limit: int
    ) -> tuple[list[dict[str, Any]], int]:
        total = self._col.count_documents(filters)
        items = list(self._col.find(filters).sort("createdAt", DESCENDING).skip(skip).limit(limit))
        return items, total
