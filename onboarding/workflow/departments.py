from __future__ import annotations

import re
import threading
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from cachetools import TTLCache

OPERATION = "OPERATION"
FINANCE = "FINANCE"
HR = "HR"

# Canonical code -> display name used for the case-insensitive name match.
WORKFLOW_DEPARTMENTS = {
    OPERATION: "Operation",
    FINANCE: "Finance",
    HR: "HR",
}


class DepartmentDirectory:
    """Looks up departments by id or by canonical code/name.

    Hits are cached for ``ttl_seconds``; misses are never cached so that a
    department created by an administrator is picked up on the next call.
    """

    def __init__(self, db, *, ttl_seconds: int = 60, max_items: int = 256):
        self._col = db.departments
        self._cache: TTLCache | None = TTLCache(maxsize=max_items, ttl=ttl_seconds) if ttl_seconds > 0 else None
        self._lock = threading.RLock()

    def _cached(self, key: str) -> dict[str, Any] | None:
        if self._cache is None:
            return None
        with self._lock:
            return self._cache.get(key)

    def _remember(self, key: str, dept: dict[str, Any]) -> None:
        if self._cache is None:
            return
        with self._lock:
            self._cache[key] = dept

    def find_by_code_or_name(self, code: str, name: str | None = None) -> dict[str, Any] | None:
        code = str(code or "").strip()
        name = str(name or WORKFLOW_DEPARTMENTS.get(code.upper()) or code).strip()
        key = f"code:{code}:{name.lower()}"

        hit = self._cached(key)
        if hit is not None:
            return hit

        dept = self._col.find_one(
            {
                "$or": [
                    {"code": code},
                    {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}},
                ]
            }
        )
        if dept:
            self._remember(key, dept)
        return dept

    def find_by_id(self, dept_id) -> dict[str, Any] | None:
        if dept_id is None or dept_id == "":
            return None
        try:
            oid = dept_id if isinstance(dept_id, ObjectId) else ObjectId(str(dept_id))
        except (InvalidId, TypeError):
            return None

        key = f"id:{oid}"
        hit = self._cached(key)
        if hit is not None:
            return hit

        dept = self._col.find_one({"_id": oid})
        if dept:
            self._remember(key, dept)
        return dept

    def clear(self) -> None:
        if self._cache is None:
            return
        with self._lock:
            self._cache.clear()
