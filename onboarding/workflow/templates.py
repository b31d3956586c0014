from __future__ import annotations

from typing import Any

from onboarding.workflow.store import to_object_id


class TemplateProvider:
    def __init__(self, db):
        self._col = db.templates

    def find_by_id(self, template_id) -> dict[str, Any] | None:
        oid = to_object_id(template_id)
        if oid is None:
            return None
        return self._col.find_one({"_id": oid}, {"name": 1, "type": 1, "isPublished": 1, "publishedAt": 1})
