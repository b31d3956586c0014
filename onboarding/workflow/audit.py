from __future__ import annotations

import logging
from typing import Any, Callable

from bson import ObjectId

from onboarding.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class AuditAction:
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    USER_CREATE = "USER_CREATE"

    PERSON_CREATE = "PERSON_CREATE"
    PERSON_DUPLICATE_ATTEMPT = "PERSON_DUPLICATE_ATTEMPT"
    PERSON_VALIDATION_FAILED = "PERSON_VALIDATION_FAILED"
    PERSON_DOCUMENT_VALIDATION_FAILED = "PERSON_DOCUMENT_VALIDATION_FAILED"
    PERSON_SUBMITTED_TO_FINANCE = "PERSON_SUBMITTED_TO_FINANCE"

    FINANCE_DETAILS_UPDATED = "FINANCE_DETAILS_UPDATED"
    FINANCE_UPDATE_ATTEMPT_DENIED = "FINANCE_UPDATE_ATTEMPT_DENIED"
    FINANCE_VALIDATION_FAILED = "FINANCE_VALIDATION_FAILED"
    FINANCE_COMPLETED = "FINANCE_COMPLETED"
    EMPLOYEE_CODE_ASSIGNED = "EMPLOYEE_CODE_ASSIGNED"

    HR_DOCUMENT_GENERATED = "HR_DOCUMENT_GENERATED"
    HR_DOCUMENT_SIGNED = "HR_DOCUMENT_SIGNED"
    HR_UPDATE_ATTEMPT_DENIED = "HR_UPDATE_ATTEMPT_DENIED"
    HR_VALIDATION_FAILED = "HR_VALIDATION_FAILED"
    HR_COMPLETED = "HR_COMPLETED"

    WORKFLOW_ACTION_DENIED = "WORKFLOW_ACTION_DENIED"
    WORKFLOW_DUPLICATE_ATTEMPT = "WORKFLOW_DUPLICATE_ATTEMPT"

    @classmethod
    def all(cls) -> frozenset[str]:
        return frozenset(v for k, v in vars(cls).items() if k.isupper() and isinstance(v, str))


def _ref(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


class AuditRecorder:
    """Append-only writer for the ``audit_logs`` collection.

    ``record`` never raises: a failed insert is logged and dropped so the
    workflow write it describes still stands.
    """

    def __init__(self, db, *, clock: Callable[[], Any] = utc_now):
        self._col = db.audit_logs
        self._clock = clock

    def record(
        self,
        action: str,
        *,
        performed_by: Any,
        target_entity: str,
        target_id: Any = None,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        entry = {
            "action": str(action or "").upper(),
            "performedBy": _ref(performed_by),
            "targetEntity": target_entity,
            "targetId": _ref(target_id),
            "changes": changes or {},
            "metadata": metadata or {},
            "ipAddress": ip_address,
            "userAgent": user_agent,
            "createdAt": self._clock(),
        }
        try:
            self._col.insert_one(entry)
        except Exception:
            logger.exception("Audit write failed action=%s target=%s:%s", action, target_entity, target_id)
