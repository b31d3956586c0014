from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from pymongo.errors import DuplicateKeyError

from onboarding.utils.datetime import utc_now
from onboarding.utils.errors import (
    ApiError,
    conflict,
    department_not_configured,
    forbidden,
    invalid_state,
    not_found,
    validation_failed,
)
from onboarding.workflow.audit import AuditAction
from onboarding.workflow.departments import FINANCE, HR, OPERATION, WORKFLOW_DEPARTMENTS
from onboarding.workflow.permissions import (
    EMPLOYEE_CODE_ASSIGN,
    FINANCE_COMPLETE,
    FINANCE_UPDATE,
    HR_COMPLETE,
    HR_DOCUMENT_MANAGE,
    PERSON_CREATE,
    PERSON_SUBMIT,
)
from onboarding.workflow.status import (
    FINANCE_LOCKED_STATUSES,
    HR_COMPLETABLE_STATUSES,
    HR_LOCKED_STATUSES,
    HR_VISIBLE_STATUSES,
    INITIAL_STATUS,
    REQUIRED_FINANCE_DOCUMENTS,
    REQUIRED_FINANCE_FIELDS,
    Category,
    HRDocumentStatus,
    HRDocumentType,
    PersonStatus,
    can_transition,
    status_of,
)
from onboarding.workflow.store import as_ref

logger = logging.getLogger(__name__)

PERSON = "Person"


@dataclass(frozen=True)
class Caller:
    user_id: Any
    department_id: Any
    permissions: frozenset[str] = field(default_factory=frozenset)
    ip_address: str | None = None
    user_agent: str | None = None


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


class WorkflowEngine:
    """Person lifecycle: OPERATION_STAGE_A through HR_COMPLETED.

    Every operation reads the person, checks department gates and status
    preconditions, then commits with a single conditional write on the
    expected status. A write that matches nothing means another request got
    there first; the person is re-read and the same checks are replayed so
    the caller gets the error that now applies. HR document actions touch
    separate slots, so when the replayed checks still pass they retry the
    write once against the fresh status.
    """

    def __init__(
        self,
        *,
        store,
        departments,
        templates,
        audit,
        codes,
        clock: Callable[[], Any] = utc_now,
        upload_prefix: str = "/uploads/hr",
        max_page_limit: int = 1000,
    ):
        self._store = store
        self._departments = departments
        self._templates = templates
        self._audit = audit
        self._codes = codes
        self._clock = clock
        self._upload_prefix = upload_prefix.rstrip("/")
        self._max_page_limit = max(1, max_page_limit)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _department(self, code: str) -> dict[str, Any]:
        dept = self._departments.find_by_code_or_name(code, WORKFLOW_DEPARTMENTS[code])
        if not dept:
            raise department_not_configured(WORKFLOW_DEPARTMENTS[code])
        return dept

    def _optional_department(self, code: str) -> dict[str, Any] | None:
        return self._departments.find_by_code_or_name(code, WORKFLOW_DEPARTMENTS[code])

    @staticmethod
    def _is_member(caller: Caller, dept: dict[str, Any] | None) -> bool:
        if not dept or caller.department_id is None:
            return False
        return str(dept["_id"]) == str(caller.department_id)

    def _record(
        self,
        action: str,
        caller: Caller,
        target_id: Any,
        *,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._audit.record(
            action,
            performed_by=caller.user_id,
            target_entity=PERSON,
            target_id=target_id,
            changes=changes,
            metadata=metadata,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
        )

    def _deny(
        self,
        caller: Caller,
        person: dict[str, Any] | None,
        message: str,
        operation: str,
        details: dict[str, Any] | None = None,
    ) -> ApiError:
        person_id = person["_id"] if person else None
        logger.warning("Denied %s on person=%s user=%s: %s", operation, person_id, caller.user_id, message)
        changes: dict[str, Any] = {"operation": operation, "reason": message}
        if person:
            changes["personStatus"] = person.get("currentStatus")
        self._record(AuditAction.WORKFLOW_ACTION_DENIED, caller, person_id, changes=changes)
        return forbidden(message, details)

    def _authorize(self, caller: Caller, person: dict[str, Any] | None, permission: str, operation: str) -> None:
        if permission in caller.permissions:
            return
        raise self._deny(
            caller, person, f"Missing permission {permission}", operation, {"required": [permission]}
        )

    def _duplicate(self, caller: Caller, person: dict[str, Any], message: str, operation: str) -> ApiError:
        self._record(
            AuditAction.WORKFLOW_DUPLICATE_ATTEMPT,
            caller,
            person["_id"],
            changes={"operation": operation, "personStatus": person.get("currentStatus"), "reason": message},
        )
        return conflict(message)

    def _lock_denied(
        self, action: str, caller: Caller, person: dict[str, Any], caller_dept: dict[str, Any], reason: str
    ) -> ApiError:
        logger.warning("Edit lock person=%s user=%s: %s", person["_id"], caller.user_id, reason)
        self._record(
            action,
            caller,
            person["_id"],
            changes={
                "attemptedBy": str(caller.user_id),
                "userDepartment": caller_dept.get("name"),
                "personStatus": person.get("currentStatus"),
                "reason": reason,
            },
        )
        return forbidden(reason)

    def _load(self, person_id) -> dict[str, Any]:
        person = self._store.get(person_id)
        if not person:
            raise not_found("Person not found")
        return person

    def _history(self, status: PersonStatus, caller: Caller, now) -> dict[str, Any]:
        return {"status": status.value, "changedBy": as_ref(caller.user_id), "changedAt": now}

    def _commit(
        self,
        person: dict[str, Any],
        caller: Caller,
        operation: str,
        *,
        expected: PersonStatus,
        set_fields: dict[str, Any],
        precheck: Callable[[dict[str, Any]], None],
        target: PersonStatus | None = None,
        now=None,
        extra_filter: dict[str, Any] | None = None,
        on_stale: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        history = None
        if target is not None and target is not expected:
            if not can_transition(expected, target):
                raise invalid_state(
                    f"Illegal transition from {expected.value} to {target.value}", expected.value
                )
            set_fields = {**set_fields, "currentStatus": target.value}
            history = self._history(target, caller, now)

        updated = self._store.transition(
            person["_id"],
            expected_status=expected.value,
            set_fields=set_fields,
            history_entry=history,
            extra_filter=extra_filter,
        )
        if updated is not None:
            return updated

        fresh = self._load(person["_id"])
        logger.warning("Concurrent update lost %s person=%s status=%s", operation, person["_id"], fresh.get("currentStatus"))
        try:
            precheck(fresh)
        except ApiError as err:
            if err.code != "CONFLICT":
                raise
            raise self._duplicate(caller, fresh, err.message, operation) from err
        # Replayed checks pass; retry once where the operation allows it.
        if on_stale is not None:
            return on_stale(fresh)
        raise self._duplicate(caller, fresh, "Person was modified by another request. Reload and try again.", operation)

    # ------------------------------------------------------------------
    # edit locks
    # ------------------------------------------------------------------
    def _check_finance_lock(self, caller: Caller, person: dict[str, Any], caller_dept: dict[str, Any] | None) -> None:
        status = status_of(person)
        if status not in FINANCE_LOCKED_STATUSES or not caller_dept:
            return
        for code in (OPERATION, HR):
            if self._is_member(caller, self._optional_department(code)):
                reason = f"{caller_dept.get('name')} department cannot edit persons in {status.value} stage"
                raise self._lock_denied(AuditAction.FINANCE_UPDATE_ATTEMPT_DENIED, caller, person, caller_dept, reason)

    def _check_hr_lock(
        self, caller: Caller, person: dict[str, Any], caller_dept: dict[str, Any] | None, hr: dict[str, Any]
    ) -> None:
        status = status_of(person)
        if not caller_dept:
            return
        if self._is_member(caller, hr):
            if status is PersonStatus.HR_COMPLETED:
                reason = "HR cannot edit persons after HR completion. Profile is read-only."
                raise self._lock_denied(AuditAction.HR_UPDATE_ATTEMPT_DENIED, caller, person, caller_dept, reason)
            return
        if status not in HR_LOCKED_STATUSES:
            return
        for code in (OPERATION, FINANCE):
            if self._is_member(caller, self._optional_department(code)):
                reason = f"{caller_dept.get('name')} department cannot edit persons in {status.value} stage"
                raise self._lock_denied(AuditAction.HR_UPDATE_ATTEMPT_DENIED, caller, person, caller_dept, reason)

    # ------------------------------------------------------------------
    # Operation
    # ------------------------------------------------------------------
    def create_person(self, caller: Caller, data: dict[str, Any]) -> dict[str, Any]:
        operation = self._department(OPERATION)
        if not self._is_member(caller, operation):
            raise self._deny(caller, None, "Only Operation department users can create persons", "createPerson")
        self._authorize(caller, None, PERSON_CREATE, "createPerson")

        email = str(data.get("email") or "").strip().lower()
        primary_mobile = str(data.get("primaryMobile") or "").strip()
        alternate_mobile = str(data.get("alternateMobile") or "").strip() or None

        if alternate_mobile and alternate_mobile == primary_mobile:
            reason = "Alternate mobile must be different from primary mobile"
            self._record(
                AuditAction.PERSON_VALIDATION_FAILED,
                caller,
                None,
                changes={"email": email},
                metadata={"reasons": [reason]},
            )
            raise validation_failed(reason, {"reasons": [reason]})

        category = Category(data["category"])
        cv_file = str(data.get("cvFile") or "").strip() or None
        certificates = [str(c).strip() for c in (data.get("qualificationCertificates") or []) if str(c or "").strip()]
        ndt = str(data.get("ndtCertificate") or "").strip() or None
        if category is not Category.MECHANICAL:
            ndt = None

        reasons: list[str] = []
        if not cv_file:
            reasons.append("CV file is missing")
        if not certificates:
            reasons.append("At least one qualification certificate is required")
        if category is Category.MECHANICAL and not ndt:
            reasons.append("NDT certificate is required for MECHANICAL category")
        if reasons:
            self._record(
                AuditAction.PERSON_DOCUMENT_VALIDATION_FAILED,
                caller,
                None,
                changes={"email": email, "category": category.value},
                metadata={"reasons": reasons},
            )
            raise validation_failed(reasons[0] if len(reasons) == 1 else "; ".join(reasons), {"reasons": reasons})

        now = self._clock()
        doc: dict[str, Any] = {
            "fullName": str(data.get("fullName") or "").strip(),
            "email": email,
            "primaryMobile": primary_mobile,
            "alternateMobile": alternate_mobile,
            "employmentType": str(data.get("employmentType")),
            "category": category.value,
            "companyName": data.get("companyName"),
            "experience": data.get("experience"),
            "currentLocation": data.get("currentLocation"),
            "cvFile": cv_file,
            "qualificationCertificates": certificates,
            "ndtCertificate": ndt,
            "owningDepartment": operation["_id"],
            "currentStatus": INITIAL_STATUS.value,
            "statusHistory": [self._history(INITIAL_STATUS, caller, now)],
            "createdBy": as_ref(caller.user_id),
            "isActive": True,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            person = self._store.insert(doc)
        except DuplicateKeyError as e:
            existing = self._store.find_by_email(email)
            field_name, reason = "email", "Email already exists"
            if not existing:
                existing = self._store.find_by_mobile(primary_mobile)
                field_name, reason = "primaryMobile", "Mobile number already exists"
            self._record(
                AuditAction.PERSON_DUPLICATE_ATTEMPT,
                caller,
                existing["_id"] if existing else None,
                changes={"email": email, "primaryMobile": primary_mobile},
                metadata={"reason": reason},
            )
            raise conflict(reason, {"field": field_name}) from e

        self._record(
            AuditAction.PERSON_CREATE,
            caller,
            person["_id"],
            changes={
                "fullName": person["fullName"],
                "email": person["email"],
                "category": person["category"],
                "employmentType": person["employmentType"],
            },
            metadata={
                "hasCV": bool(cv_file),
                "qualificationCertCount": len(certificates),
                "hasNDT": bool(ndt),
            },
        )
        logger.info("Person created id=%s by user=%s", person["_id"], caller.user_id)
        return person

    def get_person(self, person_id) -> dict[str, Any]:
        return self._load(person_id)

    def list_persons(
        self,
        *,
        status: PersonStatus | None = None,
        category: Category | None = None,
        owning_department=None,
        skip: int = 0,
        limit: int = 100,
    ) -> dict[str, Any]:
        skip = max(0, int(skip))
        limit = max(1, min(int(limit), self._max_page_limit))
        filters: dict[str, Any] = {}
        if status is not None:
            filters["currentStatus"] = status.value
        if category is not None:
            filters["category"] = category.value
        if owning_department is not None:
            filters["owningDepartment"] = as_ref(owning_department)

        items, total = self._store.list(filters=filters, skip=skip, limit=limit)
        return {"items": items, "total": total, "skip": skip, "limit": limit, "hasMore": skip + limit < total}

    def submit_to_finance(self, caller: Caller, person_id) -> dict[str, Any]:
        person = self._load(person_id)

        def precheck(p: dict[str, Any]) -> None:
            status = status_of(p)
            if status is not PersonStatus.OPERATION_STAGE_A:
                raise invalid_state(
                    f"Cannot submit person to Finance. Current status is {status.value}. "
                    f"Only persons in OPERATION_STAGE_A can be submitted.",
                    status.value,
                )

        precheck(person)
        operation = self._department(OPERATION)
        if not self._is_member(caller, operation):
            raise self._deny(caller, person, "Only Operation department users can submit persons to Finance", "submitToFinance")
        self._authorize(caller, person, PERSON_SUBMIT, "submitToFinance")
        finance = self._department(FINANCE)

        now = self._clock()
        updated = self._commit(
            person,
            caller,
            "submitToFinance",
            expected=PersonStatus.OPERATION_STAGE_A,
            target=PersonStatus.FINANCE_STAGE,
            set_fields={"owningDepartment": finance["_id"], "updatedAt": now},
            precheck=precheck,
            now=now,
        )

        self._record(
            AuditAction.PERSON_SUBMITTED_TO_FINANCE,
            caller,
            person["_id"],
            changes={
                "previousStatus": PersonStatus.OPERATION_STAGE_A.value,
                "newStatus": PersonStatus.FINANCE_STAGE.value,
                "fromDepartment": operation.get("name"),
                "toDepartment": finance.get("name"),
                "previousDepartmentId": str(person.get("owningDepartment")),
                "newDepartmentId": str(finance["_id"]),
            },
        )
        logger.info("Person submitted to finance id=%s by user=%s", person["_id"], caller.user_id)
        return updated

    # ------------------------------------------------------------------
    # Finance
    # ------------------------------------------------------------------
    def _finance_gate(self, caller: Caller, person: dict[str, Any], operation: str, permission: str) -> dict[str, Any]:
        caller_dept = self._departments.find_by_id(caller.department_id)
        self._check_finance_lock(caller, person, caller_dept)
        finance = self._department(FINANCE)
        if not self._is_member(caller, finance):
            raise self._deny(caller, person, "Only Finance department users can perform this action", operation)
        self._authorize(caller, person, permission, operation)
        return finance

    @staticmethod
    def _kyc_completed(person: dict[str, Any]) -> bool:
        return bool((person.get("financeDetails") or {}).get("kycCompleted"))

    def update_finance_details(
        self, caller: Caller, person_id, *, details: dict[str, Any], documents: dict[str, Any]
    ) -> dict[str, Any]:
        person = self._load(person_id)
        self._finance_gate(caller, person, "updateFinanceDetails", FINANCE_UPDATE)

        def precheck(p: dict[str, Any]) -> None:
            status = status_of(p)
            if status is not PersonStatus.FINANCE_STAGE:
                raise invalid_state(
                    f"Cannot update finance details. Person status is {status.value}. "
                    f"Only persons in FINANCE_STAGE can be updated.",
                    status.value,
                )

        precheck(person)
        if self._kyc_completed(person):
            raise self._duplicate(caller, person, "Finance KYC has already been completed", "updateFinanceDetails")

        now = self._clock()
        set_fields: dict[str, Any] = {"updatedAt": now}
        for key, value in details.items():
            set_fields[f"financeDetails.{key}"] = value
        for key, value in documents.items():
            set_fields[f"financeDocuments.{key}"] = value

        updated = self._commit(
            person,
            caller,
            "updateFinanceDetails",
            expected=PersonStatus.FINANCE_STAGE,
            set_fields=set_fields,
            precheck=precheck,
            extra_filter={"financeDetails.kycCompleted": {"$ne": True}},
        )

        self._record(
            AuditAction.FINANCE_DETAILS_UPDATED,
            caller,
            person["_id"],
            changes={
                "previousValues": {
                    "financeDetails": dict(person.get("financeDetails") or {}),
                    "financeDocuments": dict(person.get("financeDocuments") or {}),
                },
                "newValues": {
                    "financeDetails": dict(updated.get("financeDetails") or {}),
                    "financeDocuments": dict(updated.get("financeDocuments") or {}),
                },
            },
        )
        logger.info("Finance details updated id=%s by user=%s", person["_id"], caller.user_id)
        return updated

    @staticmethod
    def missing_finance_items(person: dict[str, Any]) -> tuple[list[str], list[str]]:
        details = person.get("financeDetails") or {}
        docs = person.get("financeDocuments") or {}
        missing_fields = [f for f in REQUIRED_FINANCE_FIELDS if _blank(details.get(f))]
        missing_docs = [d for d in REQUIRED_FINANCE_DOCUMENTS if _blank(docs.get(d))]
        return missing_fields, missing_docs

    def complete_finance(self, caller: Caller, person_id) -> dict[str, Any]:
        person = self._load(person_id)
        self._finance_gate(caller, person, "completeFinance", FINANCE_COMPLETE)

        def precheck(p: dict[str, Any]) -> None:
            if self._kyc_completed(p):
                raise conflict("Finance KYC has already been completed")
            status = status_of(p)
            if status is not PersonStatus.FINANCE_STAGE:
                raise invalid_state(
                    f"Cannot complete finance. Person status is {status.value}. "
                    f"Only persons in FINANCE_STAGE can be completed.",
                    status.value,
                )

        if self._kyc_completed(person):
            raise self._duplicate(caller, person, "Finance KYC has already been completed", "completeFinance")
        precheck(person)

        missing_fields, missing_docs = self.missing_finance_items(person)
        if missing_fields or missing_docs:
            self._record(
                AuditAction.FINANCE_VALIDATION_FAILED,
                caller,
                person["_id"],
                metadata={"missingFields": missing_fields, "missingDocuments": missing_docs},
            )
            raise validation_failed(
                "Cannot complete finance. Required fields or documents are missing.",
                {"missingFields": missing_fields, "missingDocuments": missing_docs},
            )

        now = self._clock()
        updated = self._commit(
            person,
            caller,
            "completeFinance",
            expected=PersonStatus.FINANCE_STAGE,
            target=PersonStatus.FINANCE_COMPLETED,
            set_fields={
                "financeDetails.kycCompleted": True,
                "financeDetails.completedAt": now,
                "updatedAt": now,
            },
            precheck=precheck,
            now=now,
            extra_filter={"financeDetails.kycCompleted": {"$ne": True}},
        )

        self._record(
            AuditAction.FINANCE_COMPLETED,
            caller,
            person["_id"],
            changes={
                "previousStatus": PersonStatus.FINANCE_STAGE.value,
                "newStatus": PersonStatus.FINANCE_COMPLETED.value,
                "kycCompleted": True,
            },
        )
        logger.info("Finance completed id=%s by user=%s", person["_id"], caller.user_id)
        return updated

    def assign_employee_code(self, caller: Caller, person_id) -> dict[str, Any]:
        person = self._load(person_id)
        self._finance_gate(caller, person, "assignEmployeeCode", EMPLOYEE_CODE_ASSIGN)

        def precheck(p: dict[str, Any]) -> None:
            if p.get("employeeCode"):
                raise conflict(f"Employee code has already been assigned: {p['employeeCode']}")
            status = status_of(p)
            if status is not PersonStatus.FINANCE_COMPLETED:
                raise invalid_state(
                    f"Cannot assign employee code. Person status is {status.value}. "
                    f"Only persons in FINANCE_COMPLETED can be assigned a code.",
                    status.value,
                )

        if person.get("employeeCode"):
            raise self._duplicate(
                caller,
                person,
                f"Employee code has already been assigned: {person['employeeCode']}",
                "assignEmployeeCode",
            )
        precheck(person)

        now = self._clock()

        def commit(code: str) -> dict[str, Any]:
            return self._commit(
                person,
                caller,
                "assignEmployeeCode",
                expected=PersonStatus.FINANCE_COMPLETED,
                target=PersonStatus.EMPLOYEE_CODE_ASSIGNED,
                set_fields={
                    "employeeCode": code,
                    "employeeCodeAssignedAt": now,
                    "employeeCodeAssignedBy": as_ref(caller.user_id),
                    "updatedAt": now,
                },
                precheck=precheck,
                now=now,
                extra_filter={"employeeCode": {"$exists": False}},
            )

        code, updated = self._codes.allocate(commit, now)

        self._record(
            AuditAction.EMPLOYEE_CODE_ASSIGNED,
            caller,
            person["_id"],
            changes={
                "employeeCode": code,
                "previousStatus": PersonStatus.FINANCE_COMPLETED.value,
                "newStatus": PersonStatus.EMPLOYEE_CODE_ASSIGNED.value,
            },
        )
        logger.info("Employee code %s assigned id=%s by user=%s", code, person["_id"], caller.user_id)
        return updated

    # ------------------------------------------------------------------
    # HR
    # ------------------------------------------------------------------
    def _hr_gate(self, caller: Caller, person: dict[str, Any], operation: str, permission: str) -> None:
        hr = self._department(HR)
        caller_dept = self._departments.find_by_id(caller.department_id)
        self._check_hr_lock(caller, person, caller_dept, hr)
        if not self._is_member(caller, hr):
            raise self._deny(caller, person, "Only HR department users can perform this action", operation)
        self._authorize(caller, person, permission, operation)

    @staticmethod
    def _hr_window(p: dict[str, Any], verb: str) -> PersonStatus:
        status = status_of(p)
        if status not in HR_VISIBLE_STATUSES:
            raise invalid_state(
                f"Cannot {verb} HR documents. Person status is {status.value}. "
                f"HR documents are available from EMPLOYEE_CODE_ASSIGNED onwards.",
                status.value,
            )
        return status

    @staticmethod
    def _slot(person: dict[str, Any], doc_type: HRDocumentType) -> dict[str, Any]:
        return ((person.get("hrDetails") or {}).get(doc_type.slot)) or {}

    def _hr_commit(
        self,
        caller: Caller,
        person: dict[str, Any],
        operation: str,
        *,
        set_fields: dict[str, Any],
        precheck: Callable[[dict[str, Any]], None],
        extra_filter: dict[str, Any],
        now,
        permission: str,
        retry: bool = True,
    ) -> dict[str, Any]:
        status = status_of(person)
        # First HR document action moves the person into HR_STAGE.
        target = PersonStatus.HR_STAGE if status is PersonStatus.EMPLOYEE_CODE_ASSIGNED else None

        def again(fresh: dict[str, Any]) -> dict[str, Any]:
            self._hr_gate(caller, fresh, operation, permission)
            return self._hr_commit(
                caller,
                fresh,
                operation,
                set_fields=set_fields,
                precheck=precheck,
                extra_filter=extra_filter,
                now=now,
                permission=permission,
                retry=False,
            )

        return self._commit(
            person,
            caller,
            operation,
            expected=status,
            target=target,
            set_fields=set_fields,
            precheck=precheck,
            now=now,
            extra_filter=extra_filter,
            on_stale=again if retry else None,
        )

    def generate_hr_document(
        self, caller: Caller, person_id, *, document_type: HRDocumentType, template_id
    ) -> dict[str, Any]:
        person = self._load(person_id)
        self._hr_gate(caller, person, "generateHRDocument", HR_DOCUMENT_MANAGE)

        def precheck(p: dict[str, Any]) -> None:
            self._hr_window(p, "generate")
            if self._slot(p, document_type).get("status") in {HRDocumentStatus.GENERATED.value, HRDocumentStatus.SIGNED.value}:
                raise conflict(f"{document_type.label} has already been generated")

        previous_status = self._hr_window(person, "generate")

        template = self._templates.find_by_id(template_id)
        if not template:
            raise not_found("Template not found")
        problem = None
        if not template.get("isPublished"):
            problem = "Template is not published"
        elif str(template.get("type") or "") != document_type.value:
            problem = f"Template type {template.get('type')} does not match document type {document_type.value}"
        if problem:
            self._record(
                AuditAction.HR_VALIDATION_FAILED,
                caller,
                person["_id"],
                metadata={"documentType": document_type.value, "templateId": str(template_id), "reason": problem},
            )
            raise validation_failed(problem, {"reasons": [problem]})

        if self._slot(person, document_type).get("status") in {HRDocumentStatus.GENERATED.value, HRDocumentStatus.SIGNED.value}:
            raise self._duplicate(caller, person, f"{document_type.label} has already been generated", "generateHRDocument")

        now = self._clock()
        generated_file = (
            f"{self._upload_prefix}/{person['_id']}/{document_type.value.lower()}-{int(now.timestamp() * 1000)}.pdf"
        )
        updated = self._hr_commit(
            caller,
            person,
            "generateHRDocument",
            set_fields={
                f"hrDetails.{document_type.slot}": {
                    "templateId": template["_id"],
                    "generatedFile": generated_file,
                    "status": HRDocumentStatus.GENERATED.value,
                    "generatedAt": now,
                    "signedFile": None,
                    "signedAt": None,
                },
                "updatedAt": now,
            },
            precheck=precheck,
            extra_filter={
                f"hrDetails.{document_type.slot}.status": {
                    "$nin": [HRDocumentStatus.GENERATED.value, HRDocumentStatus.SIGNED.value]
                }
            },
            now=now,
            permission=HR_DOCUMENT_MANAGE,
        )

        self._record(
            AuditAction.HR_DOCUMENT_GENERATED,
            caller,
            person["_id"],
            changes={
                "documentType": document_type.value,
                "templateId": str(template["_id"]),
                "generatedFile": generated_file,
            },
            metadata={"previousStatus": previous_status.value, "newStatus": updated.get("currentStatus")},
        )
        logger.info("HR %s generated id=%s by user=%s", document_type.value, person["_id"], caller.user_id)
        return updated

    def upload_signed_hr_document(
        self, caller: Caller, person_id, *, document_type: HRDocumentType, signed_file: str
    ) -> dict[str, Any]:
        person = self._load(person_id)
        self._hr_gate(caller, person, "uploadSignedHRDocument", HR_DOCUMENT_MANAGE)

        def precheck(p: dict[str, Any]) -> None:
            self._hr_window(p, "upload")
            slot_status = self._slot(p, document_type).get("status")
            if slot_status == HRDocumentStatus.SIGNED.value:
                raise conflict(f"{document_type.label} has already been signed")
            if slot_status != HRDocumentStatus.GENERATED.value:
                raise validation_failed(f"{document_type.label} must be generated before uploading a signed copy")

        previous_status = self._hr_window(person, "upload")
        slot_status = self._slot(person, document_type).get("status")
        if slot_status == HRDocumentStatus.SIGNED.value:
            raise self._duplicate(caller, person, f"{document_type.label} has already been signed", "uploadSignedHRDocument")
        if slot_status != HRDocumentStatus.GENERATED.value:
            reason = f"{document_type.label} must be generated before uploading a signed copy"
            self._record(
                AuditAction.HR_VALIDATION_FAILED,
                caller,
                person["_id"],
                metadata={"documentType": document_type.value, "reason": reason},
            )
            raise validation_failed(reason, {"reasons": [reason]})

        now = self._clock()
        slot = document_type.slot
        updated = self._hr_commit(
            caller,
            person,
            "uploadSignedHRDocument",
            set_fields={
                f"hrDetails.{slot}.signedFile": signed_file,
                f"hrDetails.{slot}.status": HRDocumentStatus.SIGNED.value,
                f"hrDetails.{slot}.signedAt": now,
                "updatedAt": now,
            },
            precheck=precheck,
            extra_filter={f"hrDetails.{slot}.status": HRDocumentStatus.GENERATED.value},
            now=now,
            permission=HR_DOCUMENT_MANAGE,
        )

        self._record(
            AuditAction.HR_DOCUMENT_SIGNED,
            caller,
            person["_id"],
            changes={"documentType": document_type.value, "signedFile": signed_file},
            metadata={"previousStatus": previous_status.value, "newStatus": updated.get("currentStatus")},
        )
        logger.info("HR %s signed id=%s by user=%s", document_type.value, person["_id"], caller.user_id)
        return updated

    def view_hr_documents(self, caller: Caller, person_id) -> dict[str, Any]:
        person = self._load(person_id)
        status = status_of(person)
        if status not in HR_VISIBLE_STATUSES:
            raise forbidden(
                f"Person profile is not visible. Current status is {status.value}. "
                f"Profiles are visible from EMPLOYEE_CODE_ASSIGNED onwards.",
                {"currentStatus": status.value},
            )
        return person

    def complete_hr(self, caller: Caller, person_id) -> dict[str, Any]:
        person = self._load(person_id)
        hr = self._department(HR)
        if not self._is_member(caller, hr):
            self._check_hr_lock(caller, person, self._departments.find_by_id(caller.department_id), hr)
            raise self._deny(caller, person, "Only HR department users can complete HR", "completeHR")
        self._authorize(caller, person, HR_COMPLETE, "completeHR")

        def precheck(p: dict[str, Any]) -> None:
            if (p.get("hrDetails") or {}).get("hrCompleted"):
                raise conflict("HR has already been completed for this person")
            status = status_of(p)
            if status not in HR_COMPLETABLE_STATUSES:
                raise invalid_state(
                    f"Cannot complete HR. Person status is {status.value}. "
                    f"Only persons with status EMPLOYEE_CODE_ASSIGNED or HR_STAGE can be completed.",
                    status.value,
                )

        if (person.get("hrDetails") or {}).get("hrCompleted"):
            raise self._duplicate(caller, person, "HR has already been completed for this person", "completeHR")
        precheck(person)

        reasons: list[str] = []
        missing_signatures = [
            t.value for t in HRDocumentType if self._slot(person, t).get("status") != HRDocumentStatus.SIGNED.value
        ]
        if not person.get("employeeCode"):
            reasons.append("Employee code must be assigned before HR completion")
        if not self._kyc_completed(person):
            reasons.append("Finance KYC must be completed before HR completion")
        if missing_signatures:
            reasons.append("All HR documents must be signed before completion")
        if reasons:
            self._record(
                AuditAction.HR_VALIDATION_FAILED,
                caller,
                person["_id"],
                metadata={"reasons": reasons, "missingSignatures": missing_signatures},
            )
            raise validation_failed(
                f"Cannot complete HR. {reasons[0]}.",
                {"reasons": reasons, "missingSignatures": missing_signatures},
            )

        status = status_of(person)
        now = self._clock()
        updated = self._commit(
            person,
            caller,
            "completeHR",
            expected=status,
            target=PersonStatus.HR_COMPLETED,
            set_fields={"hrDetails.hrCompleted": True, "hrDetails.hrCompletedAt": now, "updatedAt": now},
            precheck=precheck,
            now=now,
            extra_filter={"hrDetails.hrCompleted": {"$ne": True}},
        )

        self._record(
            AuditAction.HR_COMPLETED,
            caller,
            person["_id"],
            changes={"previousStatus": status.value, "newStatus": PersonStatus.HR_COMPLETED.value},
            metadata={"employeeCode": person.get("employeeCode")},
        )
        logger.info("HR completed id=%s by user=%s", person["_id"], caller.user_id)
        return updated
