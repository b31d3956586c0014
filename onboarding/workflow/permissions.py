from __future__ import annotations

PERSON_CREATE = "PERSON_CREATE"
PERSON_READ = "PERSON_READ"
PERSON_SUBMIT = "PERSON_SUBMIT"
FINANCE_UPDATE = "FINANCE_UPDATE"
FINANCE_COMPLETE = "FINANCE_COMPLETE"
EMPLOYEE_CODE_ASSIGN = "EMPLOYEE_CODE_ASSIGN"
HR_READ = "HR_READ"
HR_DOCUMENT_MANAGE = "HR_DOCUMENT_MANAGE"
HR_COMPLETE = "HR_COMPLETE"
AUDIT_LOG_READ = "AUDIT_LOG_READ"
REPORT_READ = "REPORT_READ"
USER_CREATE = "USER_CREATE"

PERMISSIONS = (
    PERSON_CREATE,
    PERSON_READ,
    PERSON_SUBMIT,
    FINANCE_UPDATE,
    FINANCE_COMPLETE,
    EMPLOYEE_CODE_ASSIGN,
    HR_READ,
    HR_DOCUMENT_MANAGE,
    HR_COMPLETE,
    AUDIT_LOG_READ,
    REPORT_READ,
    USER_CREATE,
)

# Default grant for users created without an explicit permission list.
DEPARTMENT_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "OPERATION": (PERSON_CREATE, PERSON_READ, PERSON_SUBMIT),
    "FINANCE": (PERSON_READ, FINANCE_UPDATE, FINANCE_COMPLETE, EMPLOYEE_CODE_ASSIGN),
    "HR": (PERSON_READ, HR_READ, HR_DOCUMENT_MANAGE, HR_COMPLETE),
    "ADMIN": PERMISSIONS,
}
