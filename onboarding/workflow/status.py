from __future__ import annotations

from enum import Enum


class PersonStatus(str, Enum):
    OPERATION_STAGE_A = "OPERATION_STAGE_A"
    FINANCE_STAGE = "FINANCE_STAGE"
    FINANCE_COMPLETED = "FINANCE_COMPLETED"
    EMPLOYEE_CODE_ASSIGNED = "EMPLOYEE_CODE_ASSIGNED"
    HR_STAGE = "HR_STAGE"
    HR_COMPLETED = "HR_COMPLETED"

    @classmethod
    def parse(cls, value) -> "PersonStatus | None":
        raw = str(value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            return None


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    CONTRACT = "CONTRACT"
    INTERN = "INTERN"


class Category(str, Enum):
    MECHANICAL = "MECHANICAL"
    ELECTRICAL = "ELECTRICAL"
    CIVIL = "CIVIL"
    IT = "IT"
    OTHER = "OTHER"


class PaymentMode(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    CASH = "CASH"


class SalaryType(str, Enum):
    MONTHLY = "MONTHLY"
    DAILY = "DAILY"
    HOURLY = "HOURLY"


class HRDocumentType(str, Enum):
    OFFER_LETTER = "OFFER_LETTER"
    DECLARATION = "DECLARATION"

    @property
    def slot(self) -> str:
        return "offerLetter" if self is HRDocumentType.OFFER_LETTER else "declaration"

    @property
    def label(self) -> str:
        return "Offer letter" if self is HRDocumentType.OFFER_LETTER else "Declaration"


class HRDocumentStatus(str, Enum):
    GENERATED = "GENERATED"
    SIGNED = "SIGNED"


INITIAL_STATUS = PersonStatus.OPERATION_STAGE_A

# Forward-only. EMPLOYEE_CODE_ASSIGNED may go straight to HR_COMPLETED.
TRANSITIONS: dict[PersonStatus, frozenset[PersonStatus]] = {
    PersonStatus.OPERATION_STAGE_A: frozenset({PersonStatus.FINANCE_STAGE}),
    PersonStatus.FINANCE_STAGE: frozenset({PersonStatus.FINANCE_COMPLETED}),
    PersonStatus.FINANCE_COMPLETED: frozenset({PersonStatus.EMPLOYEE_CODE_ASSIGNED}),
    PersonStatus.EMPLOYEE_CODE_ASSIGNED: frozenset({PersonStatus.HR_STAGE, PersonStatus.HR_COMPLETED}),
    PersonStatus.HR_STAGE: frozenset({PersonStatus.HR_COMPLETED}),
    PersonStatus.HR_COMPLETED: frozenset(),
}

# Operation and HR callers are locked out of these.
FINANCE_LOCKED_STATUSES = frozenset(
    {PersonStatus.FINANCE_STAGE, PersonStatus.FINANCE_COMPLETED, PersonStatus.EMPLOYEE_CODE_ASSIGNED}
)

# Operation and Finance callers are locked out of these.
HR_LOCKED_STATUSES = frozenset({PersonStatus.HR_STAGE, PersonStatus.HR_COMPLETED})

HR_VISIBLE_STATUSES = frozenset(
    {PersonStatus.EMPLOYEE_CODE_ASSIGNED, PersonStatus.HR_STAGE, PersonStatus.HR_COMPLETED}
)
HR_COMPLETABLE_STATUSES = frozenset({PersonStatus.EMPLOYEE_CODE_ASSIGNED, PersonStatus.HR_STAGE})

REQUIRED_FINANCE_FIELDS = (
    "bankName",
    "accountHolderName",
    "accountNumber",
    "ifscCode",
    "panNumber",
    "paymentMode",
    "salaryType",
    "salaryAmount",
)
REQUIRED_FINANCE_DOCUMENTS = ("bankProof", "panCard", "salaryStructure")


def can_transition(current: PersonStatus, target: PersonStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def status_of(person: dict) -> PersonStatus:
    status = PersonStatus.parse(person.get("currentStatus"))
    if status is None:
        raise ValueError(f"Unknown person status: {person.get('currentStatus')!r}")
    return status
