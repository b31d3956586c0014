from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from dateutil import parser as date_parser
from flask import request

from onboarding.utils.errors import ApiError, bad_request
from onboarding.workflow.status import (
    Category,
    EmploymentType,
    HRDocumentType,
    PaymentMode,
    SalaryType,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MOBILE_RE = re.compile(r"^[\d\s\-\+\(\)]+$")
_IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
_PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
_ACCOUNT_RE = re.compile(r"^[A-Za-z0-9]+$")

FINANCE_DETAIL_FIELDS = (
    "bankName",
    "accountHolderName",
    "accountNumber",
    "ifscCode",
    "panNumber",
    "paymentMode",
    "salaryType",
    "salaryAmount",
    "financeRemarks",
)
FINANCE_DOCUMENT_FIELDS = ("bankProof", "panCard", "salaryStructure")


def require_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "JSON body must be an object", status=400)
    return body


def validate_email(value: Any) -> str:
    email = str(value or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        raise ApiError("BAD_REQUEST", "Invalid email", status=400)
    return email


def validate_password(value: Any, *, allow_short: bool) -> str:
    password = str(value or "")
    if not password:
        raise ApiError("BAD_REQUEST", "Password required", status=400)
    if not allow_short and len(password) < 8:
        raise ApiError("BAD_REQUEST", "Password must be at least 8 characters", status=400)
    return password


class _Errors:
    def __init__(self) -> None:
        self.items: list[dict[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self.items.append({"field": field, "message": message})

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self.items:
            raise bad_request(message, self.items)


def _opt_text(body: dict[str, Any], key: str, max_len: int, errors: _Errors) -> str | None:
    raw = body.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        errors.add(key, f"{key} must be a string")
        return None
    value = raw.strip()
    if len(value) > max_len:
        errors.add(key, f"{key} cannot exceed {max_len} characters")
    return value or None


def _enum(body: dict[str, Any], key: str, enum_cls: type[Enum], errors: _Errors, *, required: bool) -> str | None:
    raw = body.get(key)
    if raw is None or raw == "":
        if required:
            errors.add(key, f"{key} is required")
        return None
    value = str(raw).strip().upper()
    allowed = [e.value for e in enum_cls]
    if value not in allowed:
        errors.add(key, f"{key} must be one of: {', '.join(allowed)}")
        return None
    return value


def _mobile(body: dict[str, Any], key: str, errors: _Errors, *, required: bool) -> str | None:
    raw = body.get(key)
    value = str(raw or "").strip()
    if not value:
        if required:
            errors.add(key, f"{key} is required")
        return None
    if not _MOBILE_RE.match(value):
        errors.add(key, f"{key} must contain only digits, spaces, and +-() characters")
    elif not 10 <= len(value) <= 20:
        errors.add(key, f"{key} must be between 10 and 20 characters")
    return value


def _file_ref(body: dict[str, Any], key: str, errors: _Errors) -> str | None:
    raw = body.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        errors.add(key, f"{key} must be a file path string")
        return None
    return raw.strip() or None


def parse_person_payload(body: dict[str, Any]) -> dict[str, Any]:
    errors = _Errors()

    full_name = str(body.get("fullName") or "").strip()
    if not full_name:
        errors.add("fullName", "fullName is required")
    elif len(full_name) > 200:
        errors.add("fullName", "fullName cannot exceed 200 characters")

    email = str(body.get("email") or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        errors.add("email", "A valid email is required")

    certificates = body.get("qualificationCertificates")
    if certificates is None:
        certificates = []
    if not isinstance(certificates, list) or not all(isinstance(c, str) for c in certificates):
        errors.add("qualificationCertificates", "qualificationCertificates must be an array of file paths")
        certificates = []

    data = {
        "fullName": full_name,
        "email": email,
        "primaryMobile": _mobile(body, "primaryMobile", errors, required=True),
        "alternateMobile": _mobile(body, "alternateMobile", errors, required=False),
        "employmentType": _enum(body, "employmentType", EmploymentType, errors, required=True),
        "category": _enum(body, "category", Category, errors, required=True),
        "companyName": _opt_text(body, "companyName", 200, errors),
        "experience": _opt_text(body, "experience", 100, errors),
        "currentLocation": _opt_text(body, "currentLocation", 200, errors),
        "cvFile": _file_ref(body, "cvFile", errors),
        "qualificationCertificates": certificates,
        "ndtCertificate": _file_ref(body, "ndtCertificate", errors),
    }
    errors.raise_if_any()
    return data


def _salary_amount(raw: Any, errors: _Errors) -> float | None:
    if isinstance(raw, bool):
        errors.add("salaryAmount", "salaryAmount must be a number")
        return None
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        errors.add("salaryAmount", "salaryAmount must be a number")
        return None
    if not amount.is_finite() or amount < Decimal("0.01"):
        errors.add("salaryAmount", "salaryAmount must be a positive number")
        return None
    return float(amount)


def parse_finance_payload(body: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a partial finance update into (details, documents).

    Only keys present in ``body`` are returned; ``None`` or ``""`` clears a value.
    """
    errors = _Errors()
    details: dict[str, Any] = {}
    documents: dict[str, Any] = {}

    def present(key: str) -> bool:
        return key in body

    def cleared(key: str) -> bool:
        return body.get(key) is None or (isinstance(body.get(key), str) and not body[key].strip())

    for key in ("bankName", "accountHolderName"):
        if present(key):
            details[key] = None if cleared(key) else _opt_text(body, key, 200, errors)

    if present("accountNumber"):
        value = None if cleared("accountNumber") else str(body["accountNumber"]).strip()
        if value is not None and (len(value) > 50 or not _ACCOUNT_RE.match(value)):
            errors.add("accountNumber", "accountNumber must be alphanumeric and at most 50 characters")
        details["accountNumber"] = value

    for key, pattern, label in (("ifscCode", _IFSC_RE, "IFSC code"), ("panNumber", _PAN_RE, "PAN number")):
        if not present(key):
            continue
        value = None if cleared(key) else str(body[key]).strip().upper()
        if value is not None and not pattern.match(value):
            errors.add(key, f"Invalid {label} format")
        details[key] = value

    if present("paymentMode"):
        details["paymentMode"] = None if cleared("paymentMode") else _enum(body, "paymentMode", PaymentMode, errors, required=False)
    if present("salaryType"):
        details["salaryType"] = None if cleared("salaryType") else _enum(body, "salaryType", SalaryType, errors, required=False)
    if present("salaryAmount"):
        details["salaryAmount"] = None if cleared("salaryAmount") else _salary_amount(body["salaryAmount"], errors)
    if present("financeRemarks"):
        details["financeRemarks"] = None if cleared("financeRemarks") else _opt_text(body, "financeRemarks", 1000, errors)

    for key in FINANCE_DOCUMENT_FIELDS:
        if present(key):
            documents[key] = None if cleared(key) else _file_ref(body, key, errors)

    errors.raise_if_any()
    if not details and not documents:
        raise bad_request(
            "No finance fields supplied",
            {"allowed": list(FINANCE_DETAIL_FIELDS) + list(FINANCE_DOCUMENT_FIELDS)},
        )
    return details, documents


def parse_document_type(value: Any) -> HRDocumentType:
    raw = str(value or "").strip().upper()
    try:
        return HRDocumentType(raw)
    except ValueError as e:
        raise bad_request(
            "documentType must be one of: " + ", ".join(t.value for t in HRDocumentType),
            [{"field": "documentType", "message": "invalid documentType"}],
        ) from e


def require_text(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        raise bad_request(f"{key} is required", [{"field": key, "message": f"{key} is required"}])
    return value.strip()


def parse_datetime_arg(value: Any, field: str, *, end_of_day: bool = False) -> datetime | None:
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        dt = date_parser.isoparse(raw)
    except (ValueError, OverflowError) as e:
        raise bad_request(f"{field} must be an ISO-8601 date") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    # Exclusive upper bound: a bare date covers the whole day.
    if end_of_day:
        dt = dt + (timedelta(days=1) if len(raw) == 10 else timedelta(milliseconds=1))
    return dt


def _parse_yyyy_mm_dd(value: str) -> datetime:
    try:
        dt = datetime.strptime(value, "%Y-%m-%d")
    except Exception as e:
        raise ApiError("BAD_REQUEST", "Date must be YYYY-MM-DD", status=400) from e
    return dt.replace(tzinfo=timezone.utc)


def parse_date_range(args) -> tuple[datetime, datetime, str, str]:
    from_s = str(args.get("from") or "").strip()
    to_s = str(args.get("to") or "").strip()
    if not from_s or not to_s:
        raise ApiError("BAD_REQUEST", "from and to are required (YYYY-MM-DD)", status=400)

    start_dt = _parse_yyyy_mm_dd(from_s)
    end_dt = _parse_yyyy_mm_dd(to_s) + timedelta(days=1)
    if end_dt <= start_dt:
        raise ApiError("BAD_REQUEST", "Invalid date range", status=400)
    return start_dt, end_dt, from_s, to_s
