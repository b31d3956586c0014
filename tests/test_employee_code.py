from __future__ import annotations

import re
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from conftest import StaleReadStore
from onboarding.utils.errors import ApiError
from onboarding.workflow import Caller, EmployeeCodeGenerator, PersonStore, TemplateProvider, WorkflowEngine


def _clock():
    return datetime(2026, 3, 1, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self, taken=(), highest=None):
        self.taken = set(taken)
        self.highest = highest

    def code_exists(self, code: str) -> bool:
        return code in self.taken

    def highest_code(self, prefix: str):
        return self.highest


def test_generator_formats_and_continues_sequence():
    gen = EmployeeCodeGenerator(FakeStore(highest="JP-EMP-2026-000041"), clock=_clock)
    code, result = gen.allocate(lambda c: {"employeeCode": c})
    assert code == "JP-EMP-2026-000042"
    assert result == {"employeeCode": "JP-EMP-2026-000042"}


def test_generator_starts_at_one_for_new_year():
    gen = EmployeeCodeGenerator(FakeStore(), clock=_clock)
    code, _ = gen.allocate(lambda c: c)
    assert code == "JP-EMP-2026-000001"


def test_generator_skips_taken_and_colliding_codes():
    gen = EmployeeCodeGenerator(FakeStore(taken={"JP-EMP-2026-000001"}), clock=_clock)
    attempts = []

    def commit(code):
        attempts.append(code)
        if code == "JP-EMP-2026-000002":
            raise DuplicateKeyError("E11000 duplicate key")
        return code

    code, _ = gen.allocate(commit)
    assert code == "JP-EMP-2026-000003"
    assert attempts == ["JP-EMP-2026-000002", "JP-EMP-2026-000003"]


def test_generator_exhaustion():
    gen = EmployeeCodeGenerator(FakeStore(), max_attempts=3, clock=_clock)

    def always_taken(code):
        raise DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(ApiError) as exc:
        gen.allocate(always_taken)
    assert exc.value.code == "CODE_EXHAUSTED"
    assert exc.value.status == 500


def test_generator_refuses_to_overflow_padding():
    gen = EmployeeCodeGenerator(FakeStore(highest="T-2026-9"), prefix="T", pad=1, clock=_clock)
    with pytest.raises(ApiError) as exc:
        gen.allocate(lambda c: c)
    assert exc.value.code == "CODE_EXHAUSTED"


def test_assign_employee_code(flow):
    person_id = flow.to_status("FINANCE_COMPLETED")
    person = flow.assign_code(person_id)

    year = datetime.now(timezone.utc).year
    assert re.fullmatch(rf"JP-EMP-{year}-\d{{6}}", person["employeeCode"])
    assert person["currentStatus"] == "EMPLOYEE_CODE_ASSIGNED"
    assert person["employeeCodeAssignedBy"]

    logs = flow.audits("EMPLOYEE_CODE_ASSIGNED")
    assert len(logs) == 1
    assert logs[0]["changes"]["employeeCode"] == person["employeeCode"]


def test_second_assignment_is_conflict(flow):
    person_id = flow.to_status("EMPLOYEE_CODE_ASSIGNED")
    code = flow.db.persons.find_one({"_id": ObjectId(person_id)})["employeeCode"]

    res = flow.post(person_id, "employee-code", "finance")
    assert res.status_code == 409
    assert res.get_json()["error"]["code"] == "CONFLICT"
    assert code in res.get_json()["error"]["message"]
    assert flow.db.persons.find_one({"_id": ObjectId(person_id)})["employeeCode"] == code


def test_codes_increment_and_follow_highest(flow):
    year = datetime.now(timezone.utc).year
    flow.db.persons.insert_one(
        {
            "fullName": "Legacy",
            "email": "legacy@example.com",
            "primaryMobile": "9111111111",
            "currentStatus": "HR_COMPLETED",
            "employeeCode": f"JP-EMP-{year}-000041",
            "createdAt": datetime.now(timezone.utc),
        }
    )

    first = flow.assign_code(flow.to_status("FINANCE_COMPLETED"))
    second = flow.assign_code(flow.to_status("FINANCE_COMPLETED"))
    assert first["employeeCode"] == f"JP-EMP-{year}-000042"
    assert second["employeeCode"] == f"JP-EMP-{year}-000043"


def test_assign_before_finance_completion(flow):
    person_id = flow.to_status("FINANCE_STAGE")
    res = flow.post(person_id, "employee-code", "finance")
    assert res.status_code == 409
    assert res.get_json()["error"]["code"] == "INVALID_STATE"
    assert "employeeCode" not in flow.db.persons.find_one({"_id": ObjectId(person_id)})


def test_concurrent_assignment_only_one_wins(flow):
    person_id = flow.to_status("FINANCE_COMPLETED")
    stale = flow.db.persons.find_one({"_id": ObjectId(person_id)})

    winner = flow.assign_code(person_id)

    ext = flow.app.extensions
    store = StaleReadStore(PersonStore(flow.db), stale)
    engine = WorkflowEngine(
        store=store,
        departments=ext["departments"],
        templates=TemplateProvider(flow.db),
        audit=ext["audit"],
        codes=EmployeeCodeGenerator(store),
    )
    user = flow.db.users.find_one({"email": "finance@example.com"})
    caller = Caller(
        user_id=str(user["_id"]), department_id=user["departmentId"], permissions=frozenset(user["permissions"])
    )

    with pytest.raises(ApiError) as exc:
        engine.assign_employee_code(caller, person_id)
    assert exc.value.code == "CONFLICT"

    stored = flow.db.persons.find_one({"_id": ObjectId(person_id)})
    assert stored["employeeCode"] == winner["employeeCode"]
    assert [h["status"] for h in stored["statusHistory"]].count("EMPLOYEE_CODE_ASSIGNED") == 1
    assert len(flow.audits("EMPLOYEE_CODE_ASSIGNED")) == 1
    assert len(flow.audits("WORKFLOW_DUPLICATE_ATTEMPT")) == 1
