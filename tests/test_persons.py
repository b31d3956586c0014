from __future__ import annotations


def test_create_person(flow):
    person = flow.create(fullName="  Asha Rao  ", email="Asha@Example.com")

    assert person["currentStatus"] == "OPERATION_STAGE_A"
    assert person["fullName"] == "Asha Rao"
    assert person["email"] == "asha@example.com"
    assert person["owningDepartment"]["code"] == "OPERATION"
    assert person["createdBy"]["email"] == "operation@example.com"
    assert "employeeCode" not in person
    assert [h["status"] for h in person["statusHistory"]] == ["OPERATION_STAGE_A"]

    logs = flow.audits("PERSON_CREATE")
    assert len(logs) == 1
    assert str(logs[0]["targetId"]) == person["id"]
    assert logs[0]["metadata"]["qualificationCertCount"] == 1


def test_mechanical_requires_ndt_certificate(flow):
    res = flow.client.post("/api/v1/persons", headers=flow.h["operation"], json=flow.payload(category="MECHANICAL"))
    assert res.status_code == 400
    err = res.get_json()["error"]
    assert err["code"] == "VALIDATION_FAILED"
    assert err["message"] == "NDT certificate is required for MECHANICAL category"
    assert flow.db.persons.count_documents({}) == 0
    assert len(flow.audits("PERSON_DOCUMENT_VALIDATION_FAILED")) == 1

    person = flow.create(category="MECHANICAL", ndtCertificate="/uploads/ndt.pdf")
    assert person["ndtCertificate"] == "/uploads/ndt.pdf"


def test_ndt_certificate_dropped_for_other_categories(flow):
    person = flow.create(category="CIVIL", ndtCertificate="/uploads/ndt.pdf")
    assert person["ndtCertificate"] is None


def test_missing_documents_are_all_reported(flow):
    res = flow.client.post(
        "/api/v1/persons",
        headers=flow.h["operation"],
        json=flow.payload(cvFile=None, qualificationCertificates=[]),
    )
    assert res.status_code == 400
    reasons = res.get_json()["error"]["details"]["reasons"]
    assert "CV file is missing" in reasons
    assert "At least one qualification certificate is required" in reasons


def test_duplicate_email_is_case_insensitive(flow):
    first = flow.create(email="dup@example.com")

    res = flow.client.post("/api/v1/persons", headers=flow.h["operation"], json=flow.payload(email="DUP@example.com"))
    assert res.status_code == 409
    err = res.get_json()["error"]
    assert err["code"] == "CONFLICT"
    assert err["details"] == {"field": "email"}

    logs = flow.audits("PERSON_DUPLICATE_ATTEMPT")
    assert len(logs) == 1
    assert str(logs[0]["targetId"]) == first["id"]
    assert flow.db.persons.count_documents({}) == 1


def test_duplicate_primary_mobile(flow):
    flow.create(primaryMobile="9000000001")
    res = flow.client.post(
        "/api/v1/persons", headers=flow.h["operation"], json=flow.payload(primaryMobile="9000000001")
    )
    assert res.status_code == 409
    assert res.get_json()["error"]["details"] == {"field": "primaryMobile"}


def test_alternate_mobile_must_differ(flow):
    res = flow.client.post(
        "/api/v1/persons",
        headers=flow.h["operation"],
        json=flow.payload(primaryMobile="9000000002", alternateMobile="9000000002"),
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "VALIDATION_FAILED"
    assert len(flow.audits("PERSON_VALIDATION_FAILED")) == 1


def test_bad_payload_lists_field_errors(flow):
    res = flow.client.post(
        "/api/v1/persons",
        headers=flow.h["operation"],
        json=flow.payload(email="not-an-email", category="PLUMBING", primaryMobile="12ab"),
    )
    assert res.status_code == 400
    fields = {e["field"] for e in res.get_json()["error"]["details"]}
    assert fields == {"email", "category", "primaryMobile"}


def test_only_operation_can_create(flow):
    # Admin holds every permission but is not in the Operation department.
    res = flow.client.post("/api/v1/persons", headers=flow.h["admin"], json=flow.payload())
    assert res.status_code == 403
    assert len(flow.audits("WORKFLOW_ACTION_DENIED")) == 1

    res = flow.client.post("/api/v1/persons", headers=flow.h["hr"], json=flow.payload())
    assert res.status_code == 403
    assert len(flow.audits("WORKFLOW_ACTION_DENIED")) == 2


def test_get_person(flow):
    person = flow.create()
    res = flow.client.get(f"/api/v1/persons/{person['id']}", headers=flow.h["finance"])
    assert res.status_code == 200
    assert res.get_json()["data"]["person"]["id"] == person["id"]

    res = flow.client.get("/api/v1/persons/ffffffffffffffffffffffff", headers=flow.h["finance"])
    assert res.status_code == 404
    res = flow.client.get("/api/v1/persons/not-an-id", headers=flow.h["finance"])
    assert res.status_code == 404


def test_list_persons_filters_and_paging(flow):
    for _ in range(3):
        flow.create()
    flow.create(category="CIVIL")
    submitted = flow.create()
    flow.submit(submitted["id"])

    res = flow.client.get("/api/v1/persons?limit=2", headers=flow.h["operation"])
    data = res.get_json()["data"]
    assert data["total"] == 5
    assert len(data["items"]) == 2
    assert data["hasMore"] is True

    res = flow.client.get("/api/v1/persons?skip=4&limit=2", headers=flow.h["operation"])
    data = res.get_json()["data"]
    assert len(data["items"]) == 1
    assert data["hasMore"] is False

    res = flow.client.get("/api/v1/persons?status=finance_stage", headers=flow.h["operation"])
    items = res.get_json()["data"]["items"]
    assert [p["id"] for p in items] == [submitted["id"]]

    res = flow.client.get("/api/v1/persons?category=CIVIL", headers=flow.h["operation"])
    assert res.get_json()["data"]["total"] == 1

    res = flow.client.get("/api/v1/persons?limit=999999", headers=flow.h["operation"])
    assert res.get_json()["data"]["limit"] == 1000

    res = flow.client.get("/api/v1/persons?status=NOPE", headers=flow.h["operation"])
    assert res.status_code == 400


def test_submit_to_finance(flow):
    person = flow.create()
    updated = flow.submit(person["id"])

    assert updated["currentStatus"] == "FINANCE_STAGE"
    assert updated["owningDepartment"]["code"] == "FINANCE"
    assert [h["status"] for h in updated["statusHistory"]] == ["OPERATION_STAGE_A", "FINANCE_STAGE"]
    assert len(flow.audits("PERSON_SUBMITTED_TO_FINANCE")) == 1


def test_submit_twice_is_invalid_state(flow):
    person = flow.create()
    flow.submit(person["id"])

    res = flow.post(person["id"], "submit-to-finance", "operation")
    assert res.status_code == 409
    err = res.get_json()["error"]
    assert err["code"] == "INVALID_STATE"
    assert err["details"] == {"currentStatus": "FINANCE_STAGE"}
    assert len(flow.audits("PERSON_SUBMITTED_TO_FINANCE")) == 1


def test_submit_requires_operation_department(flow):
    person = flow.create()

    res = flow.post(person["id"], "submit-to-finance", "finance")
    assert res.status_code == 403

    res = flow.post(person["id"], "submit-to-finance", "admin")
    assert res.status_code == 403
    denied = flow.audits("WORKFLOW_ACTION_DENIED")
    assert len(denied) == 2
    assert {d["changes"]["operation"] for d in denied} == {"submitToFinance"}

    stored = flow.db.persons.find_one({"email": person["email"]})
    assert stored["currentStatus"] == "OPERATION_STAGE_A"
