import itertools
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest


BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


PASSWORD = "password123"


@pytest.fixture()
def app_client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "testing")
    monkeypatch.setenv("MONGODB_URI", "mongomock://localhost")
    monkeypatch.setenv("DB_NAME", "onboarding_test")
    monkeypatch.setenv("BOOTSTRAP_TOKEN", "test-bootstrap")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    # Prevent accidental pollution from any existing env config.
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    monkeypatch.delenv("EMPLOYEE_CODE_PREFIX", raising=False)

    from onboarding import create_app
    from onboarding.db import reset_client_for_tests

    reset_client_for_tests()

    app = create_app()
    app.testing = True

    with app.test_client() as client:
        yield app, client

    reset_client_for_tests()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def login(client, email: str, password: str = PASSWORD) -> str:
    res = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return res.get_json()["data"]["access_token"]


@pytest.fixture()
def actors(app_client):
    """Bearer headers for an admin plus one user per workflow department."""
    _app, client = app_client
    res = client.post(
        "/api/v1/auth/bootstrap",
        headers={"X-Bootstrap-Token": "test-bootstrap"},
        json={"email": "admin@example.com", "password": PASSWORD, "fullName": "Admin User"},
    )
    assert res.status_code == 201

    headers = {"admin": auth_header(login(client, "admin@example.com"))}
    for code in ("OPERATION", "FINANCE", "HR"):
        email = f"{code.lower()}@example.com"
        res = client.post(
            "/api/v1/auth/users",
            headers=headers["admin"],
            json={"email": email, "password": PASSWORD, "fullName": f"{code.title()} User", "departmentCode": code},
        )
        assert res.status_code == 201, res.get_json()
        headers[code.lower()] = auth_header(login(client, email))
    return headers


class Flow:
    """Drives persons through the workflow over HTTP, asserting each step succeeds."""

    _seq = itertools.count(1)

    def __init__(self, app, client, headers):
        self.app = app
        self.client = client
        self.h = headers
        self.db = app.extensions["mongo_db"]

    def user(self, name: str, department: str, permissions: list[str]) -> dict:
        """Register an extra user with explicit permissions under ``self.h[name]``."""
        email = f"{name}@example.com"
        res = self.client.post(
            "/api/v1/auth/users",
            headers=self.h["admin"],
            json={
                "email": email,
                "password": PASSWORD,
                "fullName": name.title(),
                "departmentCode": department,
                "permissions": permissions,
            },
        )
        assert res.status_code == 201, res.get_json()
        self.h[name] = auth_header(login(self.client, email))
        return self.h[name]

    def payload(self, **overrides) -> dict:
        n = next(self._seq)
        body = {
            "fullName": f"Person {n}",
            "email": f"person{n}@example.com",
            "primaryMobile": f"98765{n:05d}",
            "employmentType": "FULL_TIME",
            "category": "IT",
            "cvFile": f"/uploads/cv/{n}.pdf",
            "qualificationCertificates": [f"/uploads/certs/{n}-a.pdf"],
        }
        body.update(overrides)
        return body

    def create(self, **overrides) -> dict:
        res = self.client.post("/api/v1/persons", headers=self.h["operation"], json=self.payload(**overrides))
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]["person"]

    def post(self, person_id: str, path: str, who: str, json: dict | None = None):
        return self.client.post(f"/api/v1/persons/{person_id}/{path}", headers=self.h[who], json=json or {})

    def submit(self, person_id: str) -> dict:
        res = self.post(person_id, "submit-to-finance", "operation")
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def fill_finance(self, person_id: str) -> dict:
        res = self.client.put(
            f"/api/v1/persons/{person_id}/finance",
            headers=self.h["finance"],
            json={
                "bankName": "State Bank",
                "accountHolderName": "Person Holder",
                "accountNumber": "123456789012",
                "ifscCode": "sbin0001234",
                "panNumber": "abcde1234f",
                "paymentMode": "BANK_TRANSFER",
                "salaryType": "MONTHLY",
                "salaryAmount": 45000,
                "bankProof": "/uploads/finance/bank.pdf",
                "panCard": "/uploads/finance/pan.pdf",
                "salaryStructure": "/uploads/finance/salary.pdf",
            },
        )
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def complete_finance(self, person_id: str) -> dict:
        res = self.post(person_id, "finance/complete", "finance")
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def assign_code(self, person_id: str) -> dict:
        res = self.post(person_id, "employee-code", "finance")
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def template(self, doc_type: str, *, published: bool = True) -> str:
        res = self.db.templates.insert_one(
            {
                "name": f"{doc_type.title()} template",
                "type": doc_type,
                "content": "<p>{{fullName}}</p>",
                "isPublished": published,
                "publishedAt": datetime.now(timezone.utc) if published else None,
            }
        )
        return str(res.inserted_id)

    def generate(self, person_id: str, doc_type: str) -> dict:
        res = self.post(
            person_id, "hr/generate", "hr", {"documentType": doc_type, "templateId": self.template(doc_type)}
        )
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def sign(self, person_id: str, doc_type: str) -> dict:
        res = self.post(
            person_id, "hr/upload", "hr", {"documentType": doc_type, "signedFile": f"/uploads/signed/{doc_type}.pdf"}
        )
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def complete_hr(self, person_id: str) -> dict:
        res = self.post(person_id, "hr/complete", "hr")
        assert res.status_code == 200, res.get_json()
        return res.get_json()["data"]["person"]

    def to_status(self, status: str, **overrides) -> str:
        person_id = self.create(**overrides)["id"]
        steps = [
            ("FINANCE_STAGE", lambda: self.submit(person_id)),
            ("FINANCE_COMPLETED", lambda: (self.fill_finance(person_id), self.complete_finance(person_id))),
            ("EMPLOYEE_CODE_ASSIGNED", lambda: self.assign_code(person_id)),
            ("HR_STAGE", lambda: self.generate(person_id, "OFFER_LETTER")),
            (
                "HR_COMPLETED",
                lambda: (
                    self.sign(person_id, "OFFER_LETTER"),
                    self.generate(person_id, "DECLARATION"),
                    self.sign(person_id, "DECLARATION"),
                    self.complete_hr(person_id),
                ),
            ),
        ]
        if status == "OPERATION_STAGE_A":
            return person_id
        for name, step in steps:
            step()
            if name == status:
                return person_id
        raise ValueError(status)

    def audits(self, action: str, **filters) -> list[dict]:
        return list(self.db.audit_logs.find({"action": action, **filters}))


@pytest.fixture()
def flow(app_client, actors):
    app, client = app_client
    return Flow(app, client, actors)


class StaleReadStore:
    """Wraps a PersonStore and serves one pre-captured snapshot on the next ``get``,
    as if the caller had read the person before a concurrent write landed."""

    def __init__(self, store, stale: dict):
        self._store = store
        self._stale = stale

    def get(self, person_id):
        if self._stale is not None:
            doc, self._stale = self._stale, None
            return doc
        return self._store.get(person_id)

    def __getattr__(self, name):
        return getattr(self._store, name)
