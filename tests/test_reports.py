from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO

from openpyxl import load_workbook


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def test_pipeline_report(flow):
    flow.create(category="CIVIL")
    flow.create()
    flow.to_status("FINANCE_STAGE")
    flow.db.persons.insert_one(
        {
            "fullName": "Old",
            "email": "old@example.com",
            "primaryMobile": "9333333333",
            "category": "IT",
            "currentStatus": "HR_COMPLETED",
            "createdAt": datetime(2020, 1, 1, tzinfo=timezone.utc),
        }
    )

    today = _today()
    res = flow.client.get(f"/api/v1/reports/pipeline?from={today}&to={today}", headers=flow.h["admin"])
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["total"] == 3

    by_status = {row["status"]: row["count"] for row in data["byStatus"]}
    assert [row["status"] for row in data["byStatus"]][0] == "OPERATION_STAGE_A"
    assert by_status["OPERATION_STAGE_A"] == 2
    assert by_status["FINANCE_STAGE"] == 1
    assert by_status["HR_COMPLETED"] == 0

    by_category = {row["category"]: row["count"] for row in data["byCategory"]}
    assert by_category == {"CIVIL": 1, "IT": 2}


def test_pipeline_report_validates_range(flow):
    res = flow.client.get("/api/v1/reports/pipeline?from=2026-02-01", headers=flow.h["admin"])
    assert res.status_code == 400

    res = flow.client.get("/api/v1/reports/pipeline?from=2026-02-01&to=2026-01-01", headers=flow.h["admin"])
    assert res.status_code == 400

    res = flow.client.get("/api/v1/reports/pipeline?from=2026-01-01&to=2026-02-01", headers=flow.h["hr"])
    assert res.status_code == 403


def test_export_xlsx(flow):
    flow.create()
    today = _today()
    res = flow.client.get(f"/api/v1/reports/export.xlsx?from={today}&to={today}", headers=flow.h["admin"])
    assert res.status_code == 200
    assert res.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert f"onboarding_pipeline_{today}_{today}.xlsx" in res.headers["Content-Disposition"]

    wb = load_workbook(BytesIO(res.data))
    assert wb.sheetnames == ["Meta", "ByStatus", "ByCategory"]
    rows = list(wb["ByStatus"].iter_rows(values_only=True))
    assert rows[0] == ("status", "count")
    assert ("OPERATION_STAGE_A", 1) in rows
