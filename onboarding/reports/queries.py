from __future__ import annotations

from datetime import datetime
from typing import Any

from onboarding.workflow.status import PersonStatus


def _count_by(db, field: str, label: str, start_dt: datetime, end_dt: datetime) -> list[dict[str, Any]]:
    pipe = [
        {"$match": {"createdAt": {"$gte": start_dt, "$lt": end_dt}}},
        {"$addFields": {label: {"$ifNull": [f"${field}", "UNKNOWN"]}}},
        {"$group": {"_id": f"${label}", "count": {"$sum": 1}}},
        {"$project": {"_id": 0, label: "$_id", "count": 1}},
        {"$sort": {label: 1}},
    ]
    return list(db.persons.aggregate(pipe))


def pipeline_report(db, start_dt: datetime, end_dt: datetime) -> dict[str, Any]:
    by_status = _count_by(db, "currentStatus", "status", start_dt, end_dt)
    by_category = _count_by(db, "category", "category", start_dt, end_dt)

    # Every status appears, in workflow order, even with a zero count.
    counts = {row["status"]: int(row["count"]) for row in by_status}
    ordered = [{"status": s.value, "count": counts.pop(s.value, 0)} for s in PersonStatus]
    ordered += [{"status": k, "count": v} for k, v in sorted(counts.items())]

    return {
        "total": sum(int(x["count"]) for x in by_status),
        "byStatus": ordered,
        "byCategory": by_category,
    }
