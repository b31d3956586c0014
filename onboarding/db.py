from __future__ import annotations

import logging
import threading
from datetime import timezone

from flask import Flask
from pymongo import ASCENDING, DESCENDING, MongoClient

logger = logging.getLogger(__name__)

_client: MongoClient | None = None
_client_lock = threading.Lock()

DEFAULT_DEPARTMENTS = (
    ("OPERATION", "Operation", "Candidate intake and Stage-A data"),
    ("FINANCE", "Finance", "Bank, tax and salary verification"),
    ("HR", "HR", "Offer letter, declaration and onboarding completion"),
    ("ADMIN", "Administration", "System administration"),
)


def _create_client(mongodb_uri: str, *, server_selection_timeout_ms: int) -> MongoClient:
    if mongodb_uri.startswith("mongomock://"):
        import mongomock  # type: ignore[import-not-found]

        return mongomock.MongoClient(tz_aware=True, tzinfo=timezone.utc)

    return MongoClient(
        mongodb_uri,
        serverSelectionTimeoutMS=server_selection_timeout_ms,
        tz_aware=True,
        tzinfo=timezone.utc,
        retryWrites=True,
    )


def get_client(app: Flask) -> MongoClient:
    global _client
    cfg = app.config["CFG"]
    with _client_lock:
        if _client is None:
            _client = _create_client(cfg.MONGODB_URI, server_selection_timeout_ms=cfg.MONGO_SERVER_SELECTION_TIMEOUT_MS)
    return _client


def get_db(app: Flask):
    cfg = app.config["CFG"]
    return get_client(app)[cfg.DB_NAME]


def ping_db(db) -> bool:
    try:
        db.command("ping")
        return True
    except Exception:
        try:
            # mongomock does not implement every admin command.
            _ = db.list_collection_names()
            return True
        except Exception:
            return False


def ensure_indexes(db) -> None:
    db.users.create_index([("email", ASCENDING)], unique=True, name="users_email_unique")

    db.departments.create_index([("code", ASCENDING)], unique=True, name="departments_code_unique")
    db.departments.create_index([("name", ASCENDING)], unique=True, name="departments_name_unique")

    db.persons.create_index([("email", ASCENDING)], unique=True, name="persons_email_unique")
    db.persons.create_index([("primaryMobile", ASCENDING)], unique=True, name="persons_primaryMobile_unique")
    # Sparse: employeeCode is absent (not null) until assignment.
    db.persons.create_index(
        [("employeeCode", ASCENDING)], unique=True, sparse=True, name="persons_employeeCode_unique"
    )
    db.persons.create_index(
        [("currentStatus", ASCENDING), ("createdAt", DESCENDING)], name="persons_status_createdAt"
    )
    db.persons.create_index(
        [("owningDepartment", ASCENDING), ("createdAt", DESCENDING)], name="persons_department_createdAt"
    )
    db.persons.create_index([("createdAt", DESCENDING)], name="persons_createdAt_desc")

    db.audit_logs.create_index([("createdAt", DESCENDING)], name="audit_logs_createdAt_desc")
    db.audit_logs.create_index(
        [("action", ASCENDING), ("createdAt", DESCENDING)], name="audit_logs_action_createdAt"
    )
    db.audit_logs.create_index(
        [("targetId", ASCENDING), ("createdAt", DESCENDING)], name="audit_logs_targetId_createdAt"
    )

    db.templates.create_index([("type", ASCENDING), ("isPublished", ASCENDING)], name="templates_type_published")


def seed_departments(db, now) -> int:
    """Insert the default departments that are missing. Existing rows are left untouched."""
    existing = {str(d.get("code") or "").upper() for d in db.departments.find({}, {"code": 1})}
    inserted = 0
    for code, name, description in DEFAULT_DEPARTMENTS:
        if code in existing:
            continue
        db.departments.insert_one(
            {
                "code": code,
                "name": name,
                "description": description,
                "isActive": True,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        inserted += 1
    if inserted:
        logger.info("Seeded %d department(s)", inserted)
    return inserted


def init_mongo(app: Flask) -> None:
    db = get_db(app)
    app.extensions["mongo_db"] = db
    ensure_indexes(db)


def reset_client_for_tests() -> None:
    global _client
    with _client_lock:
        _client = None
