from __future__ import annotations

from flask import Flask

from onboarding.db import seed_departments
from onboarding.utils.datetime import utc_now
from onboarding.workflow import (
    AuditRecorder,
    DepartmentDirectory,
    EmployeeCodeGenerator,
    PersonProjection,
    PersonStore,
    TemplateProvider,
    WorkflowEngine,
)


def init_workflow(app: Flask) -> None:
    cfg = app.config["CFG"]
    db = app.extensions["mongo_db"]

    if cfg.SEED_DEPARTMENTS:
        seed_departments(db, utc_now())

    store = PersonStore(db)
    departments = DepartmentDirectory(db, ttl_seconds=cfg.DEPARTMENT_CACHE_TTL_SECONDS)
    audit = AuditRecorder(db)

    app.extensions["audit"] = audit
    app.extensions["departments"] = departments
    app.extensions["projection"] = PersonProjection(db, departments)
    app.extensions["workflow"] = WorkflowEngine(
        store=store,
        departments=departments,
        templates=TemplateProvider(db),
        audit=audit,
        codes=EmployeeCodeGenerator(
            store,
            prefix=cfg.EMPLOYEE_CODE_PREFIX,
            pad=cfg.EMPLOYEE_CODE_PAD,
            max_attempts=cfg.EMPLOYEE_CODE_MAX_ATTEMPTS,
        ),
        upload_prefix=cfg.UPLOAD_URL_PREFIX,
        max_page_limit=cfg.PAGE_MAX_LIMIT,
    )
