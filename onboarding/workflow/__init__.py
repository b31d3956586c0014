from __future__ import annotations

from onboarding.workflow.audit import AuditAction, AuditRecorder
from onboarding.workflow.departments import DepartmentDirectory
from onboarding.workflow.employee_code import EmployeeCodeGenerator
from onboarding.workflow.engine import Caller, WorkflowEngine
from onboarding.workflow.projection import PersonProjection
from onboarding.workflow.store import PersonStore
from onboarding.workflow.templates import TemplateProvider

__all__ = [
    "AuditAction",
    "AuditRecorder",
    "Caller",
    "DepartmentDirectory",
    "EmployeeCodeGenerator",
    "PersonProjection",
    "PersonStore",
    "TemplateProvider",
    "WorkflowEngine",
]
