from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from onboarding.reports.excel import build_pipeline_workbook
from onboarding.reports.queries import pipeline_report
from onboarding.utils.auth import require_permissions
from onboarding.utils.validators import parse_date_range

reports_bp = Blueprint("reports", __name__)


@reports_bp.get("/pipeline")
@require_permissions(["REPORT_READ"])
def pipeline():
    start_dt, end_dt, from_s, to_s = parse_date_range(request.args)
    db = current_app.extensions["mongo_db"]
    data = pipeline_report(db, start_dt, end_dt)
    return jsonify({"success": True, "data": {"from": from_s, "to": to_s, **data}})


@reports_bp.get("/export.xlsx")
@require_permissions(["REPORT_READ"])
def export_xlsx():
    start_dt, end_dt, from_s, to_s = parse_date_range(request.args)
    db = current_app.extensions["mongo_db"]

    xlsx_bytes = build_pipeline_workbook(
        from_s=from_s,
        to_s=to_s,
        timezone_display=current_app.config["CFG"].TIMEZONE_DISPLAY,
        report=pipeline_report(db, start_dt, end_dt),
    )

    filename = f"onboarding_pipeline_{from_s}_{to_s}.xlsx"
    return send_file(
        BytesIO(xlsx_bytes),
        as_attachment=True,
        download_name=filename,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
