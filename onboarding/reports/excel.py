from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from onboarding.utils.datetime import to_display_tz


def _auto_fit(ws) -> None:
    for col in ws.columns:
        col_letter = get_column_letter(col[0].column)
        max_len = max((len("" if cell.value is None else str(cell.value)) for cell in col), default=0)
        ws.column_dimensions[col_letter].width = min(max(12, max_len + 2), 60)


def _write_table(ws, headers: list[str], rows: list[list[Any]]) -> None:
    ws.append(headers)
    for r in rows:
        ws.append(r)

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions

    header_font = Font(bold=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    _auto_fit(ws)


def build_pipeline_workbook(*, from_s: str, to_s: str, timezone_display: str, report: dict[str, Any]) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)

    _write_table(
        wb.create_sheet("Meta"),
        ["key", "value"],
        [
            ["report", "pipeline"],
            ["from", from_s],
            ["to", to_s],
            ["total", report["total"]],
            ["generatedAt", to_display_tz(datetime.now(timezone.utc), timezone_display)],
        ],
    )
    _write_table(
        wb.create_sheet("ByStatus"),
        ["status", "count"],
        [[r["status"], r["count"]] for r in report["byStatus"]],
    )
    _write_table(
        wb.create_sheet("ByCategory"),
        ["category", "count"],
        [[r["category"], r["count"]] for r in report["byCategory"]],
    )

    with BytesIO() as bio:
        wb.save(bio)
        return bio.getvalue()
