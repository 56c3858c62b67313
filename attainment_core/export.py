"""Helpers to export attainment reports as JSON, CSV and Excel."""
from __future__ import annotations

from typing import Any, Dict, List
import csv
import io
import json

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

_LEAD: tuple[str, ...] = ("roll_no", "pid", "stud_name")
_TAIL: tuple[str, ...] = ("total_obtained", "total_max", "total_percentage")


def _to_basic(x: Any) -> Any:
    if x is None or isinstance(x, (bool, int, float, str)):
        return x
    if isinstance(x, dict):
        return {str(k): _to_basic(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set)):
        return [_to_basic(v) for v in x]
    if hasattr(x, "__dict__"):
        return _to_basic(vars(x))
    return str(x)


def _labels(report: Dict[str, Any]) -> List[tuple[str, str]]:
    prefix = "LO" if report.get("kind") == "lab" else "CO"
    out = []
    for o in report.get("outcomes") or []:
        out.append((str(o.get("no")), o.get("label") or f"{prefix}{o.get('no')}"))
    return out


def _fieldnames(report: Dict[str, Any]) -> List[str]:
    cols = list(_LEAD)
    for _, label in _labels(report):
        cols += [f"{label}_obtained", f"{label}_max", f"{label}_percentage"]
    return cols + list(_TAIL)


def _flat_row(report: Dict[str, Any], row: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {k: row.get(k, "") for k in _LEAD}
    co_wise = row.get("co_wise") or {}
    for key, label in _labels(report):
        entry = co_wise.get(key) or {}
        out[f"{label}_obtained"] = entry.get("obtained_marks", 0)
        out[f"{label}_max"] = entry.get("max_marks", 0)
        out[f"{label}_percentage"] = entry.get("percentage", 0)
    for k in _TAIL:
        out[k] = row.get(k, 0)
    return out


def to_json(report: Dict[str, Any]) -> Dict[str, Any]:
    """Return a JSON-safe copy of the report."""

    return json.loads(json.dumps(_to_basic(report)))


def to_csv(report: Dict[str, Any]) -> str:
    """One line per student with per-outcome obtained/max/percentage and totals."""

    names = _fieldnames(report)
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=names)
    writer.writeheader()
    for row in report.get("students") or []:
        writer.writerow(_flat_row(report, row))
    return buf.getvalue()


def to_xlsx(report: Dict[str, Any]) -> bytes:
    """Workbook with the student table, attainment table and criteria table."""

    wb = Workbook()
    ws = wb.active
    ws.title = "Attainment"
    header_font = Font(bold=True, size=12)
    left_align = Alignment(horizontal="left", vertical="center", wrap_text=True)

    title = "LAB ATTAINMENT ANALYSIS" if report.get("kind") == "lab" else "ISE - MSE ATTAINMENT ANALYSIS"
    allot = report.get("allotment") or {}
    names = _fieldnames(report)
    width = max(len(names), 2)
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=width)
    ws["A1"].value = title
    ws["A1"].font = header_font
    ws["A1"].alignment = left_align
    ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=width)
    ws["A2"].value = (
        f"Subject: {allot.get('sub_id', '')}  Class: {allot.get('class_name', '')}  "
        f"Target: {report.get('subject_target', '')}%"
    )
    ws["A2"].alignment = left_align

    ws.append([])
    ws.append(names)
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    for row in report.get("students") or []:
        flat = _flat_row(report, row)
        ws.append([flat.get(n, "") for n in names])

    labels = _labels(report)
    ws.append([])
    ws.append([f"Students scoring above {report.get('subject_target', '')}%"])
    ws[ws.max_row][0].font = Font(bold=True)
    by_no = {str(a.get("co_no")): a for a in report.get("attainment") or []}
    ws.append(["Criteria"] + [label for _, label in labels])
    ws.append(["Count"] + [by_no.get(k, {}).get("students_above_target", 0) for k, _ in labels])
    ws.append(["Percentage"] + [by_no.get(k, {}).get("percentage_above_target", 0) for k, _ in labels])
    ws.append(["Attainment"] + [by_no.get(k, {}).get("attainment_level", 1) for k, _ in labels])

    ws.append([])
    ws.append(["Attainment", f"Condition (Students scoring above {report.get('subject_target', '')}%)"])
    ws[ws.max_row][0].font = Font(bold=True)
    ws[ws.max_row][1].font = Font(bold=True)
    crit = report.get("criteria") or {}
    for level in ("3", "2", "1"):
        ws.append([level, crit.get(level, "")])

    for col in range(1, width + 1):
        letter = get_column_letter(col)
        longest = max((len(str(c.value)) for c in ws[letter][3:] if c.value is not None), default=0)
        ws.column_dimensions[letter].width = max(longest * 1.2, 10)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


__all__ = ["to_json", "to_csv", "to_xlsx"]
