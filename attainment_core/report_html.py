from __future__ import annotations
from html import escape
from typing import Dict, Any, List

from . import config

def _labels(result: Dict[str, Any]) -> List[tuple[str, str]]:
    return [(str(o.get('no')), str(o.get('label') or o.get('no'))) for o in result.get("outcomes") or []]

def _student_row(d: Dict[str, Any], keys: List[str]) -> str:
    co_wise = d.get('co_wise') or {}
    cells = []
    for k in keys:
        e = co_wise.get(k) or {}
        cells.append(f"<td>{e.get('obtained_marks', 0):g}/{e.get('max_marks', 0):g}</td><td>{e.get('percentage', 0):.2f}</td>")
    return (f"<tr><td>{d.get('roll_no', '')}</td><td>{d.get('pid', '')}</td><td>{escape(str(d.get('stud_name', '')))}</td>"
            + ''.join(cells)
            + f"<td>{d.get('total_obtained', 0):g}/{d.get('total_max', 0):g}</td><td>{d.get('total_percentage', 0):.2f}</td></tr>")

def export_report_html(result: Dict[str, Any], path: str) -> str:
    labels = _labels(result)
    keys = [k for k, _ in labels]
    allot = result.get("allotment", {}) or {}
    teacher = result.get("teacher", {}) or {}
    target = result.get("subject_target", "")
    title = "LAB ATTAINMENT ANALYSIS" if result.get("kind") == "lab" else "ISE – MSE ATTAINMENT ANALYSIS"

    head = ''.join(f"<th colspan='2'>{escape(lbl)}</th>" for _, lbl in labels)
    sub = ''.join("<th>Marks</th><th>%</th>" for _ in labels)
    crit_head = ''.join(f"<th>{escape(lbl)}</th>" for _, lbl in labels)
    rows = "\n".join(_student_row(d, keys) for d in result.get("students") or [])

    att = {str(a.get('co_no')): a for a in result.get("attainment") or []}
    count_row = ''.join(f"<td>{att.get(k, {}).get('students_above_target', 0)}</td>" for k in keys)
    pct_row = ''.join(f"<td>{att.get(k, {}).get('percentage_above_target', 0):.2f}</td>" for k in keys)
    lvl_row = ''.join(f"<td>{att.get(k, {}).get('attainment_level', 1)}</td>" for k in keys)
    crit = result.get("criteria") or {}
    crit_rows = ''.join(f"<tr><td>{lvl}</td><td>{escape(str(crit.get(lvl, '')))}</td></tr>" for lvl in ("3", "2", "1"))

    export_links = ""
    if config.EXPORT_ENABLED:
        report_id = result.get("reportId") or (result.get("meta") or {}).get("reportId")
        if report_id:
            rid = str(report_id)
            export_links = (
                "<p class=\"export-links\">"
                f"<a href=\"/reports/{rid}/export.csv\">Download (CSV)</a> · "
                f"<a href=\"/reports/{rid}/export.xlsx\">Download (Excel)</a>"
                "</p>"
            )

    html = f"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<title>{title}</title>
<style>
 body{{font-family:system-ui,-apple-system,Segoe UI,Roboto,Ubuntu,'Helvetica Neue',Arial}}
 .wrap{{max-width:1200px;margin:40px auto;padding:0 16px}}
 h1{{margin:0 0 16px}}
 .meta{{font-size:.95rem;margin:8px 0 16px}}
 table{{border-collapse:collapse;width:100%;margin-bottom:24px}}
 th,td{{text-align:left}}
</style>
</head>
<body>
<div class="wrap">
  <h1>{title}</h1>
  <div class="meta">
    <b>Subject:</b> {escape(str(allot.get('sub_id', '')))} · <b>Class:</b> {escape(str(allot.get('class_name', '')))}
    · <b>Teacher:</b> {escape(str(teacher.get('teacher_name', '')))}
    <br/><b>Subject Target:</b> {target}%
  </div>

  <table border='1' cellpadding='6' cellspacing='0'>
    <thead>
      <tr><th rowspan='2'>Roll No</th><th rowspan='2'>PID</th><th rowspan='2'>Name</th>{head}<th colspan='2'>Total</th></tr>
      <tr>{sub}<th>Marks</th><th>%</th></tr>
    </thead>
    <tbody>{rows}</tbody>
  </table>

  <h3>Students scoring above {target}%</h3>
  <table border='1' cellpadding='6' cellspacing='0'>
    <thead><tr><th>Criteria</th>{crit_head}</tr></thead>
    <tbody>
      <tr><td>Count</td>{count_row}</tr>
      <tr><td>Percentage</td>{pct_row}</tr>
      <tr><td>Attainment</td>{lvl_row}</tr>
    </tbody>
  </table>

  <table border='1' cellpadding='6' cellspacing='0'>
    <thead><tr><th>Attainment</th><th>Condition (Students scoring above {target}%)</th></tr></thead>
    <tbody>{crit_rows}</tbody>
  </table>
  {export_links}
</div>
</body>
</html>"""
    with open(path, "w", encoding="utf-8") as f:
        f.write(html)
    return path
