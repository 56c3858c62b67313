"""Report payloads assembled from a storage snapshot.

A snapshot is the plain-dict bundle a storage collaborator fetched for one
allotment:

    {
      "allotment": {"allotment_id": 7, "sub_id": "CSC501", ...},
      "teacher": {"teacher_name": "..."},
      "students": [{"pid", "stud_name", "roll_no", "batch"}],
      "tasks": [{"task_id", "assessment_type", "max_marks", "task_co_mapping", "sub_questions", "exp_no"}],
      "marks": [{"task_id", "stud_pid", "total_marks_obtained", "question_marks", "status"}],

Tasks of both kinds may share one snapshot; each builder keeps its own kind.
A pending mark has a null ``total_marks_obtained`` and counts as 0 obtained.
      "cos": [{"co_no", "co_description"}],            # ISE-MSE
      "los": [{"lo_no", "lo_description"}],            # Lab
      "experiment_lo_mapping": [{"exp_no", "lo_no"}],  # Lab
      "experiments": [{"exp_no", "exp_name"}],         # batch marks
    }

Payload dict keys for outcomes are strings so the in-process view matches
what a JSON round-trip produces.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from . import config
from .aggregation import calculate_co_attainment, count_students_above_threshold, student_row
from .levels import criteria
from .types import AttainmentRecord, Mark, StudentRow, Task
from .validators import (
    attach_lo_mapping,
    check_marks_reference_tasks,
    check_target,
    marks_from_rows,
    outcomes_from_rows,
    students_from_rows,
    tasks_from_rows,
)

log = logging.getLogger(__name__)


def _r(x: float) -> float:
    return round(float(x), config.REPORT_DECIMALS)


def _marks_by_student(marks: Sequence[Mark]) -> Dict[Any, List[Mark]]:
    out: Dict[Any, List[Mark]] = {}
    for m in marks:
        out.setdefault(m.student_id, []).append(m)
    return out


def _tasks_and_marks(snapshot: Mapping[str, Any], keep: Callable[[Task], bool]) -> Tuple[List[Task], List[Mark]]:
    """Tasks passing ``keep`` and their marks.

    Orphan marks are checked against every task in the snapshot, so marks for
    tasks of another assessment kind are filtered out rather than rejected.
    """
    all_tasks = tasks_from_rows(snapshot.get("tasks") or [])
    marks = marks_from_rows(snapshot.get("marks") or [])
    check_marks_reference_tasks(marks, all_tasks)
    tasks = [t for t in all_tasks if keep(t)]
    kept = {t.task_id for t in tasks}
    return tasks, [m for m in marks if m.task_id in kept]


def row_to_dict(row: StudentRow) -> Dict[str, Any]:
    return {
        "pid": row.pid,
        "roll_no": row.roll_no,
        "stud_name": row.stud_name,
        "co_wise": {
            str(no): {
                "co_no": e.co_no,
                "max_marks": _r(e.max_marks),
                "obtained_marks": _r(e.obtained_marks),
                "percentage": _r(e.percentage),
            }
            for no, e in row.co_wise.items()
        },
        "total_obtained": _r(row.total_obtained),
        "total_max": _r(row.total_max),
        "total_percentage": _r(row.total_percentage),
    }


def attainment_to_dict(rec: AttainmentRecord) -> Dict[str, Any]:
    return {
        "co_no": rec.co_no,
        "students_above_target": rec.students_above_target,
        "total_students": rec.total_students,
        "percentage_above_target": _r(rec.percentage_above_target),
        "attainment_level": rec.attainment_level,
    }


def _resolve_target(snapshot: Mapping[str, Any], subject_target: float | None, cfg: dict | None) -> float:
    sub_id = (snapshot.get("allotment") or {}).get("sub_id")
    return check_target(config.subject_target(sub_id, cfg, subject_target))


def _summary(rows: List[StudentRow], outcomes: List[int], target: float) -> Dict[str, Any]:
    above = count_students_above_threshold(rows, target)
    return {
        "attainment": [attainment_to_dict(a) for a in calculate_co_attainment(rows, outcomes, target)],
        "above_target": {"count": int(above["count"]), "percentage": _r(above["percentage"])},
        "criteria": {str(k): v for k, v in criteria(target).items()},
    }


def _ise_mse_structure(tasks: Sequence[Task], co_list: Sequence[int]) -> Dict[str, Dict[str, list]]:
    structure: Dict[str, Dict[str, list]] = {str(co): {"ise": [], "mse": []} for co in co_list}
    for task in tasks:
        if task.assessment_type == "ISE":
            for co in task.co_mapping:
                if str(co) in structure:
                    structure[str(co)]["ise"].append(
                        {"task_id": task.task_id, "title": task.title, "max_marks": task.max_marks}
                    )
        elif task.assessment_type == "MSE":
            for q in task.sub_questions:
                if str(q.co) in structure:
                    structure[str(q.co)]["mse"].append(
                        {"task_id": task.task_id, "question_label": q.label, "max_marks": q.marks}
                    )
    return structure


def _ise_mse_cells(structure: Mapping[str, Mapping[str, list]], student_marks: Sequence[Mark]) -> Dict[str, Any]:
    by_task = {}
    for m in student_marks:
        by_task.setdefault(m.task_id, m)
    cells: Dict[str, Any] = {}
    for co, cols in structure.items():
        ise: Dict[str, Any] = {}
        for col in cols["ise"]:
            mark = by_task.get(col["task_id"])
            ise[str(col["task_id"])] = {
                "task_title": col["title"],
                "obtained": (mark.total_marks_obtained or 0) if mark else 0,
                "max": col["max_marks"],
                "present": mark is not None,
            }
        mse: Dict[str, Any] = {}
        for col in cols["mse"]:
            mark = by_task.get(col["task_id"])
            qm = (mark.question_marks if mark else None) or {}
            mse[col["question_label"]] = {
                "label": col["question_label"],
                "obtained": qm.get(col["question_label"], 0),
                "max": col["max_marks"],
                "present": mark is not None,
            }
        cells[co] = {"ise": ise, "mse": mse}
    return cells


def build_ise_mse_report(
    snapshot: Mapping[str, Any],
    subject_target: float | None = None,
    cfg: dict | None = None,
) -> Dict[str, Any]:
    target = _resolve_target(snapshot, subject_target, cfg)
    tasks, marks = _tasks_and_marks(snapshot, lambda t: t.assessment_type in ("ISE", "MSE"))
    students = students_from_rows(snapshot.get("students") or [])
    outcomes = outcomes_from_rows(snapshot.get("cos") or [], key="co_no")
    co_list = [o.no for o in outcomes]

    structure = _ise_mse_structure(tasks, co_list)
    by_student = _marks_by_student(marks)
    rows: List[StudentRow] = []
    payload_students: List[Dict[str, Any]] = []
    for s in students:
        sm = by_student.get(s.pid, [])
        row = student_row(s, sm, tasks, co_list)
        rows.append(row)
        d = row_to_dict(row)
        d["co_marks"] = _ise_mse_cells(structure, sm)
        payload_students.append(d)

    log.info("ise-mse report: %d students, %d tasks, %d COs, target=%s", len(rows), len(tasks), len(co_list), target)
    return {
        "kind": "ise-mse",
        "allotment": dict(snapshot.get("allotment") or {}),
        "teacher": dict(snapshot.get("teacher") or {}),
        "subject_target": target,
        "outcomes": [{"no": o.no, "description": o.description, "label": f"CO{o.no}"} for o in outcomes],
        "structure": structure,
        "students": payload_students,
        **_summary(rows, co_list, target),
    }


def build_lab_report(
    snapshot: Mapping[str, Any],
    subject_target: float | None = None,
    cfg: dict | None = None,
) -> Dict[str, Any]:
    target = _resolve_target(snapshot, subject_target, cfg)
    tasks, marks = _tasks_and_marks(snapshot, lambda t: t.assessment_type == "Lab")
    tasks = attach_lo_mapping(tasks, snapshot.get("experiment_lo_mapping") or [])
    students = students_from_rows(snapshot.get("students") or [])
    outcomes = outcomes_from_rows(snapshot.get("los") or [], key="lo_no")
    lo_list = [o.no for o in outcomes]

    structure: Dict[str, List[Dict[str, Any]]] = {str(lo): [] for lo in lo_list}
    for task in sorted(tasks, key=lambda t: (t.exp_no is None, t.exp_no or 0)):
        for lo in task.lo_mapping:
            if str(lo) in structure:
                structure[str(lo)].append({"exp_no": task.exp_no, "title": task.title, "max_marks": task.max_marks})

    by_student = _marks_by_student(marks)
    rows: List[StudentRow] = []
    payload_students: List[Dict[str, Any]] = []
    for s in students:
        sm = by_student.get(s.pid, [])
        row = student_row(s, sm, tasks, lo_list, lab=True)
        rows.append(row)
        cells: Dict[str, Dict[str, Any]] = {}
        for task in tasks:
            mark = next((m for m in sm if m.task_id == task.task_id), None)
            if mark is None or not task.lo_mapping:
                continue
            n = len(task.lo_mapping)
            for lo in task.lo_mapping:
                cells.setdefault(str(lo), {})[str(task.exp_no)] = {
                    "obtained": _r((mark.total_marks_obtained or 0) / n),
                    "max": _r(task.max_marks / n),
                }
        d = row_to_dict(row)
        d["lo_marks"] = cells
        payload_students.append(d)

    log.info("lab report: %d students, %d experiments, %d LOs, target=%s", len(rows), len(tasks), len(lo_list), target)
    return {
        "kind": "lab",
        "allotment": dict(snapshot.get("allotment") or {}),
        "teacher": dict(snapshot.get("teacher") or {}),
        "subject_target": target,
        "outcomes": [{"no": o.no, "description": o.description, "label": f"LO{o.no}"} for o in outcomes],
        "structure": structure,
        "students": payload_students,
        **_summary(rows, lo_list, target),
    }


def build_batch_marks_report(snapshot: Mapping[str, Any]) -> Dict[str, Any]:
    """Marks matrix {pid: {exp_no: {...}}} for one lab batch, experiments tagged with their LOs."""
    allotment = dict(snapshot.get("allotment") or {})
    students = students_from_rows(snapshot.get("students") or [])
    tasks, marks = _tasks_and_marks(snapshot, lambda t: t.assessment_type == "Lab" and t.exp_no is not None)
    if not tasks:
        return {"kind": "batch-marks", "allotment": allotment,
                "students": [s.__dict__ for s in students], "experiments": [], "marks_matrix": {}}

    exp_nos = {t.exp_no for t in tasks}
    los_by_exp: Dict[int, List[str]] = {}
    for m in snapshot.get("experiment_lo_mapping") or []:
        if int(m["exp_no"]) in exp_nos:
            los_by_exp.setdefault(int(m["exp_no"]), []).append(f"LO{m['lo_no']}")
    experiments = [
        {"exp_no": int(e["exp_no"]), "exp_name": e.get("exp_name", ""), "los": sorted(los_by_exp.get(int(e["exp_no"]), []))}
        for e in snapshot.get("experiments") or []
        if int(e["exp_no"]) in exp_nos
    ]

    matrix: Dict[str, Dict[str, Any]] = {str(s.pid): {} for s in students}
    for task in tasks:
        for mark in marks:
            if mark.task_id != task.task_id:
                continue
            matrix.setdefault(str(mark.student_id), {})[str(task.exp_no)] = {
                "mark_id": mark.mark_id,
                "marks": mark.total_marks_obtained,
                "max_marks": task.max_marks,
                "status": mark.status,
            }
    return {
        "kind": "batch-marks",
        "allotment": allotment,
        "students": [s.__dict__ for s in students],
        "experiments": experiments,
        "marks_matrix": matrix,
    }


__all__ = ["build_ise_mse_report", "build_lab_report", "build_batch_marks_report", "row_to_dict"]
