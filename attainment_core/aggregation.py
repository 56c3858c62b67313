"""CO/LO-wise mark aggregation and cohort attainment classification.

Every function here is pure: inputs are read-only snapshots and each call
allocates fresh output structures, so per-student work can be mapped freely.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import ConfigurationError
from .levels import attainment_level
from .types import AttainmentRecord, CoWiseData, Mark, Student, StudentRow, Task
from .validators import check_target, parse_outcome_ref

log = logging.getLogger(__name__)


def _blank(outcomes: Iterable[int]) -> Dict[int, CoWiseData]:
    return {no: CoWiseData(co_no=no) for no in outcomes}


def _mark_for(task: Task, student_marks: Sequence[Mark]) -> Optional[Mark]:
    return next((m for m in student_marks if m.task_id == task.task_id), None)


def _split(data: Dict[int, CoWiseData], mapped: Sequence[int], max_marks: float, obtained: float) -> None:
    # each mapped outcome gets an equal share; shares for unknown outcomes are dropped
    n = len(mapped)
    if n == 0:
        return
    max_share, got_share = max_marks / n, obtained / n
    for no in mapped:
        entry = data.get(no)
        if entry is None:
            log.debug("outcome %s not in subject list; share dropped", no)
            continue
        entry.max_marks += max_share
        entry.obtained_marks += got_share


def _finish(data: Dict[int, CoWiseData]) -> Dict[int, CoWiseData]:
    for entry in data.values():
        if entry.max_marks > 0:
            entry.percentage = entry.obtained_marks / entry.max_marks * 100.0
    return data


def calculate_co_wise_marks(
    student_marks: Sequence[Mark],
    tasks: Sequence[Task],
    co_list: Sequence[int],
) -> Dict[int, CoWiseData]:
    """
    One student's marks folded into CO buckets.
      - ISE: task marks split equally over the task's mapped COs
      - MSE: each sub-question's marks routed to its CO
    A task without a mark row for this student is skipped entirely,
    so it adds to neither max nor obtained. A row whose total is still
    null (pending) counts as 0 obtained against the full max.
    """
    data = _blank(co_list)
    for task in tasks:
        mark = _mark_for(task, student_marks)
        if mark is None:
            log.debug("task %s: no mark for student, skipped", task.task_id)
            continue
        if task.assessment_type == "ISE":
            _split(data, task.co_mapping, task.max_marks, mark.total_marks_obtained or 0)
        elif task.assessment_type == "MSE":
            if not task.sub_questions or mark.question_marks is None:
                continue
            for q in task.sub_questions:
                entry = data.get(parse_outcome_ref(q.co))
                if entry is None:
                    continue
                entry.max_marks += q.marks
                entry.obtained_marks += mark.question_marks.get(q.label, 0) or 0
    return _finish(data)


def calculate_lo_wise_marks(
    student_marks: Sequence[Mark],
    tasks: Sequence[Task],
    lo_list: Sequence[int],
) -> Dict[int, CoWiseData]:
    """Lab variant: experiment marks split equally over mapped LOs, no question split."""
    data = _blank(lo_list)
    for task in tasks:
        if task.assessment_type != "Lab":
            continue
        mark = _mark_for(task, student_marks)
        if mark is None:
            continue
        _split(data, task.lo_mapping, task.max_marks, mark.total_marks_obtained or 0)
    return _finish(data)


def calculate_total_marks(co_wise: Dict[int, CoWiseData]) -> Dict[str, float]:
    total_obtained = sum(e.obtained_marks for e in co_wise.values())
    total_max = sum(e.max_marks for e in co_wise.values())
    pct = total_obtained / total_max * 100.0 if total_max > 0 else 0.0
    return {"total_obtained": total_obtained, "total_max": total_max, "percentage": pct}


def student_row(
    student: Student,
    student_marks: Sequence[Mark],
    tasks: Sequence[Task],
    outcomes: Sequence[int],
    lab: bool = False,
) -> StudentRow:
    calc = calculate_lo_wise_marks if lab else calculate_co_wise_marks
    co_wise = calc(student_marks, tasks, outcomes)
    totals = calculate_total_marks(co_wise)
    return StudentRow(
        pid=student.pid,
        roll_no=student.roll_no,
        stud_name=student.stud_name,
        co_wise=co_wise,
        total_obtained=totals["total_obtained"],
        total_max=totals["total_max"],
        total_percentage=totals["percentage"],
    )


def calculate_co_attainment(
    student_rows: Sequence[StudentRow],
    co_list: Sequence[int],
    subject_target: float,
) -> List[AttainmentRecord]:
    target = check_target(subject_target)
    if not co_list and student_rows:
        raise ConfigurationError("attainment requested with no outcomes for a non-empty cohort")
    total = len(student_rows)
    out: List[AttainmentRecord] = []
    for co in co_list:
        above = 0
        for row in student_rows:
            entry = row.co_wise.get(co)
            if entry and entry.percentage >= target:
                above += 1
        pct = above / total * 100.0 if total > 0 else 0.0
        out.append(AttainmentRecord(
            co_no=co,
            students_above_target=above,
            total_students=total,
            percentage_above_target=pct,
            attainment_level=attainment_level(pct),  # type: ignore[arg-type]
        ))
    return out


def count_students_above_threshold(student_rows: Sequence[StudentRow], threshold: float) -> Dict[str, float]:
    count = sum(1 for row in student_rows if row.total_percentage >= threshold)
    pct = count / len(student_rows) * 100.0 if student_rows else 0.0
    return {"count": count, "percentage": pct}


__all__ = [
    "calculate_co_wise_marks",
    "calculate_lo_wise_marks",
    "calculate_total_marks",
    "calculate_co_attainment",
    "count_students_above_threshold",
    "student_row",
]
