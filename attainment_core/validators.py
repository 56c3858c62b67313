"""Turn raw storage rows into typed records, failing fast on bad data."""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import ConfigurationError, DataIntegrityError
from .types import Mark, Outcome, Student, SubQuestion, Task

_OUTCOME_RX = re.compile(r"^\s*(?:CO|LO)?\s*(\d+)\s*$", re.I)
_ASSESSMENT_TYPES = {"ISE": "ISE", "MSE": "MSE", "LAB": "Lab"}


def parse_outcome_ref(ref: Any) -> int:
    """'CO3' -> 3. Plain integers pass through; anything else is a data error."""
    if isinstance(ref, bool):
        raise DataIntegrityError(f"invalid outcome reference: {ref!r}")
    if isinstance(ref, int):
        return ref
    m = _OUTCOME_RX.match(str(ref)) if isinstance(ref, str) else None
    if not m:
        raise DataIntegrityError(f"invalid outcome reference: {ref!r}")
    return int(m.group(1))


def check_target(subject_target: float) -> float:
    try:
        t = float(subject_target)
    except (TypeError, ValueError):
        raise ConfigurationError(f"subject target is not a number: {subject_target!r}") from None
    if not 0.0 <= t <= 100.0:
        raise ConfigurationError(f"subject target must be within [0, 100], got {t}")
    return t


def _number(row: Mapping[str, Any], key: str, what: str) -> float:
    val = row.get(key)
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise DataIntegrityError(f"{what}: {key} must be a number, got {val!r}")
    return float(val)


def _optional_number(row: Mapping[str, Any], key: str, what: str) -> Optional[float]:
    # null means not graded yet (pending mark, unanswered question)
    if row.get(key) is None:
        return None
    return _number(row, key, what)


def _sub_questions(task_id: int, raw: Iterable[Mapping[str, Any]] | None) -> List[SubQuestion]:
    out: List[SubQuestion] = []
    seen: set[str] = set()
    for q in raw or []:
        label = str(q.get("label", "")).strip()
        if not label:
            raise DataIntegrityError(f"task {task_id}: sub-question without label")
        if label in seen:
            raise DataIntegrityError(f"task {task_id}: duplicate sub-question label {label!r}")
        seen.add(label)
        out.append(SubQuestion(label=label, co=parse_outcome_ref(q.get("co")),
                               marks=_number(q, "marks", f"task {task_id} question {label}")))
    return out


def tasks_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[Task]:
    """Rows follow the task table plus its nested `task_co_mapping` and `sub_questions`."""
    tasks: List[Task] = []
    for row in rows:
        task_id = row.get("task_id")
        if task_id is None:
            raise DataIntegrityError(f"task row without task_id: {dict(row)!r}")
        kind = _ASSESSMENT_TYPES.get(str(row.get("assessment_type") or row.get("task_type") or "").upper())
        if kind is None:
            raise DataIntegrityError(f"task {task_id}: unknown assessment type {row.get('assessment_type')!r}")
        mapping = row.get("task_co_mapping") or row.get("co_mapping") or []
        cos = [parse_outcome_ref(m.get("co_no") if isinstance(m, Mapping) else m) for m in mapping]
        los = [parse_outcome_ref(m) for m in row.get("lo_mapping") or []]
        exp_no = row.get("exp_no")
        tasks.append(Task(
            task_id=task_id,
            assessment_type=kind,  # type: ignore[arg-type]
            max_marks=_number(row, "max_marks", f"task {task_id}"),
            title=str(row.get("title") or ""),
            co_mapping=cos,
            sub_questions=_sub_questions(task_id, row.get("sub_questions")),
            exp_no=int(exp_no) if exp_no is not None else None,
            lo_mapping=los,
        ))
    return tasks


def attach_lo_mapping(tasks: Iterable[Task], mappings: Iterable[Mapping[str, Any]]) -> List[Task]:
    """Fold experiment->LO rows onto lab tasks by experiment number."""
    by_exp: Dict[int, List[int]] = {}
    for m in mappings:
        by_exp.setdefault(int(m["exp_no"]), []).append(parse_outcome_ref(m.get("lo_no")))
    out: List[Task] = []
    for t in tasks:
        if t.assessment_type == "Lab" and t.exp_no is not None and not t.lo_mapping:
            t = replace(t, lo_mapping=list(by_exp.get(t.exp_no, [])))
        out.append(t)
    return out


def marks_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[Mark]:
    marks: List[Mark] = []
    for row in rows:
        student = row.get("stud_pid", row.get("student_id"))
        if row.get("task_id") is None or student is None:
            raise DataIntegrityError(f"mark row missing task or student: {dict(row)!r}")
        qm = row.get("question_marks")
        if qm is not None:
            if not isinstance(qm, Mapping):
                raise DataIntegrityError(f"mark for task {row['task_id']}: question_marks must be a mapping")
            qm = {str(k): _optional_number(qm, k, f"mark for task {row['task_id']}") or 0.0 for k in qm}
        marks.append(Mark(
            task_id=row["task_id"],
            student_id=student,
            total_marks_obtained=_optional_number(row, "total_marks_obtained", f"mark for task {row['task_id']}"),
            question_marks=qm,
            mark_id=row.get("mark_id"),
            status=row.get("status"),
        ))
    return marks


def outcomes_from_rows(rows: Iterable[Mapping[str, Any]], key: str = "co_no") -> List[Outcome]:
    desc_key = key.replace("_no", "_description")
    out = [Outcome(no=parse_outcome_ref(r.get(key)), description=str(r.get(desc_key) or "")) for r in rows]
    return sorted(out, key=lambda o: o.no)


def students_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[Student]:
    out: List[Student] = []
    for r in rows:
        if r.get("pid") is None:
            raise DataIntegrityError(f"student row without pid: {dict(r)!r}")
        out.append(Student(pid=r["pid"], stud_name=str(r.get("stud_name") or ""),
                           roll_no=r.get("roll_no"), batch=r.get("batch")))
    return sorted(out, key=lambda s: (s.roll_no is None, s.roll_no or 0))


def check_marks_reference_tasks(marks: Iterable[Mark], tasks: Iterable[Task]) -> None:
    known = {t.task_id for t in tasks}
    for m in marks:
        if m.task_id not in known:
            raise DataIntegrityError(f"mark for student {m.student_id} references unknown task {m.task_id}")
