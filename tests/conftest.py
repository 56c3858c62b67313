from __future__ import annotations

import pytest

from attainment_core.types import Mark, Student, SubQuestion, Task


def build_synthetic_snapshot(*, with_empty_co: bool = False) -> dict:
    """Three students, one ISE task on CO1 and one MSE paper on CO2; the third student never sat the MSE."""

    cos = [
        {"co_no": 1, "co_description": "Understand automata"},
        {"co_no": 2, "co_description": "Design grammars"},
    ]
    if with_empty_co:
        cos.append({"co_no": 3, "co_description": "Turing machines"})
    return {
        "allotment": {"allotment_id": 7, "sub_id": "CSC501", "class_name": "TE-CMPN-A", "batch_no": 1},
        "teacher": {"teacher_name": "R. Nair"},
        "students": [
            {"pid": 3, "stud_name": "Chitra", "roll_no": 3},
            {"pid": 1, "stud_name": "Aarav", "roll_no": 1},
            {"pid": 2, "stud_name": "Bhavna", "roll_no": 2},
        ],
        "tasks": [
            {
                "task_id": 101,
                "title": "CSC501-ISE-1",
                "assessment_type": "ISE",
                "max_marks": 20,
                "task_co_mapping": [{"co_no": 1, "sub_id": "CSC501"}],
            },
            {
                "task_id": 102,
                "title": "CSC501-MSE",
                "assessment_type": "MSE",
                "max_marks": 20,
                "sub_questions": [
                    {"label": "Q1", "co": "CO2", "marks": 10},
                    {"label": "Q2", "co": "CO2", "marks": 10},
                ],
            },
        ],
        "marks": [
            {"mark_id": 1, "task_id": 101, "stud_pid": 1, "total_marks_obtained": 18},
            {"mark_id": 2, "task_id": 102, "stud_pid": 1, "total_marks_obtained": 15, "question_marks": {"Q1": 7, "Q2": 8}},
            {"mark_id": 3, "task_id": 101, "stud_pid": 2, "total_marks_obtained": 10},
            {"mark_id": 4, "task_id": 102, "stud_pid": 2, "total_marks_obtained": 10, "question_marks": {"Q1": 5, "Q2": 5}},
            {"mark_id": 5, "task_id": 101, "stud_pid": 3, "total_marks_obtained": 0},
        ],
        "cos": cos,
    }


def build_lab_snapshot() -> dict:
    """Two experiments: Exp1 feeds LO1 and LO2, Exp2 feeds LO2 only."""

    return {
        "allotment": {"allotment_id": 9, "sub_id": "CSL501", "class_name": "TE-CMPN-A", "batch_no": 1},
        "teacher": {"teacher_name": "R. Nair"},
        "students": [
            {"pid": 1, "stud_name": "Aarav", "roll_no": 1, "batch": 1},
            {"pid": 2, "stud_name": "Bhavna", "roll_no": 2, "batch": 1},
            {"pid": 3, "stud_name": "Chitra", "roll_no": 3, "batch": 1},
        ],
        "tasks": [
            {"task_id": 201, "title": "Exp 1", "task_type": "Lab", "exp_no": 1, "max_marks": 10},
            {"task_id": 202, "title": "Exp 2", "task_type": "Lab", "exp_no": 2, "max_marks": 10},
        ],
        "marks": [
            {"mark_id": 11, "task_id": 201, "stud_pid": 1, "total_marks_obtained": 8, "status": "graded"},
            {"mark_id": 12, "task_id": 202, "stud_pid": 1, "total_marks_obtained": 9, "status": "graded"},
            {"mark_id": 13, "task_id": 201, "stud_pid": 2, "total_marks_obtained": 4, "status": "submitted"},
        ],
        "los": [
            {"lo_no": 1, "lo_description": "Configure networks"},
            {"lo_no": 2, "lo_description": "Analyse traffic"},
        ],
        "experiment_lo_mapping": [
            {"exp_no": 1, "lo_no": 1},
            {"exp_no": 1, "lo_no": 2},
            {"exp_no": 2, "lo_no": 2},
        ],
        "experiments": [
            {"exp_no": 1, "exp_name": "Router setup"},
            {"exp_no": 2, "exp_name": "Packet capture"},
        ],
    }


def ise(task_id: int, max_marks: float, cos: list[int]) -> Task:
    return Task(task_id=task_id, assessment_type="ISE", max_marks=max_marks, co_mapping=cos)


def mse(task_id: int, questions: list[tuple[str, int, float]]) -> Task:
    subs = [SubQuestion(label=label, co=co, marks=marks) for label, co, marks in questions]
    return Task(task_id=task_id, assessment_type="MSE", max_marks=sum(q.marks for q in subs), sub_questions=subs)


def mark(task_id: int, obtained: float, questions: dict | None = None, student: int = 1) -> Mark:
    return Mark(task_id=task_id, student_id=student, total_marks_obtained=obtained, question_marks=questions)


@pytest.fixture
def snapshot() -> dict:
    return build_synthetic_snapshot()


@pytest.fixture
def lab_snapshot() -> dict:
    return build_lab_snapshot()


@pytest.fixture
def student() -> Student:
    return Student(pid=1, stud_name="Aarav", roll_no=1)
