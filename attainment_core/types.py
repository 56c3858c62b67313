from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Literal
AssessmentType = Literal["ISE","MSE","Lab"]
@dataclass(frozen=True)
class SubQuestion:
    label: str; co: int; marks: float
@dataclass(frozen=True)
class Task:
    task_id: int
    assessment_type: AssessmentType
    max_marks: float
    title: str = ""
    co_mapping: List[int] = field(default_factory=list)
    sub_questions: List[SubQuestion] = field(default_factory=list)
    exp_no: Optional[int] = None
    lo_mapping: List[int] = field(default_factory=list)
@dataclass(frozen=True)
class Mark:
    task_id: int; student_id: int; total_marks_obtained: Optional[float]
    question_marks: Optional[Dict[str, float]] = None
    mark_id: Optional[int] = None
    status: Optional[str] = None
@dataclass(frozen=True)
class Outcome:
    no: int; description: str = ""
@dataclass(frozen=True)
class Student:
    pid: int; stud_name: str; roll_no: int
    batch: Optional[int] = None
@dataclass
class CoWiseData:
    co_no: int
    max_marks: float = 0.0
    obtained_marks: float = 0.0
    percentage: float = 0.0
@dataclass
class StudentRow:
    pid: int
    co_wise: Dict[int, CoWiseData]
    total_obtained: float
    total_max: float
    total_percentage: float
    roll_no: Optional[int] = None
    stud_name: str = ""
@dataclass
class AttainmentRecord:
    co_no: int
    students_above_target: int
    total_students: int
    percentage_above_target: float
    attainment_level: Literal[1,2,3]
