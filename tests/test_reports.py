from __future__ import annotations

import json

import pytest

from attainment_core import config
from attainment_core.errors import ConfigurationError, DataIntegrityError
from attainment_core.reports import build_batch_marks_report, build_ise_mse_report, build_lab_report

from tests.conftest import build_lab_snapshot, build_synthetic_snapshot


def _by_pid(report: dict) -> dict:
    return {row["pid"]: row for row in report["students"]}


def test_ise_mse_end_to_end(snapshot):
    report = build_ise_mse_report(snapshot, subject_target=70)
    rows = _by_pid(report)

    assert [r["pid"] for r in report["students"]] == [1, 2, 3]
    assert rows[1]["co_wise"]["1"]["percentage"] == 90
    assert rows[1]["co_wise"]["2"]["percentage"] == 75
    assert rows[2]["co_wise"]["1"]["percentage"] == 50
    assert rows[2]["co_wise"]["2"]["percentage"] == 50
    assert rows[3]["co_wise"]["1"] == {"co_no": 1, "max_marks": 20, "obtained_marks": 0, "percentage": 0}
    assert rows[3]["co_wise"]["2"]["max_marks"] == 0
    assert rows[3]["co_wise"]["2"]["percentage"] == 0

    assert rows[1]["total_obtained"] == 33
    assert rows[1]["total_max"] == 40
    assert rows[1]["total_percentage"] == 82.5
    assert rows[3]["total_max"] == 20

    co1, co2 = report["attainment"]
    assert co1 == {
        "co_no": 1,
        "students_above_target": 1,
        "total_students": 3,
        "percentage_above_target": 33.33,
        "attainment_level": 1,
    }
    assert co2["students_above_target"] == 1
    assert co2["attainment_level"] == 1


def test_ise_mse_lower_target_lifts_attainment(snapshot):
    report = build_ise_mse_report(snapshot, subject_target=50)
    levels = {a["co_no"]: (a["percentage_above_target"], a["attainment_level"]) for a in report["attainment"]}
    assert levels == {1: (66.67, 3), 2: (66.67, 3)}
    assert report["above_target"] == {"count": 2, "percentage": 66.67}


def test_ise_mse_structure_and_cells(snapshot):
    report = build_ise_mse_report(snapshot, subject_target=70)
    assert report["structure"]["1"]["ise"] == [{"task_id": 101, "title": "CSC501-ISE-1", "max_marks": 20.0}]
    assert [q["question_label"] for q in report["structure"]["2"]["mse"]] == ["Q1", "Q2"]
    assert report["structure"]["1"]["mse"] == []

    cells = _by_pid(report)[3]["co_marks"]
    assert cells["1"]["ise"]["101"]["obtained"] == 0
    assert cells["1"]["ise"]["101"]["present"] is True
    assert cells["2"]["mse"]["Q1"] == {"label": "Q1", "obtained": 0, "max": 10.0, "present": False}


def test_ise_mse_payload_is_json_stable(snapshot):
    report = build_ise_mse_report(snapshot, subject_target=70)
    assert json.loads(json.dumps(report)) == report


def test_ise_mse_unused_co_reports_level_one():
    report = build_ise_mse_report(build_synthetic_snapshot(with_empty_co=True), subject_target=70)
    co3 = report["attainment"][-1]
    assert co3["co_no"] == 3
    assert co3["students_above_target"] == 0
    assert co3["attainment_level"] == 1
    assert [o["label"] for o in report["outcomes"]] == ["CO1", "CO2", "CO3"]


def test_target_falls_back_to_subject_table_then_default(snapshot, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_SUBJECT_TARGET", 65.0)
    assert build_ise_mse_report(snapshot)["subject_target"] == 65.0
    cfg = {"SUBJECT_TARGETS": {"CSC501": 55}}
    assert build_ise_mse_report(snapshot, cfg=cfg)["subject_target"] == 55.0
    assert build_ise_mse_report(snapshot, 80, cfg)["subject_target"] == 80.0


def test_criteria_rendered_for_target(snapshot):
    report = build_ise_mse_report(snapshot, subject_target=70)
    assert report["criteria"]["3"] == "If 60% and above students have scored above 70%"


def test_orphan_mark_is_a_data_error(snapshot):
    snapshot["marks"].append({"task_id": 555, "stud_pid": 1, "total_marks_obtained": 4})
    with pytest.raises(DataIntegrityError):
        build_ise_mse_report(snapshot, subject_target=70)


def test_bad_target_is_a_configuration_error(snapshot):
    with pytest.raises(ConfigurationError):
        build_ise_mse_report(snapshot, subject_target=140)


def test_empty_cos_with_students_is_a_configuration_error(snapshot):
    snapshot["cos"] = []
    with pytest.raises(ConfigurationError):
        build_ise_mse_report(snapshot, subject_target=70)


def test_lab_report(lab_snapshot):
    report = build_lab_report(lab_snapshot, subject_target=65)
    rows = _by_pid(report)

    assert report["kind"] == "lab"
    assert rows[1]["co_wise"]["1"] == {"co_no": 1, "max_marks": 5, "obtained_marks": 4, "percentage": 80}
    assert rows[1]["co_wise"]["2"]["max_marks"] == 15
    assert rows[1]["co_wise"]["2"]["percentage"] == 86.67
    assert rows[2]["co_wise"]["2"]["percentage"] == 40
    assert rows[3]["total_max"] == 0

    assert report["structure"]["2"] == [
        {"exp_no": 1, "title": "Exp 1", "max_marks": 10.0},
        {"exp_no": 2, "title": "Exp 2", "max_marks": 10.0},
    ]
    assert rows[1]["lo_marks"]["1"]["1"] == {"obtained": 4, "max": 5}
    assert rows[1]["lo_marks"]["2"]["2"] == {"obtained": 9, "max": 10}
    assert "lo_marks" in rows[3] and rows[3]["lo_marks"] == {}

    assert [a["attainment_level"] for a in report["attainment"]] == [1, 1]
    assert [o["label"] for o in report["outcomes"]] == ["LO1", "LO2"]


def test_lab_report_low_target(lab_snapshot):
    report = build_lab_report(lab_snapshot, subject_target=40)
    lo1, lo2 = report["attainment"]
    assert lo1["students_above_target"] == 2
    assert lo1["attainment_level"] == 3
    assert lo2["students_above_target"] == 2


def test_batch_marks_matrix(lab_snapshot):
    report = build_batch_marks_report(lab_snapshot)
    assert report["experiments"] == [
        {"exp_no": 1, "exp_name": "Router setup", "los": ["LO1", "LO2"]},
        {"exp_no": 2, "exp_name": "Packet capture", "los": ["LO2"]},
    ]
    matrix = report["marks_matrix"]
    assert matrix["1"]["2"] == {"mark_id": 12, "marks": 9.0, "max_marks": 10.0, "status": "graded"}
    assert list(matrix["2"]) == ["1"]
    assert matrix["3"] == {}


def test_batch_marks_without_lab_tasks(snapshot):
    report = build_batch_marks_report(snapshot)
    assert report["experiments"] == []
    assert report["marks_matrix"] == {}
    assert len(report["students"]) == 3


def test_pending_ise_mark_counts_as_zero(snapshot):
    snapshot["marks"][4] = {"mark_id": 5, "task_id": 101, "stud_pid": 3, "total_marks_obtained": None, "status": "Pending"}
    snapshot["marks"].append({"mark_id": 6, "task_id": 102, "stud_pid": 3, "total_marks_obtained": None, "status": "Pending"})
    report = build_ise_mse_report(snapshot, subject_target=70)
    row = _by_pid(report)[3]

    assert row["co_wise"]["1"] == {"co_no": 1, "max_marks": 20, "obtained_marks": 0, "percentage": 0}
    assert row["co_wise"]["2"]["max_marks"] == 0
    assert row["co_marks"]["1"]["ise"]["101"] == {"task_title": "CSC501-ISE-1", "obtained": 0, "max": 20.0, "present": True}
    assert report["attainment"][0]["students_above_target"] == 1


def test_unanswered_question_counts_as_zero(snapshot):
    snapshot["marks"][3]["question_marks"] = {"Q1": 5, "Q2": None}
    report = build_ise_mse_report(snapshot, subject_target=70)
    row = _by_pid(report)[2]

    assert row["co_wise"]["2"] == {"co_no": 2, "max_marks": 20, "obtained_marks": 5, "percentage": 25}
    assert row["co_marks"]["2"]["mse"]["Q2"]["obtained"] == 0


def test_pending_lab_mark_counts_as_zero(lab_snapshot):
    lab_snapshot["marks"].append({"mark_id": 14, "task_id": 202, "stud_pid": 2, "total_marks_obtained": None, "status": "Pending"})
    report = build_lab_report(lab_snapshot, subject_target=65)
    row = _by_pid(report)[2]

    assert row["co_wise"]["2"]["max_marks"] == 15
    assert row["co_wise"]["2"]["obtained_marks"] == 2
    assert row["co_wise"]["2"]["percentage"] == 13.33
    assert row["lo_marks"]["2"]["2"] == {"obtained": 0, "max": 10}


def test_batch_matrix_keeps_pending_marks_null(lab_snapshot):
    lab_snapshot["marks"].append({"mark_id": 14, "task_id": 202, "stud_pid": 2, "total_marks_obtained": None, "status": "Pending"})
    matrix = build_batch_marks_report(lab_snapshot)["marks_matrix"]
    assert matrix["2"]["2"] == {"mark_id": 14, "marks": None, "max_marks": 10.0, "status": "Pending"}
    assert matrix["2"]["1"]["marks"] == 4.0


def _mixed_snapshot() -> dict:
    snap = build_synthetic_snapshot()
    lab = build_lab_snapshot()
    snap["tasks"] += lab["tasks"]
    snap["marks"] += lab["marks"]
    for key in ("los", "experiment_lo_mapping", "experiments"):
        snap[key] = lab[key]
    return snap


def test_builders_keep_their_own_task_kind():
    snap = _mixed_snapshot()

    ise = build_ise_mse_report(snap, subject_target=70)
    assert _by_pid(ise) == _by_pid(build_ise_mse_report(build_synthetic_snapshot(), subject_target=70))

    lab = build_lab_report(snap, subject_target=65)
    assert _by_pid(lab)[1]["co_wise"]["1"]["percentage"] == 80
    assert all("co_marks" not in row for row in lab["students"])

    batch = build_batch_marks_report(snap)
    assert sorted(batch["marks_matrix"]["1"]) == ["1", "2"]


def test_mixed_snapshot_still_rejects_orphans():
    snap = _mixed_snapshot()
    snap["marks"].append({"task_id": 777, "stud_pid": 1, "total_marks_obtained": 3})
    with pytest.raises(DataIntegrityError, match="777"):
        build_lab_report(snap, subject_target=65)
