from __future__ import annotations

import json

from attainment_core import cli

from tests.conftest import build_lab_snapshot, build_synthetic_snapshot


def test_cli_writes_all_formats(tmp_path, capsys):
    snap = tmp_path / "snapshot.json"
    snap.write_text(json.dumps(build_synthetic_snapshot()), encoding="utf-8")
    out = tmp_path / "out"

    code = cli.main([str(snap), "--target", "70", "--out", str(out), "--config", str(tmp_path / "none.json")])
    captured = capsys.readouterr()

    assert code == 0
    for ext in ("json", "csv", "xlsx", "html"):
        assert (out / f"ise-mse_7.{ext}").exists()
    assert "ise-mse attainment (target 70.0%)" in captured.out
    assert "1/3 (33.33%) -> level 1" in captured.out
    saved = json.loads((out / "ise-mse_7.json").read_text(encoding="utf-8"))
    assert saved["students"][0]["co_wise"]["1"]["percentage"] == 90


def test_cli_lab_kind(tmp_path, capsys):
    snap = tmp_path / "lab.json"
    snap.write_text(json.dumps(build_lab_snapshot()), encoding="utf-8")
    code = cli.main([str(snap), "--kind", "lab", "--target", "40", "--out", str(tmp_path)])
    assert code == 0
    assert (tmp_path / "lab_9.xlsx").exists()
    assert "level 3" in capsys.readouterr().out


def test_cli_reports_data_errors(tmp_path):
    bad = build_synthetic_snapshot()
    bad["marks"].append({"task_id": 404, "stud_pid": 2, "total_marks_obtained": 1})
    snap = tmp_path / "bad.json"
    snap.write_text(json.dumps(bad), encoding="utf-8")
    assert cli.main([str(snap), "--out", str(tmp_path / "out")]) == 2
    assert not (tmp_path / "out").exists()


def test_cli_missing_snapshot(tmp_path):
    assert cli.main([str(tmp_path / "nope.json")]) == 2
