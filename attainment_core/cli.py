from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict

from .config import load_config
from .errors import AttainmentError
from .export import to_csv, to_json, to_xlsx
from .report_html import export_report_html
from .reports import build_ise_mse_report, build_lab_report

log = logging.getLogger(__name__)

_BUILDERS = {"ise-mse": build_ise_mse_report, "lab": build_lab_report}


def _parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Build a CO/LO attainment report from a JSON snapshot.")
    ap.add_argument("snapshot", help="JSON file with allotment, students, tasks, marks and cos/los rows")
    ap.add_argument("--kind", choices=sorted(_BUILDERS), default="ise-mse")
    ap.add_argument("--target", type=float, default=None, help="subject target %% (defaults to config)")
    ap.add_argument("--out", default="reports", help="output directory")
    ap.add_argument("--config", default="config.json")
    return ap


def print_summary(report: Dict[str, Any]) -> None:
    print(f"=== {report['kind']} attainment (target {report['subject_target']}%) ===")
    print(f"students: {len(report['students'])}")
    for rec in report["attainment"]:
        print(
            f"  {rec['co_no']:>3}: {rec['students_above_target']}/{rec['total_students']} "
            f"({rec['percentage_above_target']:.2f}%) -> level {rec['attainment_level']}"
        )
    above = report["above_target"]
    print(f"overall above target: {above['count']} ({above['percentage']:.2f}%)")


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = _parser().parse_args(argv)
    try:
        snapshot = json.loads(Path(args.snapshot).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.error("cannot read snapshot %s: %s", args.snapshot, exc)
        return 2

    cfg = load_config(args.config)
    try:
        report = _BUILDERS[args.kind](snapshot, args.target, cfg)
    except AttainmentError as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        return 2

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    stem = f"{args.kind}_{(report.get('allotment') or {}).get('allotment_id', 'report')}"
    (out / f"{stem}.json").write_text(json.dumps(to_json(report), indent=2), encoding="utf-8")
    (out / f"{stem}.csv").write_text(to_csv(report), encoding="utf-8")
    (out / f"{stem}.xlsx").write_bytes(to_xlsx(report))
    export_report_html(report, str(out / f"{stem}.html"))
    print_summary(report)
    log.info("Report written to %s/%s.*", out, stem)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
