from __future__ import annotations
from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import logging, os, tempfile, uuid, typing as t

from attainment_core import config as core_cfg
from attainment_core.config import load_config
from attainment_core.errors import ConfigurationError, DataIntegrityError
from attainment_core.export import to_csv, to_json, to_xlsx
from attainment_core.report_html import export_report_html
from attainment_core.reports import build_batch_marks_report, build_ise_mse_report, build_lab_report
from attainment_core.roles import AccessConfig, dashboard_path, get_user_role
from .storage import (
    delete_report,
    list_reports_for_allotment,
    load_report,
    save_report,
    utcnow_iso,
)

log = logging.getLogger(__name__)

CFG = load_config(os.getenv("EVALEASE_CONFIG", "config.json"))
ACCESS = AccessConfig.from_cfg(CFG)

app = FastAPI(title="Evalease Attainment API")

@app.get("/")
def root():
    return {"status": "ok", "service": "evalease-attainment-api"}

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
OutcomeRef = int | str   # 3 | "CO3" | "LO3"

class StudentIn(BaseModel):
    pid: int
    stud_name: str = ""
    roll_no: int | None = None
    batch: int | None = None

class SubQuestionRow(BaseModel):
    label: str
    co: OutcomeRef
    marks: float

class CoMappingRow(BaseModel):
    co_no: OutcomeRef
    sub_id: str | None = None

class TaskRow(BaseModel):
    task_id: int
    assessment_type: str | None = None   # "ISE" | "MSE" | "Lab"
    task_type: str | None = None
    title: str = ""
    max_marks: float
    task_co_mapping: list[CoMappingRow] = Field(default_factory=list)
    sub_questions: list[SubQuestionRow] = Field(default_factory=list)
    exp_no: int | None = None
    lo_mapping: list[OutcomeRef] = Field(default_factory=list)

class MarkRow(BaseModel):
    mark_id: int | None = None
    task_id: int
    stud_pid: int | None = None
    student_id: int | None = None
    total_marks_obtained: float | None = None   # null while pending
    question_marks: dict[str, float | None] | None = None
    status: str | None = None

class CoRow(BaseModel):
    co_no: OutcomeRef
    co_description: str = ""

class LoRow(BaseModel):
    lo_no: OutcomeRef
    lo_description: str = ""

class ExperimentLoRow(BaseModel):
    exp_no: int
    lo_no: OutcomeRef

class ExperimentRow(BaseModel):
    exp_no: int
    exp_name: str = ""

class SnapshotReq(BaseModel):
    allotment: dict[str, t.Any] = Field(default_factory=dict)
    teacher: dict[str, t.Any] = Field(default_factory=dict)
    students: list[StudentIn] = Field(default_factory=list)
    tasks: list[TaskRow] = Field(default_factory=list)
    marks: list[MarkRow] = Field(default_factory=list)
    cos: list[CoRow] = Field(default_factory=list)
    los: list[LoRow] = Field(default_factory=list)
    experiment_lo_mapping: list[ExperimentLoRow] = Field(default_factory=list)
    experiments: list[ExperimentRow] = Field(default_factory=list)
    subject_target: float | None = None

# ---- Helpers ----
def require_staff(x_user_email: str | None = Header(None)) -> str:
    if not x_user_email:
        raise HTTPException(401, "Unauthorized")
    role = get_user_role(x_user_email, ACCESS)
    if role not in ("teacher", "admin"):
        raise HTTPException(403, "teacher or admin role required")
    return x_user_email


def _build(builder: t.Callable[..., dict[str, t.Any]], req: SnapshotReq, *args: t.Any) -> dict[str, t.Any]:
    try:
        # unset optionals are dropped so ingestion's key fallbacks (stud_pid/student_id) still apply
        return builder(req.model_dump(exclude_none=True), *args)
    except DataIntegrityError as exc:
        raise HTTPException(422, str(exc))
    except ConfigurationError as exc:
        raise HTTPException(400, str(exc))


def _decorate_report(base: dict[str, t.Any], *, requested_by: str) -> dict[str, t.Any]:
    rid = str(uuid.uuid4())
    created = utcnow_iso()
    report = to_json(base)
    report["meta"] = {
        "reportId": rid,
        "createdAt": created,
        "requestedBy": requested_by,
        "kind": base.get("kind"),
    }
    report["id"] = rid
    report["reportId"] = rid
    report["created_at"] = created
    return report


def _persist(report: dict[str, t.Any]) -> None:
    allot = report.get("allotment") or {}
    metadata = {
        "allotmentId": allot.get("allotment_id"),
        "subId": allot.get("sub_id"),
        "kind": report.get("kind"),
        "createdAt": report["created_at"],
        "requestedBy": report["meta"]["requestedBy"],
        "subjectTarget": report.get("subject_target"),
    }
    save_report(report["id"], report, metadata)


def _stored_or_404(report_id: str) -> dict[str, t.Any]:
    report = load_report(report_id)
    if not report:
        raise HTTPException(404, "report not found")
    return report

# ---- Health ----
@app.get("/health")
def health():
    return {
        "default_subject_target": core_cfg.DEFAULT_SUBJECT_TARGET,
        "level_thresholds": {"3": core_cfg.LEVEL3_MIN_PCT, "2": core_cfg.LEVEL2_MIN_PCT},
        "export_enabled": core_cfg.EXPORT_ENABLED,
        "subject_targets": len(CFG.get("SUBJECT_TARGETS") or {}),
    }


@app.get("/whoami")
def whoami(x_user_email: str | None = Header(None)):
    role = get_user_role(x_user_email, ACCESS)
    if role is None:
        raise HTTPException(403, "no role for this account")
    return {"email": x_user_email, "role": role, "dashboard": dashboard_path(role)}

# ---- Reports ----
@app.post("/reports/ise-mse")
def create_ise_mse_report(req: SnapshotReq, user: str = Depends(require_staff)):
    base = _build(build_ise_mse_report, req, req.subject_target, CFG)
    report = _decorate_report(base, requested_by=user)
    _persist(report)
    log.info("stored ise-mse report %s", report["id"])
    return report


@app.post("/reports/lab-attainment")
def create_lab_report(req: SnapshotReq, user: str = Depends(require_staff)):
    base = _build(build_lab_report, req, req.subject_target, CFG)
    report = _decorate_report(base, requested_by=user)
    _persist(report)
    log.info("stored lab report %s", report["id"])
    return report


@app.post("/reports/batch-marks")
def batch_marks(req: SnapshotReq, user: str = Depends(require_staff)):
    return to_json(_build(build_batch_marks_report, req))


@app.get("/reports/{report_id}")
def get_report(report_id: str, user: str = Depends(require_staff)):
    return _stored_or_404(report_id)


@app.get("/reports/{report_id}/export.csv")
def get_report_csv(report_id: str, user: str = Depends(require_staff)):
    if not core_cfg.EXPORT_ENABLED:
        raise HTTPException(404, "export disabled")
    report = _stored_or_404(report_id)
    return Response(
        content=to_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{report_id}.csv\""},
    )


@app.get("/reports/{report_id}/export.xlsx")
def get_report_xlsx(report_id: str, user: str = Depends(require_staff)):
    if not core_cfg.EXPORT_ENABLED:
        raise HTTPException(404, "export disabled")
    report = _stored_or_404(report_id)
    return Response(
        content=to_xlsx(report),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=\"{report_id}.xlsx\""},
    )


@app.get("/reports/{report_id}/html")
def get_report_html(report_id: str, user: str = Depends(require_staff)):
    report = _stored_or_404(report_id)
    with tempfile.NamedTemporaryFile("w+", suffix=".html", delete=False, encoding="utf-8") as f:
        export_report_html(report, f.name)
        f.seek(0)
        html = f.read()
    os.unlink(f.name)
    return {"html": html}


@app.delete("/reports/{report_id}")
def delete_report_endpoint(report_id: str, user: str = Depends(require_staff)):
    ok = delete_report(report_id)
    if not ok:
        raise HTTPException(404, "report not found")
    return {"ok": True}


@app.get("/allotments/{allotment_id}/reports")
def list_reports(allotment_id: str, user: str = Depends(require_staff)):
    return {"reports": list_reports_for_allotment(allotment_id)}
