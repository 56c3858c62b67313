from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name) or ""
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


DEFAULT_SUBJECT_TARGET: float = 65.0

# attainment level cut-offs on the share of students at/above target
LEVEL3_MIN_PCT: float = 60.0
LEVEL2_MIN_PCT: float = 50.0

REPORT_DECIMALS: int = 2

EXPORT_ENABLED: bool = True

STUDENT_DOMAIN: str = "student.sfit.ac.in"
TEACHER_DOMAIN: str = "sfit.ac.in"

SUBJECT_TARGETS: dict[str, float] = {}

# // env overrides for staging/ops
DEFAULT_SUBJECT_TARGET = _env_float("DEFAULT_SUBJECT_TARGET", DEFAULT_SUBJECT_TARGET)
LEVEL3_MIN_PCT = _env_float("LEVEL3_MIN_PCT", LEVEL3_MIN_PCT)
LEVEL2_MIN_PCT = _env_float("LEVEL2_MIN_PCT", LEVEL2_MIN_PCT)
REPORT_DECIMALS = _env_int("REPORT_DECIMALS", REPORT_DECIMALS)
EXPORT_ENABLED = _env_bool("EXPORT_ENABLED", EXPORT_ENABLED)
STUDENT_DOMAIN = os.getenv("STUDENT_DOMAIN", STUDENT_DOMAIN)
TEACHER_DOMAIN = os.getenv("TEACHER_DOMAIN", TEACHER_DOMAIN)


def load_config(path: str = "config.json") -> dict:
    cfg: dict = {}
    p = pathlib.Path(path)
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    targets = dict(SUBJECT_TARGETS)
    targets.update(cfg.get("SUBJECT_TARGETS") or {})
    cfg["SUBJECT_TARGETS"] = targets
    for key in ("ADMIN_EMAILS", "TEACHER_EMAILS", "STUDENT_EMAILS"):
        from_env = _env_list(key)
        if from_env:
            cfg[key] = from_env
        else:
            cfg[key] = [str(e).strip().lower() for e in cfg.get(key) or [] if str(e).strip()]
    cfg.setdefault("STUDENT_DOMAIN", STUDENT_DOMAIN)
    cfg.setdefault("TEACHER_DOMAIN", TEACHER_DOMAIN)
    if os.getenv("STUDENT_DOMAIN"): cfg["STUDENT_DOMAIN"] = os.environ["STUDENT_DOMAIN"]
    if os.getenv("TEACHER_DOMAIN"): cfg["TEACHER_DOMAIN"] = os.environ["TEACHER_DOMAIN"]
    return cfg


def subject_target(sub_id: str | None, cfg: dict | None = None, explicit: float | None = None) -> float:
    """Explicit value wins, then the per-subject table, then the default."""
    if explicit is not None:
        return float(explicit)
    targets = (cfg or {}).get("SUBJECT_TARGETS") or SUBJECT_TARGETS
    if sub_id and sub_id in targets:
        return float(targets[sub_id])
    return DEFAULT_SUBJECT_TARGET
