"""Role lookup from an e-mail address against one shared access configuration."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from . import config as cfg_defaults

UserRole = Literal["student", "teacher", "admin"]

_DASHBOARDS: dict[str, str] = {
    "student": "/student",
    "teacher": "/teacher",
    "admin": "/admin",
}


@dataclass(frozen=True)
class AccessConfig:
    admin_emails: frozenset[str] = frozenset()
    teacher_emails: frozenset[str] = frozenset()
    student_emails: frozenset[str] = frozenset()
    student_domain: str = cfg_defaults.STUDENT_DOMAIN
    teacher_domain: str = cfg_defaults.TEACHER_DOMAIN

    @staticmethod
    def from_cfg(cfg: Mapping[str, Any] | None) -> "AccessConfig":
        cfg = cfg or {}

        def _emails(name: str) -> frozenset[str]:
            return frozenset(str(e).strip().lower() for e in cfg.get(name) or [] if str(e).strip())

        return AccessConfig(
            admin_emails=_emails("ADMIN_EMAILS"),
            teacher_emails=_emails("TEACHER_EMAILS"),
            student_emails=_emails("STUDENT_EMAILS"),
            student_domain=str(cfg.get("STUDENT_DOMAIN") or cfg_defaults.STUDENT_DOMAIN),
            teacher_domain=str(cfg.get("TEACHER_DOMAIN") or cfg_defaults.TEACHER_DOMAIN),
        )


def get_user_role(email: Optional[str], access: AccessConfig) -> Optional[UserRole]:
    """Explicit allow-lists first, then the institutional domain rules."""
    if not email:
        return None
    e = email.strip().lower()
    if e in access.admin_emails:
        return "admin"
    if e in access.teacher_emails:
        return "teacher"
    if e in access.student_emails:
        return "student"
    if access.student_domain and access.student_domain.lower() in e:
        return "student"
    if access.teacher_domain and e.endswith("@" + access.teacher_domain.lower()):
        return "teacher"
    return None


def dashboard_path(role: UserRole) -> str:
    return _DASHBOARDS[role]
