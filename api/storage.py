"""On-disk store for built attainment reports.

Each report lives in ``reports/<id>.json``. ``reports_index.json`` groups report
metadata by allotment so a subject's history can be listed without opening
every report file::

    {"<allotment_id>": {"<report_id>": {"kind": ..., "createdAt": ...}}}
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)

DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
REPORTS_DIR = DATA_ROOT / "reports"
REPORT_INDEX_PATH = DATA_ROOT / "reports_index.json"

_LOCK = threading.Lock()

Index = Dict[str, Dict[str, Dict[str, Any]]]


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _report_path(report_id: str) -> Path:
    return REPORTS_DIR / f"{report_id}.json"


def _load(path: Path) -> Optional[Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        log.warning("unreadable store file %s: %s", path, exc)
        return None


def _dump(path: Path, payload: Any) -> None:
    # write-then-rename so readers never see a half written file
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, sort_keys=True)
    tmp.replace(path)


def _index() -> Index:
    data = _load(REPORT_INDEX_PATH)
    return data if isinstance(data, dict) else {}


def save_report(report_id: str, report: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Write the report file, then register it under its allotment."""

    _dump(_report_path(report_id), report)
    bucket_key = str(metadata.get("allotmentId"))
    with _LOCK:
        index = _index()
        index.setdefault(bucket_key, {})[report_id] = dict(metadata)
        _dump(REPORT_INDEX_PATH, index)
    log.info("stored report %s for allotment %s", report_id, bucket_key)


def load_report(report_id: str) -> Optional[Dict[str, Any]]:
    data = _load(_report_path(report_id))
    return data if isinstance(data, dict) else None


def delete_report(report_id: str) -> bool:
    found = False
    with _LOCK:
        index = _index()
        for bucket_key in list(index):
            if index[bucket_key].pop(report_id, None) is not None:
                found = True
                if not index[bucket_key]:
                    del index[bucket_key]
        if found:
            _dump(REPORT_INDEX_PATH, index)
    path = _report_path(report_id)
    if path.exists():
        path.unlink()
        found = True
    return found


def list_reports_for_allotment(allotment_id: Any) -> List[Dict[str, Any]]:
    """Newest first."""
    bucket = _index().get(str(allotment_id)) or {}
    out = [{**meta, "id": rid} for rid, meta in bucket.items()]
    out.sort(key=lambda r: r.get("createdAt", ""), reverse=True)
    return out
