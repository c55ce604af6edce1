"""engine.logging

Small helpers for storing run logs.

A run log is JSON-serializable so it can be exported/imported later.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.state import Company, company_from_mapping, company_to_dict

EXPORT_VERSION = 1


def make_run_export(
    *,
    seed: int,
    config: Dict[str, Any],
    initial_company: Company,
    day_logs: List[Dict[str, Any]],
    final_company: Optional[Company] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "version": EXPORT_VERSION,
        "seed": int(seed),
        "config": dict(config),
        "initial_company": company_to_dict(initial_company),
        "day_logs": list(day_logs),
    }
    if final_company is not None:
        out["final_company"] = company_to_dict(final_company)
    return out


def dumps_run_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True)


def loads_run_export(text: str) -> Tuple[Dict[str, Any], Company]:
    """Parse an export. Returns (export, company to resume from)."""
    obj = json.loads(text)
    if not isinstance(obj, Mapping):
        raise ValueError("Run export must be a JSON object")
    if int(obj.get("version", 0)) != EXPORT_VERSION:
        raise ValueError(f"Unsupported run export version: {obj.get('version')!r}")
    raw = obj.get("final_company") or obj.get("initial_company")
    if not isinstance(raw, Mapping):
        raise ValueError("Run export has no company snapshot")
    return dict(obj), company_from_mapping(raw)


def day_log_entry(*, start: Dict[str, Any], steps: List[Dict[str, Any]], end: Dict[str, Any]) -> Dict[str, Any]:
    """One day of a run log: start-of-day rolls, player steps, tick report."""
    return {
        "day": int(start.get("day", end.get("day", 0))),
        "start": dict(start),
        "steps": list(steps),
        "end": dict(end),
    }
