"""
core.effects
Resource ledger: the one apply-path for effect bundles.

Clamp rules:
- cash: floored at `cash_floor` (0 for discrete bundles; None = unclamped,
  used by burn, loan penalties and boss moves)
- users: >= MIN_USERS
- quality / hype / virality: 0..100
- xp: forwarded to core.progression (never added directly)
- skills: free grants, never counted as spent
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .progression import LevelUp, grant_xp
from .state import (
    MAX_STAT,
    MIN_USERS,
    Company,
    DailyAction,
    Effects,
    PendingEvent,
    clamp,
    snapshot_row,
)

_NUMERIC_KEYS = ("cash", "users", "quality", "hype", "virality", "xp")
_ALLOWED_KEYS = set(_NUMERIC_KEYS) | {"skills", "flags"}
_INT_KEYS = {"users", "xp"}


def _as_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Effect field {key!r} must be numeric, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Effect field {key!r} must be finite")
    return float(value)


def effects_from_mapping(d: Mapping[str, Any]) -> Effects:
    """Build an Effects bundle from a plain mapping.

    Raises ValueError for unknown keys or malformed values (programmer/content error).
    """
    if not isinstance(d, Mapping):
        raise ValueError("Effect bundle must be a mapping")
    unknown = set(d.keys()) - _ALLOWED_KEYS
    if unknown:
        raise ValueError(f"Unknown effect fields: {sorted(unknown)}")

    kwargs: Dict[str, Any] = {}
    for k in _NUMERIC_KEYS:
        if d.get(k) is None:
            continue
        v = _as_number(k, d[k])
        kwargs[k] = int(v) if k in _INT_KEYS else v

    skills_raw = d.get("skills") or {}
    if not isinstance(skills_raw, Mapping):
        raise ValueError("Effect field 'skills' must be a mapping of skill_id -> levels")
    skills: Dict[str, int] = {}
    for sid, lv in skills_raw.items():
        skills[str(sid)] = int(_as_number(f"skills.{sid}", lv))

    flags_raw = d.get("flags") or []
    if isinstance(flags_raw, str) or not isinstance(flags_raw, (list, tuple)):
        raise ValueError("Effect field 'flags' must be a list of strings")
    flags = tuple(str(x).strip() for x in flags_raw if str(x).strip())

    return Effects(skills=skills, flags=flags, **kwargs)


def apply_effects(
    company: Company,
    effects: Effects,
    *,
    cash_floor: Optional[float] = 0.0,
    xp_modifiers: Iterable[float] = (),
    skill_caps: Optional[Mapping[str, int]] = None,
) -> Tuple[Company, Optional[LevelUp]]:
    """Apply an effect bundle with clamp rules (pure function).

    A dead company is returned unchanged.
    """
    if not company.alive:
        return company, None

    cash = float(company.cash)
    if effects.cash is not None:
        cash = cash + float(effects.cash)
        if cash_floor is not None:
            # an existing debt is never written off by the floor
            cash = max(min(float(cash_floor), float(company.cash)), cash)

    users = int(company.users)
    if effects.users is not None:
        users = max(MIN_USERS, users + int(effects.users))

    quality = float(company.quality)
    if effects.quality is not None:
        quality = clamp(quality + float(effects.quality), 0.0, MAX_STAT)

    hype = float(company.hype)
    if effects.hype is not None:
        hype = clamp(hype + float(effects.hype), 0.0, MAX_STAT)

    virality = float(company.virality)
    if effects.virality is not None:
        virality = clamp(virality + float(effects.virality), 0.0, MAX_STAT)

    skills = company.skills
    if effects.skills:
        skills = dict(company.skills)
        for sid, amount in effects.skills.items():
            if skill_caps is not None and sid not in skill_caps:
                continue
            new_level = max(0, int(skills.get(sid, 0)) + int(amount))
            if skill_caps is not None:
                new_level = min(new_level, int(skill_caps[sid]))
            skills[sid] = new_level

    updated = replace(company, cash=cash, users=users, quality=quality, hype=hype, virality=virality, skills=skills)

    level_up: Optional[LevelUp] = None
    if effects.xp is not None:
        updated, level_up = grant_xp(updated, int(effects.xp), xp_modifiers)
    return updated, level_up


def adjust_cash(company: Company, amount: float) -> Company:
    """Unclamped cash path (daily burn, loan penalties). Cash may go negative."""
    if not company.alive:
        return company
    return replace(company, cash=float(company.cash) + float(amount))


def scale_negative_effects(effects: Effects, factor: float) -> Effects:
    """Scale only the harmful numeric parts of a bundle (rounded toward zero)."""

    def _scale(v: Optional[float], as_int: bool) -> Optional[float]:
        if v is None or v >= 0:
            return v
        scaled = float(v) * float(factor)
        return int(math.ceil(scaled)) if as_int else scaled

    return replace(
        effects,
        cash=_scale(effects.cash, False),
        users=_scale(effects.users, True),
        quality=_scale(effects.quality, False),
        hype=_scale(effects.hype, False),
        virality=_scale(effects.virality, False),
    )


# -------------------------
# Snapshot helpers
# -------------------------


def append_stats_snapshot(company: Company) -> Company:
    return replace(company, stats_history=[*company.stats_history, snapshot_row(company)])


def add_pending_events(company: Company, events: List[PendingEvent]) -> Company:
    return replace(company, pending_events=[*company.pending_events, *events])


def remove_pending_event(company: Company, event_id: str) -> Company:
    return replace(company, pending_events=[e for e in company.pending_events if e.event_id != event_id])


def mark_action_selected(company: Company, action_id: str) -> Company:
    actions: List[DailyAction] = [
        replace(a, selected=True) if a.action_id == action_id else a for a in company.daily_actions
    ]
    return replace(company, daily_actions=actions)
