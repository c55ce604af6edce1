"""content.repository

Read-only content repository.

Built once (from a directory of JSON tables or from in-memory mappings) and
passed explicitly into engine calls. Tests build their own from fixtures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .schemas import (
    ActionDef,
    AnomalyDef,
    BossTemplate,
    BroadcastDef,
    EventDef,
    RoleDef,
    SkillDef,
    action_from_dict,
    anomaly_from_dict,
    boss_template_from_dict,
    broadcast_from_dict,
    event_from_dict,
    role_from_dict,
    skill_from_dict,
)

DATA_DIR = Path(__file__).resolve().parent / "data"

TABLE_FILES = {
    "actions": "actions.json",
    "events": "events.json",
    "special_events": "special_events.json",
    "anomalies": "anomalies.json",
    "skills": "skills.json",
    "roles": "roles.json",
    "broadcasts": "broadcasts.json",
    "bosses": "bosses.json",
}


def _index(items: Iterable[Any], key: str, kind: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for it in items:
        k = getattr(it, key)
        if k in out:
            raise ValueError(f"Duplicate {kind} id: {k}")
        out[k] = it
    return out


@dataclass(frozen=True)
class ContentRepository:
    actions: Dict[str, ActionDef]
    events: Dict[str, EventDef]
    special_events: Dict[str, EventDef]
    anomalies: Dict[str, AnomalyDef]
    skills: Dict[str, SkillDef]
    roles: Dict[str, RoleDef]
    broadcasts: Dict[str, BroadcastDef]
    bosses: Dict[str, BossTemplate]

    # --- lookups (None == not found) ---

    def action(self, action_id: str) -> Optional[ActionDef]:
        return self.actions.get(action_id)

    def event(self, event_id: str) -> Optional[EventDef]:
        return self.events.get(event_id)

    def anomaly(self, anomaly_id: str) -> Optional[AnomalyDef]:
        return self.anomalies.get(anomaly_id)

    def skill(self, skill_id: str) -> Optional[SkillDef]:
        return self.skills.get(skill_id)

    def role(self, role_id: Optional[str]) -> Optional[RoleDef]:
        if not role_id:
            return None
        return self.roles.get(role_id)

    def broadcast(self, broadcast_id: Optional[str]) -> Optional[BroadcastDef]:
        if not broadcast_id:
            return None
        return self.broadcasts.get(broadcast_id)

    def boss(self, template_id: str) -> Optional[BossTemplate]:
        return self.bosses.get(template_id)

    def actions_in(self, category: str) -> List[ActionDef]:
        return [a for a in self.actions.values() if a.category == category]

    def skill_caps(self) -> Dict[str, int]:
        return {sid: int(s.max_level) for sid, s in self.skills.items()}

    # --- construction ---

    @classmethod
    def from_mappings(cls, tables: Mapping[str, Iterable[Mapping[str, Any]]]) -> "ContentRepository":
        """Build from plain lists of dicts. Missing tables are treated as empty."""

        def rows(name: str) -> List[Mapping[str, Any]]:
            return list(tables.get(name) or [])

        actions = _index((action_from_dict(r) for r in rows("actions")), "action_id", "action")
        events = _index((event_from_dict(r) for r in rows("events")), "event_id", "event")
        special = _index((event_from_dict(r) for r in rows("special_events")), "event_id", "special event")
        repo = cls(
            actions=actions,
            events=events,
            special_events=special,
            anomalies=_index((anomaly_from_dict(r) for r in rows("anomalies")), "anomaly_id", "anomaly"),
            skills=_index((skill_from_dict(r) for r in rows("skills")), "skill_id", "skill"),
            roles=_index((role_from_dict(r) for r in rows("roles")), "role_id", "role"),
            broadcasts=_index((broadcast_from_dict(r) for r in rows("broadcasts")), "broadcast_id", "broadcast"),
            bosses=_index((boss_template_from_dict(r) for r in rows("bosses")), "template_id", "boss"),
        )
        validate_repository(repo)
        return repo

    @classmethod
    def from_directory(cls, path: Union[str, Path]) -> "ContentRepository":
        base = Path(path)
        tables: Dict[str, List[Mapping[str, Any]]] = {}
        for name, filename in TABLE_FILES.items():
            fp = base / filename
            if not fp.exists():
                continue
            with fp.open("r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError(f"{fp}: expected a JSON list")
            tables[name] = data
        return cls.from_mappings(tables)


def validate_repository(repo: ContentRepository) -> None:
    """Cross-table checks: every action's pool must resolve to known events."""
    for a in repo.actions.values():
        missing = [eid for eid in a.event_pool if eid not in repo.events]
        if missing:
            raise ValueError(f"Action {a.action_id}: unknown events in pool {missing}")
    for e in repo.special_events.values():
        if not e.category:
            raise ValueError(f"Special event {e.event_id}: category is required")


def default_repository() -> ContentRepository:
    """Bundled tables shipped in content/data."""
    return ContentRepository.from_directory(DATA_DIR)
