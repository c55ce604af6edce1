"""content.schemas

Contracts for the static content tables:
- ActionDef / EventDef / ChoiceDef: daily actions and the events they can trigger
- AnomalyDef: unscheduled perturbations
- SkillDef / RoleDef / BroadcastDef: progression modifiers
- BossTemplate / BossMove: the mid-campaign encounter

Design choice:
Content is validated once, at load time, and turned into frozen dataclasses.
The engine never branches on missing fields at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from core.effects import effects_from_mapping
from core.state import OUTCOME_TYPES, Effects

ACTION_CATEGORIES = (
    "product",
    "marketing",
    "tech",
    "business_dev",
    "operations",
    "finance",
    "research",
    "high_risk",
)

SKILL_TREES = ("product", "marketing", "finance", "technology")

BOSS_MOVE_TYPES = ("attack", "sabotage")


def _require(d: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in d or d[key] is None:
        raise ValueError(f"{where}: missing required field {key!r}")
    return d[key]


def _as_float(x: Any, default: float = 0.0) -> float:
    if x is None:
        return float(default)
    try:
        return float(x)
    except (TypeError, ValueError):
        raise ValueError(f"Expected a number, got {x!r}") from None


def normalize_id(x: Any) -> str:
    return str(x or "").strip()


def normalize_str_list(x: Any) -> List[str]:
    if x is None:
        return []
    if isinstance(x, str):
        return [s.strip() for s in x.split(",") if s.strip()]
    return [str(s).strip() for s in list(x) if str(s).strip()]


# =========================
# Actions & events
# =========================


@dataclass(frozen=True)
class ActionDef:
    action_id: str
    category: str
    name: str
    description: str
    event_pool: List[str]
    weight: int = 1


@dataclass(frozen=True)
class ChoiceDef:
    choice_id: str
    outcome: str
    text: str
    effects: Effects


@dataclass(frozen=True)
class EventDef:
    event_id: str
    name: str
    description: str
    choices: List[ChoiceDef]
    category: str = ""


def validate_action(a: ActionDef) -> None:
    if not a.action_id:
        raise ValueError("Action without action_id")
    if a.category not in ACTION_CATEGORIES:
        raise ValueError(f"Action {a.action_id}: unknown category {a.category!r}")
    if not a.event_pool:
        raise ValueError(f"Action {a.action_id}: empty event pool")
    if int(a.weight) < 1:
        raise ValueError(f"Action {a.action_id}: weight must be >= 1")


def validate_event(e: EventDef) -> None:
    if not e.event_id:
        raise ValueError("Event without event_id")
    outcomes = sorted(c.outcome for c in e.choices)
    if outcomes != sorted(OUTCOME_TYPES):
        raise ValueError(f"Event {e.event_id}: needs exactly one choice per outcome type, got {outcomes}")
    ids = [c.choice_id for c in e.choices]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Event {e.event_id}: duplicate choice ids")


def action_from_dict(d: Mapping[str, Any]) -> ActionDef:
    where = f"action {d.get('action_id')!r}"
    a = ActionDef(
        action_id=normalize_id(_require(d, "action_id", where)),
        category=normalize_id(_require(d, "category", where)),
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        event_pool=normalize_str_list(_require(d, "event_pool", where)),
        weight=int(d.get("weight", 1)),
    )
    validate_action(a)
    return a


def choice_from_dict(d: Mapping[str, Any], where: str) -> ChoiceDef:
    outcome = normalize_id(_require(d, "outcome", where)).lower()
    if outcome not in OUTCOME_TYPES:
        raise ValueError(f"{where}: unknown outcome {outcome!r}")
    return ChoiceDef(
        choice_id=normalize_id(_require(d, "choice_id", where)),
        outcome=outcome,
        text=str(d.get("text") or "").strip(),
        effects=effects_from_mapping(d.get("effects") or {}),
    )


def event_from_dict(d: Mapping[str, Any]) -> EventDef:
    where = f"event {d.get('event_id')!r}"
    e = EventDef(
        event_id=normalize_id(_require(d, "event_id", where)),
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        choices=[choice_from_dict(c, where) for c in list(_require(d, "choices", where))],
        category=normalize_id(d.get("category")),
    )
    validate_event(e)
    return e


# =========================
# Anomalies
# =========================


@dataclass(frozen=True)
class AnomalyDef:
    anomaly_id: str
    name: str
    description: str
    effects: Effects
    triggers: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)


def anomaly_from_dict(d: Mapping[str, Any]) -> AnomalyDef:
    where = f"anomaly {d.get('anomaly_id')!r}"
    return AnomalyDef(
        anomaly_id=normalize_id(_require(d, "anomaly_id", where)),
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        effects=effects_from_mapping(d.get("effects") or {}),
        triggers=[t.lower() for t in normalize_str_list(d.get("triggers"))],
        flags=normalize_str_list(d.get("flags")),
    )


# =========================
# Skills, roles, broadcasts
# =========================


@dataclass(frozen=True)
class SkillEffects:
    revenue_multiplier: float = 0.0
    virality_bonus: float = 0.0
    conversion_bonus: float = 0.0
    cost_reduction: float = 0.0
    event_outcome_bonus: float = 0.0


@dataclass(frozen=True)
class SkillDef:
    skill_id: str
    tree: str
    name: str
    description: str
    max_level: int
    effects: SkillEffects


def skill_from_dict(d: Mapping[str, Any]) -> SkillDef:
    where = f"skill {d.get('skill_id')!r}"
    tree = normalize_id(_require(d, "tree", where)).lower()
    if tree not in SKILL_TREES:
        raise ValueError(f"{where}: unknown tree {tree!r}")
    eff = dict(d.get("effects") or {})
    allowed = set(SkillEffects.__dataclass_fields__.keys())
    unknown = set(eff.keys()) - allowed
    if unknown:
        raise ValueError(f"{where}: unknown skill effects {sorted(unknown)}")
    max_level = int(_require(d, "max_level", where))
    if max_level < 1:
        raise ValueError(f"{where}: max_level must be >= 1")
    return SkillDef(
        skill_id=normalize_id(_require(d, "skill_id", where)),
        tree=tree,
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        max_level=max_level,
        effects=SkillEffects(**{k: _as_float(v) for k, v in eff.items()}),
    )


@dataclass(frozen=True)
class RoleDef:
    role_id: str
    name: str
    description: str
    xp_multiplier: float = 1.0
    event_outcome_bonus: float = 0.0
    skill_tree_bonuses: Dict[str, float] = field(default_factory=dict)

    def tree_bonus(self, tree: str) -> float:
        return float(self.skill_tree_bonuses.get(tree, 1.0))


def role_from_dict(d: Mapping[str, Any]) -> RoleDef:
    where = f"role {d.get('role_id')!r}"
    bonuses = {str(k): _as_float(v, 1.0) for k, v in dict(d.get("skill_tree_bonuses") or {}).items()}
    bad = set(bonuses.keys()) - set(SKILL_TREES)
    if bad:
        raise ValueError(f"{where}: unknown skill trees {sorted(bad)}")
    return RoleDef(
        role_id=normalize_id(_require(d, "role_id", where)),
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        xp_multiplier=_as_float(d.get("xp_multiplier"), 1.0),
        event_outcome_bonus=_as_float(d.get("event_outcome_bonus"), 0.0),
        skill_tree_bonuses=bonuses,
    )


@dataclass(frozen=True)
class BroadcastEffect:
    xp_multiplier: float = 1.0
    success_rate_bonus: float = 0.0
    virality_bonus: float = 0.0


NEUTRAL_BROADCAST_EFFECT = BroadcastEffect()


@dataclass(frozen=True)
class BroadcastDef:
    broadcast_id: str
    name: str
    description: str
    effects: Dict[str, BroadcastEffect]
    special_event_chance: float = 0.0

    def effect_for(self, category: Optional[str]) -> BroadcastEffect:
        if category and category in self.effects:
            return self.effects[category]
        return self.effects.get("general", NEUTRAL_BROADCAST_EFFECT)


def broadcast_from_dict(d: Mapping[str, Any]) -> BroadcastDef:
    where = f"broadcast {d.get('broadcast_id')!r}"
    effects: Dict[str, BroadcastEffect] = {}
    for cat, raw in dict(d.get("effects") or {}).items():
        raw = dict(raw or {})
        effects[str(cat)] = BroadcastEffect(
            xp_multiplier=_as_float(raw.get("xp_multiplier"), 1.0),
            success_rate_bonus=_as_float(raw.get("success_rate_bonus"), 0.0),
            virality_bonus=_as_float(raw.get("virality_bonus"), 0.0),
        )
    chance = _as_float(d.get("special_event_chance"), 0.0)
    if not 0.0 <= chance <= 1.0:
        raise ValueError(f"{where}: special_event_chance must be within 0..1")
    return BroadcastDef(
        broadcast_id=normalize_id(_require(d, "broadcast_id", where)),
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        effects=effects,
        special_event_chance=chance,
    )


# =========================
# Boss templates
# =========================


@dataclass(frozen=True)
class BossMove:
    move_id: str
    name: str
    move_type: str  # attack|sabotage
    description: str
    effects: Effects


@dataclass(frozen=True)
class BossTemplate:
    template_id: str
    name: str
    description: str
    max_health: int
    moves: List[BossMove]

    def moves_of(self, move_type: str) -> List[BossMove]:
        return [m for m in self.moves if m.move_type == move_type]

    def move(self, move_id: str) -> Optional[BossMove]:
        return next((m for m in self.moves if m.move_id == move_id), None)


def boss_template_from_dict(d: Mapping[str, Any]) -> BossTemplate:
    where = f"boss {d.get('template_id')!r}"
    moves: List[BossMove] = []
    for m in list(_require(d, "moves", where)):
        mt = normalize_id(_require(m, "move_type", where)).lower()
        if mt not in BOSS_MOVE_TYPES:
            raise ValueError(f"{where}: unknown move type {mt!r}")
        moves.append(
            BossMove(
                move_id=normalize_id(_require(m, "move_id", where)),
                name=str(_require(m, "name", where)).strip(),
                move_type=mt,
                description=str(m.get("description") or "").strip(),
                effects=effects_from_mapping(m.get("effects") or {}),
            )
        )
    if not any(m.move_type == "attack" for m in moves):
        raise ValueError(f"{where}: needs at least one attack move")
    max_health = int(_require(d, "max_health", where))
    if max_health <= 0:
        raise ValueError(f"{where}: max_health must be positive")
    return BossTemplate(
        template_id=normalize_id(_require(d, "template_id", where)),
        name=str(_require(d, "name", where)).strip(),
        description=str(d.get("description") or "").strip(),
        max_health=max_health,
        moves=moves,
    )
