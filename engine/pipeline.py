"""engine.pipeline

Core day flow (headless).

Responsibilities:
- create a company for a difficulty
- start a day: action set, anomaly roll, broadcast window, boss checkpoint
- take actions / resolve choices with per-step deterministic rngs
- end a day: tick, snapshot, advance or finish the run

Every step returns a result dataclass carrying the new company (or a
Rejection); DayStart and DayEnd render a JSON-serializable log dict.
This layer is UI-agnostic.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from content.repository import ContentRepository
from content.schemas import BroadcastDef
from core.effects import append_stats_snapshot
from core.errors import DAY_ALREADY_STARTED, PENDING_EVENTS, Rejection, dead_company, reject
from core.goals import default_goals, goals_from_pairs
from core.modes import DIFFICULTIES
from core.rng import rng_from
from core.state import MIN_USERS, Company, DailyAction, DayModifiers, current_sacrifice

from .anomalies import Activation, apply_activation, roll_daily_anomalies
from .boss import BossBattle, get_or_create_boss_battle
from .config import EngineConfig
from .events import ActionResult, ChoiceResult, generate_daily_action_set, resolve_choice, take_action
from .modifiers import check_and_start_broadcast
from .tick import TickReport, process_daily_tick


@dataclass(frozen=True)
class DayStart:
    company: Company
    actions: List[DailyAction] = field(default_factory=list)
    activations: List[Activation] = field(default_factory=list)
    broadcast: Optional[BroadcastDef] = None
    battle: Optional[BossBattle] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    def to_log(self) -> Dict[str, Any]:
        return {
            "day": int(self.company.day),
            "actions": [a.action_id for a in self.actions],
            "anomalies": [a.to_dict() for a in self.activations],
            "broadcast": self.broadcast.broadcast_id if self.broadcast is not None else None,
            "boss": self.battle.to_dict() if self.battle is not None else None,
        }


@dataclass(frozen=True)
class DayEnd:
    company: Company
    report: Optional[TickReport] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    def to_log(self) -> Dict[str, Any]:
        return {
            "day": int(self.report.day) if self.report is not None else int(self.company.day),
            "tick": self.report.to_dict() if self.report is not None else None,
            "alive": bool(self.company.alive),
            "outcome": self.company.outcome,
        }


def create_company(
    config: EngineConfig,
    *,
    company_id: str,
    name: str,
    content: ContentRepository,
    role: Optional[str] = None,
    company_type: str = "saas",
    goals: Optional[Sequence[Tuple[str, float]]] = None,
) -> Company:
    """Fresh run at day 1 with the difficulty's starting cash."""
    if config.difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {config.difficulty}")
    if role is not None and content.role(role) is None:
        raise ValueError(f"Unknown role: {role}")
    if not str(name).strip():
        raise ValueError("Company name must not be empty")

    return Company(
        company_id=str(company_id),
        name=str(name).strip(),
        difficulty=config.difficulty,
        company_type=str(company_type),
        role=role,
        day=1,
        cash=float(config.difficulty_config.initial_cash),
        users=MIN_USERS,
        quality=50.0,
        hype=0.0,
        virality=0.0,
        previous_users=MIN_USERS,
        goals=goals_from_pairs(goals) if goals else default_goals(config.difficulty),
    )


def start_day(
    company: Company,
    content: ContentRepository,
    config: EngineConfig,
    existing_battle: Optional[BossBattle] = None,
) -> DayStart:
    if not company.alive:
        return DayStart(company, rejection=dead_company())
    if company.daily_actions:
        return DayStart(company, rejection=reject(DAY_ALREADY_STARTED, "Today has already started.", day=int(company.day)))

    day = int(company.day)
    seed = int(config.base_seed)

    # 1) today's offer first, so a lock_action anomaly can target it
    actions = generate_daily_action_set(
        config.difficulty_config, content, rng_from("actions", company.company_id, day, base_seed=seed)
    )
    updated = replace(company, daily_actions=actions, day_modifiers=DayModifiers())

    # 2) anomalies; yesterday's flags are consumed by this roll
    sacrifice = current_sacrifice(updated)
    chance = float(config.anomaly_chance)
    if sacrifice is not None and sacrifice.future_event_chance_increase:
        chance += float(sacrifice.future_event_chance_increase)
    activations = roll_daily_anomalies(
        updated, content, rng_from("anomaly", company.company_id, day, base_seed=seed), chance
    )
    for act in activations:
        updated = apply_activation(updated, act, content)
    updated = replace(updated, recent_flags=())

    # 3) broadcast window
    updated, broadcast = check_and_start_broadcast(
        updated,
        content,
        rng_from("broadcast", company.company_id, day, base_seed=seed),
        start_day=config.broadcast_start_day,
        duration=config.broadcast_duration,
    )

    # 4) boss checkpoint
    battle = get_or_create_boss_battle(
        updated,
        existing_battle,
        content,
        rng_from("boss", company.company_id, day, base_seed=seed),
        boss_day=config.boss_day,
    )

    updated = replace(updated, action_points=int(config.difficulty_config.action_limit))
    return DayStart(updated, actions=actions, activations=activations, broadcast=broadcast, battle=battle)


def perform_action(company: Company, action_id: str, content: ContentRepository, config: EngineConfig) -> ActionResult:
    taken = sum(1 for a in company.daily_actions if a.selected)
    rng = rng_from("take-action", company.company_id, int(company.day), action_id, taken, base_seed=int(config.base_seed))
    return take_action(company, action_id, content, rng, duration=config.broadcast_duration)


def make_choice(
    company: Company, event_id: str, choice_id: str, content: ContentRepository, config: EngineConfig
) -> ChoiceResult:
    return resolve_choice(company, event_id, choice_id, content, duration=config.broadcast_duration)


def end_day(company: Company, content: ContentRepository, config: EngineConfig) -> DayEnd:
    """Close the day: tick, snapshot, then advance or finish the run.

    Pending events only block while action points remain; otherwise they
    carry over to tomorrow.
    """
    if not company.alive:
        return DayEnd(company, rejection=dead_company())
    if company.pending_events and int(company.action_points) > 0:
        return DayEnd(
            company,
            rejection=reject(PENDING_EVENTS, "Resolve pending events first.", pending=len(company.pending_events)),
        )

    day = int(company.day)
    rng = rng_from("tick", company.company_id, day, base_seed=int(config.base_seed))
    updated, report = process_daily_tick(company, content, config, rng)
    updated = append_stats_snapshot(updated)

    updated = replace(updated, daily_actions=[], day_modifiers=DayModifiers(), action_points=0)
    if not updated.alive:
        return DayEnd(updated, report=report)

    if day >= int(config.max_day):
        updated = replace(updated, alive=False, outcome=updated.outcome or "survived")
    else:
        updated = replace(updated, day=day + 1)
    return DayEnd(updated, report=report)

