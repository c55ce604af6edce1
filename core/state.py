"""
core.state
Core domain data models (UI/bot independent).

Everything here is a frozen dataclass. Operations elsewhere never mutate a
snapshot in place; they build a new one with dataclasses.replace().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


MIN_USERS = 5
MAX_STAT = 100.0

OUTCOME_TYPES: Tuple[str, ...] = ("critical_success", "success", "failure", "critical_failure")

# Pending events spawned by a broadcast (or a special-event anomaly) use this
# action id and cost no action points.
SPECIAL_EVENT_ACTION_ID = "broadcast_special"


@dataclass(frozen=True)
class Effects:
    """Sparse effect bundle. None means "no change" for that field."""

    cash: Optional[float] = None
    users: Optional[int] = None
    quality: Optional[float] = None
    hype: Optional[float] = None
    virality: Optional[float] = None
    xp: Optional[int] = None
    skills: Dict[str, int] = field(default_factory=dict)
    flags: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for k in ("cash", "users", "quality", "hype", "virality", "xp"):
            v = getattr(self, k)
            if v is not None:
                out[k] = v
        if self.skills:
            out["skills"] = dict(self.skills)
        if self.flags:
            out["flags"] = list(self.flags)
        return out


@dataclass(frozen=True)
class Goal:
    goal_id: str
    goal_type: str
    target: float
    progress: float = 0.0
    completed: bool = False
    description: str = ""


@dataclass(frozen=True)
class StatsSnapshot:
    """One row of stats_history, appended at day end."""
    day: int
    cash: float
    users: int
    quality: float
    hype: float
    virality: float
    xp: int
    level: int


@dataclass(frozen=True)
class DailyAction:
    action_id: str
    category: str
    name: str
    description: str = ""
    weight: int = 1
    selected: bool = False


@dataclass(frozen=True)
class EventChoice:
    choice_id: str
    label: str
    outcome: str
    text: str
    effects: Effects


@dataclass(frozen=True)
class PendingEvent:
    event_id: str
    action_id: str
    category: str
    name: str
    description: str
    choices: List[EventChoice]

    @property
    def is_special(self) -> bool:
        return self.action_id == SPECIAL_EVENT_ACTION_ID


@dataclass(frozen=True)
class LoanSacrifice:
    xp_penalty_percent: float
    revenue_multiplier: Optional[float] = None
    future_event_chance_increase: Optional[float] = None

    @property
    def has_lasting_effect(self) -> bool:
        return self.revenue_multiplier is not None or bool(self.future_event_chance_increase)


@dataclass(frozen=True)
class Loan:
    loan_id: str
    amount: float
    interest_rate: float
    duration_days: int
    accepted_day: int
    due_day: int
    sacrifice: LoanSacrifice
    paid: float = 0.0
    status: str = "active"  # active|paid|defaulted
    credibility_score: int = 50

    @property
    def total_owed(self) -> float:
        return float(self.amount) * (1.0 + float(self.interest_rate))

    @property
    def remaining(self) -> float:
        return max(0.0, self.total_owed - float(self.paid))


@dataclass(frozen=True)
class AnomalyLogEntry:
    company_id: str
    anomaly_id: str
    day: int
    effects: Dict[str, Any]


@dataclass(frozen=True)
class OutcomeBonus:
    critical_success_bonus: float = 0.0
    success_bonus: float = 0.0


@dataclass(frozen=True)
class DayModifiers:
    """Advisory annotations from today's anomalies.

    Read by event resolution; reset at day end.
    """
    locked_categories: Tuple[str, ...] = ()
    outcome_bonuses: Dict[str, OutcomeBonus] = field(default_factory=dict)
    special_event_queued: bool = False


@dataclass(frozen=True)
class Company:
    """Aggregate root of one simulation run."""

    company_id: str
    name: str
    difficulty: str
    company_type: str = "saas"
    role: Optional[str] = None

    day: int = 1
    cash: float = 0.0
    users: int = MIN_USERS
    quality: float = 50.0
    hype: float = 0.0
    virality: float = 0.0
    previous_users: int = MIN_USERS

    xp: int = 0
    level: int = 1
    skill_points: int = 0
    skill_points_spent: int = 0
    bonus_skill_points: int = 0
    skills: Dict[str, int] = field(default_factory=dict)

    goals: List[Goal] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    loan_effect_duration: int = 0
    lifeline_used: bool = False

    alive: bool = True
    outcome: Optional[str] = None  # bankrupt|survived|boss_defeated

    stats_history: List[StatsSnapshot] = field(default_factory=list)
    anomaly_log: List[AnomalyLogEntry] = field(default_factory=list)
    investors: List[str] = field(default_factory=list)

    broadcast_id: Optional[str] = None
    broadcast_start_day: Optional[int] = None

    pending_events: List[PendingEvent] = field(default_factory=list)
    daily_actions: List[DailyAction] = field(default_factory=list)
    action_points: int = 0
    day_modifiers: DayModifiers = field(default_factory=DayModifiers)
    recent_flags: Tuple[str, ...] = ()


def active_loans(company: Company) -> List[Loan]:
    return [ln for ln in company.loans if ln.status == "active"]


def has_loan_lifeline(company: Company) -> bool:
    return bool(active_loans(company)) or bool(company.lifeline_used)


def total_skill_levels(company: Company) -> int:
    return int(sum(int(v) for v in company.skills.values()))


def current_sacrifice(company: Company) -> Optional[LoanSacrifice]:
    """Sacrifice of the most recent loan while its duration counter runs."""
    if company.loan_effect_duration <= 0 or not company.loans:
        return None
    latest = max(company.loans, key=lambda ln: int(ln.accepted_day))
    return latest.sacrifice


def snapshot_row(company: Company) -> StatsSnapshot:
    return StatsSnapshot(
        day=int(company.day),
        cash=float(company.cash),
        users=int(company.users),
        quality=float(company.quality),
        hype=float(company.hype),
        virality=float(company.virality),
        xp=int(company.xp),
        level=int(company.level),
    )


# -------------------------
# Serialization
# -------------------------


def company_to_dict(company: Company) -> Dict[str, Any]:
    d = asdict(company)
    d["recent_flags"] = list(company.recent_flags)
    d["day_modifiers"]["locked_categories"] = list(company.day_modifiers.locked_categories)
    for ev in d["pending_events"]:
        for ch in ev["choices"]:
            ch["effects"]["flags"] = list(ch["effects"].get("flags") or [])
    return d


def _effects_from_plain(d: Mapping[str, Any]) -> Effects:
    def _opt(k: str, cast: Any) -> Any:
        v = d.get(k)
        return None if v is None else cast(v)

    return Effects(
        cash=_opt("cash", float),
        users=_opt("users", int),
        quality=_opt("quality", float),
        hype=_opt("hype", float),
        virality=_opt("virality", float),
        xp=_opt("xp", int),
        skills={str(k): int(v) for k, v in dict(d.get("skills") or {}).items()},
        flags=tuple(str(x) for x in (d.get("flags") or [])),
    )


def company_from_mapping(d: Mapping[str, Any]) -> Company:
    """Inverse of company_to_dict (used by run import)."""
    mods = dict(d.get("day_modifiers") or {})
    day_modifiers = DayModifiers(
        locked_categories=tuple(str(x) for x in (mods.get("locked_categories") or [])),
        outcome_bonuses={
            str(k): OutcomeBonus(
                critical_success_bonus=float(v.get("critical_success_bonus", 0.0)),
                success_bonus=float(v.get("success_bonus", 0.0)),
            )
            for k, v in dict(mods.get("outcome_bonuses") or {}).items()
        },
        special_event_queued=bool(mods.get("special_event_queued", False)),
    )

    pending = [
        PendingEvent(
            event_id=str(ev["event_id"]),
            action_id=str(ev["action_id"]),
            category=str(ev.get("category", "")),
            name=str(ev.get("name", "")),
            description=str(ev.get("description", "")),
            choices=[
                EventChoice(
                    choice_id=str(ch["choice_id"]),
                    label=str(ch["label"]),
                    outcome=str(ch["outcome"]),
                    text=str(ch.get("text", "")),
                    effects=_effects_from_plain(ch.get("effects") or {}),
                )
                for ch in ev.get("choices") or []
            ],
        )
        for ev in d.get("pending_events") or []
    ]

    loans = [
        Loan(
            loan_id=str(ln["loan_id"]),
            amount=float(ln["amount"]),
            interest_rate=float(ln["interest_rate"]),
            duration_days=int(ln["duration_days"]),
            accepted_day=int(ln["accepted_day"]),
            due_day=int(ln["due_day"]),
            sacrifice=LoanSacrifice(**dict(ln["sacrifice"])),
            paid=float(ln.get("paid", 0.0)),
            status=str(ln.get("status", "active")),
            credibility_score=int(ln.get("credibility_score", 50)),
        )
        for ln in d.get("loans") or []
    ]

    return Company(
        company_id=str(d["company_id"]),
        name=str(d.get("name", "")),
        difficulty=str(d.get("difficulty", "normal")),
        company_type=str(d.get("company_type", "saas")),
        role=d.get("role"),
        day=int(d.get("day", 1)),
        cash=float(d.get("cash", 0.0)),
        users=int(d.get("users", MIN_USERS)),
        quality=float(d.get("quality", 50.0)),
        hype=float(d.get("hype", 0.0)),
        virality=float(d.get("virality", 0.0)),
        previous_users=int(d.get("previous_users", MIN_USERS)),
        xp=int(d.get("xp", 0)),
        level=int(d.get("level", 1)),
        skill_points=int(d.get("skill_points", 0)),
        skill_points_spent=int(d.get("skill_points_spent", 0)),
        bonus_skill_points=int(d.get("bonus_skill_points", 0)),
        skills={str(k): int(v) for k, v in dict(d.get("skills") or {}).items()},
        goals=[Goal(**dict(g)) for g in d.get("goals") or []],
        loans=loans,
        loan_effect_duration=int(d.get("loan_effect_duration", 0)),
        lifeline_used=bool(d.get("lifeline_used", False)),
        alive=bool(d.get("alive", True)),
        outcome=d.get("outcome"),
        stats_history=[StatsSnapshot(**dict(s)) for s in d.get("stats_history") or []],
        anomaly_log=[AnomalyLogEntry(**dict(a)) for a in d.get("anomaly_log") or []],
        investors=[str(x) for x in d.get("investors") or []],
        broadcast_id=d.get("broadcast_id"),
        broadcast_start_day=d.get("broadcast_start_day"),
        pending_events=pending,
        daily_actions=[DailyAction(**dict(a)) for a in d.get("daily_actions") or []],
        action_points=int(d.get("action_points", 0)),
        day_modifiers=day_modifiers,
        recent_flags=tuple(str(x) for x in (d.get("recent_flags") or [])),
    )
