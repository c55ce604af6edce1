"""engine.tick

Daily tick: the day-boundary economy step.

Order matters and is fixed:
1) multipliers (skills + role + broadcast virality)
2) revenue and burn on the starting user count, cash unclamped
3) churn, hype retention, viral roll, hype decay
4) growth rate -> virality stat
5) loans, sacrifice countdown
6) goals, bankruptcy
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from content.repository import ContentRepository
from core.effects import adjust_cash
from core.formulas import (
    SkillMultipliers,
    ViralGrowth,
    churn,
    daily_burn,
    daily_revenue,
    decay_hype,
    growth_rate,
    hype_retained_users,
    is_bankrupt,
    roll_viral_growth,
    users_after_churn,
    virality_from_stats,
)
from core.goals import evaluate_all_goals
from core.state import MAX_STAT, Company, clamp, current_sacrifice, has_loan_lifeline

from .config import EngineConfig
from .loans import default_active_loans, process_daily_loans
from .modifiers import broadcast_effect
from .skills import calculate_multipliers


@dataclass(frozen=True)
class TickReport:
    day: int
    revenue: float = 0.0
    burn: float = 0.0
    churned: int = 0
    retained_bonus: int = 0
    viral: ViralGrowth = field(default_factory=lambda: ViralGrowth(triggered=False))
    growth_rate: float = 0.0
    virality: float = 0.0
    loan_events: List[Dict[str, Any]] = field(default_factory=list)
    goals_completed: List[str] = field(default_factory=list)
    bankrupt: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": int(self.day),
            "revenue": float(self.revenue),
            "burn": float(self.burn),
            "churned": int(self.churned),
            "retained_bonus": int(self.retained_bonus),
            "viral_growth": {
                "triggered": bool(self.viral.triggered),
                "new_users": int(self.viral.new_users),
                "hype_gain": float(self.viral.hype_gain),
            },
            "growth_rate": float(self.growth_rate),
            "virality": float(self.virality),
            "loan_events": list(self.loan_events),
            "goals_completed": list(self.goals_completed),
            "bankrupt": bool(self.bankrupt),
        }


def tick_multipliers(company: Company, content: ContentRepository, config: EngineConfig) -> SkillMultipliers:
    """Skill + role multipliers with the running broadcast's general virality bonus."""
    base = calculate_multipliers(company, content)
    extra = broadcast_effect(company, content, "general", config.broadcast_duration).virality_bonus
    if not extra:
        return base
    return replace(base, virality_bonus=float(base.virality_bonus) + float(extra))


def process_daily_tick(
    company: Company,
    content: ContentRepository,
    config: EngineConfig,
    rng: random.Random,
) -> Tuple[Company, TickReport]:
    if not company.alive:
        return company, TickReport(day=int(company.day))

    difficulty = config.difficulty_config
    multipliers = tick_multipliers(company, content, config)
    sacrifice = current_sacrifice(company)
    loan_multiplier: Optional[float] = sacrifice.revenue_multiplier if sacrifice is not None else None
    lifeline = has_loan_lifeline(company)

    start_users = int(company.users)
    revenue = daily_revenue(start_users, company.quality, multipliers, loan_multiplier)
    burn = daily_burn(start_users, difficulty, multipliers)
    updated = adjust_cash(company, revenue - burn)

    after_churn = users_after_churn(start_users, churn(updated.quality, difficulty))
    churned = start_users - after_churn
    retained = hype_retained_users(after_churn, updated.hype)
    users = after_churn + retained

    viral = roll_viral_growth(users, updated.hype, multipliers, rng)
    hype = decay_hype(updated.hype)
    if viral.triggered:
        users += int(viral.new_users)
        hype = clamp(hype + float(viral.hype_gain), 0.0, MAX_STAT)

    rate = growth_rate(start_users, users)
    virality = virality_from_stats(updated.virality, hype, rate, users)
    updated = replace(
        updated,
        users=users,
        hype=hype,
        virality=virality,
        previous_users=start_users,
    )

    updated, loan_events = process_daily_loans(updated, content, rng, config.loan_penalty_anomaly_chance)
    if int(updated.loan_effect_duration) > 0:
        updated = replace(updated, loan_effect_duration=int(updated.loan_effect_duration) - 1)

    before = {g.goal_id for g in updated.goals if g.completed}
    goals = evaluate_all_goals(updated)
    updated = replace(updated, goals=goals)
    newly_completed = [g.goal_id for g in goals if g.completed and g.goal_id not in before]

    bankrupt = is_bankrupt(updated.cash, updated.users, burn, difficulty, lifeline)
    if bankrupt:
        updated = default_active_loans(replace(updated, alive=False, outcome="bankrupt"))

    report = TickReport(
        day=int(company.day),
        revenue=revenue,
        burn=burn,
        churned=churned,
        retained_bonus=retained,
        viral=viral,
        growth_rate=rate,
        virality=virality,
        loan_events=loan_events,
        goals_completed=newly_completed,
        bankrupt=bankrupt,
    )
    return updated, report
