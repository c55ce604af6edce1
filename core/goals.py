"""
core.goals
Player goals: evaluation, progress text, presets.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from .formulas import revenue_per_user
from .state import Company, Goal, total_skill_levels

GOAL_TYPES: Dict[str, str] = {
    "reach_users": "Reach {target:,.0f} users",
    "reach_cash": "Reach ${target:,.0f} cash",
    "reach_quality": "Reach {target:.0f} quality",
    "reach_hype": "Reach {target:.0f} hype",
    "reach_virality": "Reach {target:.0f} virality",
    "reach_daily_revenue": "Earn ${target:,.0f} per day",
    "reach_skill_level": "Reach {target:.0f} total skill levels",
    "survive_days": "Survive {target:.0f} days",
}


def make_goal(goal_type: str, target: float, goal_id: str = "") -> Goal:
    if goal_type not in GOAL_TYPES:
        raise ValueError(f"Unknown goal type: {goal_type}")
    if float(target) <= 0:
        raise ValueError("Goal target must be positive")
    return Goal(
        goal_id=goal_id or f"goal-{goal_type}",
        goal_type=goal_type,
        target=float(target),
        description=GOAL_TYPES[goal_type].format(target=float(target)),
    )


def goal_metric(company: Company, goal_type: str) -> float:
    if goal_type == "reach_users":
        return float(company.users)
    if goal_type == "reach_cash":
        return float(company.cash)
    if goal_type == "reach_quality":
        return float(company.quality)
    if goal_type == "reach_hype":
        return float(company.hype)
    if goal_type == "reach_virality":
        return float(company.virality)
    if goal_type == "reach_daily_revenue":
        return float(company.users) * revenue_per_user(company.quality)
    if goal_type == "reach_skill_level":
        return float(total_skill_levels(company))
    if goal_type == "survive_days":
        return float(company.day)
    return 0.0


def evaluate_goal(company: Company, goal: Goal) -> Goal:
    progress = goal_metric(company, goal.goal_type)
    # completion is sticky
    completed = bool(goal.completed) or progress >= float(goal.target)
    return replace(goal, progress=progress, completed=completed)


def evaluate_all_goals(company: Company) -> List[Goal]:
    return [evaluate_goal(company, g) for g in company.goals]


def progress_percent(goal: Goal) -> float:
    if float(goal.target) <= 0:
        return 100.0
    return max(0.0, min(100.0, float(goal.progress) / float(goal.target) * 100.0))


def _num(x: float) -> str:
    return str(int(x)) if float(x).is_integer() else f"{float(x):.2f}"


def goal_progress_text(goal: Goal) -> str:
    pct = int(math.floor(progress_percent(goal)))
    return f"{_num(goal.progress)}/{_num(goal.target)} ({pct}%)"


# Presets used when the caller does not pick goals explicitly.
DEFAULT_GOALS: Dict[str, Tuple[Tuple[str, float], ...]] = {
    "easy": (("reach_users", 1_000), ("reach_cash", 25_000), ("survive_days", 90)),
    "normal": (("reach_users", 2_000), ("reach_daily_revenue", 500), ("survive_days", 90)),
    "hard": (("reach_users", 3_000), ("reach_quality", 80), ("survive_days", 90)),
    "another_story": (("reach_users", 5_000), ("reach_virality", 50), ("survive_days", 90)),
}


def default_goals(difficulty: str) -> List[Goal]:
    presets = DEFAULT_GOALS.get(difficulty, DEFAULT_GOALS["normal"])
    return goals_from_pairs(presets)


def goals_from_pairs(pairs: Sequence[Tuple[str, float]]) -> List[Goal]:
    return [make_goal(t, v, goal_id=f"goal-{ix + 1}") for ix, (t, v) in enumerate(pairs)]
