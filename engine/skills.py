"""engine.skills

Skill trees: multiplier aggregation, manual upgrades, goal-driven auto-allocation.

Spending always goes through core.progression.spend_skill_points so the
spent counter and the available-points cache stay consistent.
"""

from __future__ import annotations

import random
from typing import Dict, List, Optional, Tuple

from content.repository import ContentRepository
from content.schemas import SkillDef
from core.errors import NOT_FOUND, Rejection, reject
from core.formulas import SkillMultipliers
from core.goals import evaluate_all_goals, progress_percent
from core.progression import recalculate_level_and_skill_points, spend_skill_points
from core.rng import shuffled
from core.state import Company

# goal type -> (relevant trees or None for every tree, priority factor)
GOAL_TREE_PRIORITIES: Dict[str, Tuple[Optional[Tuple[str, ...]], float]] = {
    "reach_users": (("marketing", "product"), 2.0),
    "reach_cash": (("finance", "product"), 1.5),
    "reach_quality": (("product", "technology"), 2.0),
    "reach_hype": (("marketing",), 3.0),
    "reach_virality": (("marketing",), 3.0),
    "reach_daily_revenue": (("finance", "product"), 2.0),
    "reach_skill_level": (None, 1.0),
}


def calculate_multipliers(company: Company, content: ContentRepository) -> SkillMultipliers:
    """Aggregate owned skill levels into economy multipliers.

    A role's tree bonus scales the effective level of every skill in that tree.
    """
    revenue_multiplier = 1.0
    virality_bonus = 0.0
    conversion_bonus = 0.0
    cost_reduction = 0.0
    event_outcome_bonus = 0.0
    quality_gain_bonus = 0.0
    hype_bonus = 0.0
    burn_reduction = 0.0
    outage_reduction = 0.0

    role = content.role(company.role)

    for skill_id, raw_level in sorted(company.skills.items()):
        skill = content.skill(skill_id)
        if skill is None or int(raw_level) <= 0:
            continue
        lvl = float(raw_level) * (role.tree_bonus(skill.tree) if role is not None else 1.0)
        eff = skill.effects

        if skill.tree == "product":
            quality_gain_bonus += 0.005 * lvl
            cost_reduction += 0.03 * lvl
        elif skill.tree == "marketing":
            hype_bonus += 0.02 * lvl
            virality_bonus += eff.virality_bonus * lvl
            cost_reduction += 0.05 * lvl
        elif skill.tree == "finance":
            burn_reduction += 0.02 * lvl
            cost_reduction += eff.cost_reduction * lvl
        elif skill.tree == "technology":
            cost_reduction += 0.05 * lvl
            outage_reduction += 0.02 * lvl

        if eff.revenue_multiplier:
            revenue_multiplier *= 1.0 + eff.revenue_multiplier * lvl
        if eff.virality_bonus and skill.tree != "marketing":
            virality_bonus += eff.virality_bonus * lvl
        conversion_bonus += eff.conversion_bonus * lvl
        event_outcome_bonus += eff.event_outcome_bonus * lvl

    return SkillMultipliers(
        revenue_multiplier=revenue_multiplier,
        virality_bonus=virality_bonus,
        conversion_bonus=conversion_bonus,
        cost_reduction=cost_reduction,
        event_outcome_bonus=event_outcome_bonus,
        quality_gain_bonus=quality_gain_bonus,
        hype_bonus=hype_bonus,
        burn_reduction=burn_reduction,
        outage_reduction=outage_reduction,
    )


def upgrade_skill(
    company: Company, skill_id: str, content: ContentRepository, levels: int = 1
) -> Tuple[Company, Optional[Rejection]]:
    skill = content.skill(skill_id)
    if skill is None:
        return company, reject(NOT_FOUND, "Unknown skill.", skill_id=skill_id)
    return spend_skill_points(company, skill_id, levels, skill.max_level)


def skill_priorities(company: Company, content: ContentRepository) -> Dict[str, float]:
    """Sum of goal-driven weights per not-maxed skill."""
    weights: Dict[str, float] = {}
    for goal in evaluate_all_goals(company):
        if goal.completed:
            continue
        rule = GOAL_TREE_PRIORITIES.get(goal.goal_type)
        if rule is None:
            continue
        trees, factor = rule
        remaining = 100.0 - progress_percent(goal)
        if remaining <= 0:
            continue
        for skill in content.skills.values():
            if int(company.skills.get(skill.skill_id, 0)) >= skill.max_level:
                continue
            if trees is not None and skill.tree not in trees:
                continue
            weights[skill.skill_id] = weights.get(skill.skill_id, 0.0) + remaining * factor
    return weights


def auto_allocate(
    company: Company, content: ContentRepository, rng: random.Random
) -> Tuple[Company, List[str]]:
    """Spend every available point on the skills that best serve open goals.

    One point at a time, highest weight first, in repeated passes, skipping
    maxed skills. Ties are broken by an rng shuffle before the (stable) sort.

    Returns (company, ["Skill Name -> Level N", ...]).
    """
    if not company.alive:
        return company, []

    weights = skill_priorities(company, content)
    order: List[SkillDef] = [content.skills[sid] for sid in shuffled(sorted(weights.keys()), rng)]
    order.sort(key=lambda s: weights[s.skill_id], reverse=True)

    upgrades: List[str] = []
    progressed = True
    while progressed and recalculate_level_and_skill_points(company).available > 0:
        progressed = False
        for skill in order:
            if recalculate_level_and_skill_points(company).available <= 0:
                break
            if int(company.skills.get(skill.skill_id, 0)) >= skill.max_level:
                continue
            company, rejection = spend_skill_points(company, skill.skill_id, 1, skill.max_level)
            if rejection is not None:
                continue
            progressed = True
            upgrades.append(f"{skill.name} -> Level {company.skills[skill.skill_id]}")
    return company, upgrades
