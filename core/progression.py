"""
core.progression
XP curve, levels and skill-point accounting.

This is the single place where level / available skill points get derived.
Any code path that changes xp, skill_points_spent or bonus_skill_points must
come through here so the cached `level` and `skill_points` never drift.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from .errors import (
    INSUFFICIENT_SKILL_POINTS,
    INVALID_AMOUNT,
    SKILL_MAXED,
    Rejection,
    dead_company,
    reject,
)
from .state import Company

MAX_LEVEL = 50

# (xp required, skill points awarded on reaching the level), index 0 == level 1
LEVEL_TABLE: Tuple[Tuple[int, int], ...] = (
    (0, 0), (100, 1), (250, 1), (450, 1), (700, 1),
    (1000, 1), (1350, 1), (1750, 1), (2200, 1), (2700, 2),
    (3250, 1), (3850, 1), (4500, 1), (5200, 1), (5950, 1),
    (6750, 1), (7600, 1), (8500, 1), (9450, 1), (10450, 2),
    (11500, 1), (12600, 1), (13750, 1), (14950, 1), (16200, 1),
    (17500, 1), (18850, 1), (20250, 1), (21700, 1), (23200, 2),
    (24750, 1), (26350, 1), (28000, 1), (29700, 1), (31450, 1),
    (33250, 1), (35100, 1), (37000, 1), (38950, 1), (40950, 2),
    (43000, 1), (45100, 1), (47250, 1), (49450, 1), (51700, 1),
    (54000, 1), (56350, 1), (58750, 1), (61200, 1), (63700, 3),
)


@dataclass(frozen=True)
class LevelUp:
    old_level: int
    new_level: int
    skill_points_gained: int


@dataclass(frozen=True)
class LevelInfo:
    level: int
    earned: int
    available: int


@dataclass(frozen=True)
class LevelProgress:
    level: int
    xp: int
    xp_for_current: int
    xp_for_next: Optional[int]
    progress_percent: float


def calculate_level(xp: int) -> int:
    xp = int(xp)
    level = 1
    for ix, (required, _points) in enumerate(LEVEL_TABLE):
        if xp >= required:
            level = ix + 1
        else:
            break
    return level


def xp_for_level(level: int) -> int:
    level = max(1, min(MAX_LEVEL, int(level)))
    return LEVEL_TABLE[level - 1][0]


def total_skill_points_for_level(level: int) -> int:
    level = max(1, min(MAX_LEVEL, int(level)))
    return int(sum(points for _xp, points in LEVEL_TABLE[:level]))


def level_progress(xp: int) -> LevelProgress:
    level = calculate_level(xp)
    current = xp_for_level(level)
    if level >= MAX_LEVEL:
        return LevelProgress(level=level, xp=int(xp), xp_for_current=current, xp_for_next=None, progress_percent=100.0)
    nxt = xp_for_level(level + 1)
    pct = (int(xp) - current) / float(nxt - current) * 100.0
    return LevelProgress(level=level, xp=int(xp), xp_for_current=current, xp_for_next=nxt, progress_percent=pct)


def check_level_up(old_xp: int, new_xp: int) -> Optional[LevelUp]:
    old_level = calculate_level(old_xp)
    new_level = calculate_level(new_xp)
    if new_level <= old_level:
        return None
    gained = total_skill_points_for_level(new_level) - total_skill_points_for_level(old_level)
    return LevelUp(old_level=old_level, new_level=new_level, skill_points_gained=gained)


def recalculate_level_and_skill_points(company: Company) -> LevelInfo:
    """Pure derivation from xp, skill_points_spent and bonus_skill_points."""
    level = calculate_level(company.xp)
    earned = total_skill_points_for_level(level) + int(company.bonus_skill_points)
    available = max(0, earned - int(company.skill_points_spent))
    return LevelInfo(level=level, earned=earned, available=available)


def with_derived_progression(company: Company) -> Company:
    info = recalculate_level_and_skill_points(company)
    if info.level == company.level and info.available == company.skill_points:
        return company
    return replace(company, level=info.level, skill_points=info.available)


def grant_xp(company: Company, amount: int, modifiers: Iterable[float] = ()) -> Tuple[Company, Optional[LevelUp]]:
    """Add XP after applying multipliers in order, flooring after each one.

    Non-positive amounts are ignored: xp never goes down through this path.
    """
    gain = int(amount)
    if gain <= 0:
        return company, None
    for m in modifiers:
        gain = int(math.floor(gain * float(m)))
    gain = max(0, gain)
    if gain == 0:
        return company, None

    old_xp = int(company.xp)
    new_xp = old_xp + gain
    level_up = check_level_up(old_xp, new_xp)
    return with_derived_progression(replace(company, xp=new_xp)), level_up


def deduct_xp(company: Company, amount: int) -> Company:
    """Remove XP (loan sacrifice, boss special move). Floors at 0."""
    amount = max(0, int(amount))
    if amount == 0:
        return company
    return with_derived_progression(replace(company, xp=max(0, int(company.xp) - amount)))


def grant_bonus_skill_points(company: Company, points: int) -> Company:
    points = max(0, int(points))
    if points == 0:
        return company
    return with_derived_progression(replace(company, bonus_skill_points=int(company.bonus_skill_points) + points))


def spend_skill_points(
    company: Company,
    skill_id: str,
    levels: int,
    max_level: int,
) -> Tuple[Company, Optional[Rejection]]:
    """Player-initiated purchase. The only path that grows skill_points_spent."""
    if not company.alive:
        return company, dead_company()
    levels = int(levels)
    if levels <= 0:
        return company, reject(INVALID_AMOUNT, "Spend at least one skill point.", levels=levels)

    info = recalculate_level_and_skill_points(company)
    if levels > info.available:
        return company, reject(
            INSUFFICIENT_SKILL_POINTS,
            "Not enough skill points.",
            requested=levels,
            available=info.available,
        )

    current = int(company.skills.get(skill_id, 0))
    if current + levels > int(max_level):
        return company, reject(
            SKILL_MAXED,
            "Skill would exceed its max level.",
            skill_id=skill_id,
            current=current,
            max_level=int(max_level),
        )

    skills = dict(company.skills)
    skills[skill_id] = current + levels
    updated = replace(company, skills=skills, skill_points_spent=int(company.skill_points_spent) + levels)
    return with_derived_progression(updated), None
