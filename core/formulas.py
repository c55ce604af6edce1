"""
core.formulas
Daily economy math: revenue, burn, retention/churn, hype, virality, bankruptcy.

All functions are pure. The daily tick composes them; tests call them directly.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional

from .modes import DifficultyConfig
from .state import MAX_STAT, MIN_USERS, clamp

HYPE_DECAY = 0.95
VIRALITY_DECAY = 0.97
MAX_COST_REDUCTION = 0.75
BANKRUPTCY_USER_FLOOR = 5
RUNWAY_DAYS = 7
SEVERE_LOSS_FACTOR = 1.5


@dataclass(frozen=True)
class SkillMultipliers:
    """Aggregated skill (and role) bonuses. Neutral defaults."""
    revenue_multiplier: float = 1.0
    virality_bonus: float = 0.0
    conversion_bonus: float = 0.0
    cost_reduction: float = 0.0
    event_outcome_bonus: float = 0.0
    quality_gain_bonus: float = 0.0
    hype_bonus: float = 0.0
    burn_reduction: float = 0.0
    outage_reduction: float = 0.0


@dataclass(frozen=True)
class HypeBonus:
    user_acquisition: float
    retention: float


@dataclass(frozen=True)
class ViralGrowth:
    triggered: bool
    new_users: int = 0
    hype_gain: float = 0.0


def revenue_per_user(quality: float) -> float:
    """$0.20 at quality 0 up to $0.60 at quality 100."""
    return 0.20 + (float(quality) / 100.0) * 0.40


def daily_revenue(
    users: int,
    quality: float,
    multipliers: SkillMultipliers = SkillMultipliers(),
    loan_multiplier: Optional[float] = None,
) -> float:
    rev = float(users) * revenue_per_user(quality) * float(multipliers.revenue_multiplier)
    if loan_multiplier is not None:
        rev *= float(loan_multiplier)
    return rev


def retention(quality: float, difficulty: DifficultyConfig) -> float:
    base = 0.70 + (float(quality) / 100.0) * 0.25 + float(difficulty.retention_bonus)
    return clamp(base, 0.50, 0.98)


def churn(quality: float, difficulty: DifficultyConfig) -> float:
    return max(0.0, 1.0 - retention(quality, difficulty) + float(difficulty.churn_penalty))


def users_after_churn(users: int, churn_rate: float) -> int:
    lost = int(math.floor(int(users) * float(churn_rate)))
    return max(MIN_USERS, int(users) - lost)


def hype_bonus(hype: float) -> HypeBonus:
    h = float(hype) / 100.0
    return HypeBonus(user_acquisition=h * 0.15, retention=h * 0.05)


def hype_retained_users(users: int, hype: float) -> int:
    """Extra users kept thanks to hype (floor of users * retention bonus)."""
    return int(math.floor(int(users) * hype_bonus(hype).retention))


def decay_hype(hype: float) -> float:
    return clamp(float(hype) * HYPE_DECAY, 0.0, MAX_STAT)


def decay_virality(virality: float) -> float:
    return clamp(float(virality) * VIRALITY_DECAY, 0.0, MAX_STAT)


def viral_growth_threshold(hype_bonus_value: float) -> float:
    return max(20.0, 30.0 - float(hype_bonus_value) * 10.0)


def roll_viral_growth(users: int, hype: float, multipliers: SkillMultipliers, rng: random.Random) -> ViralGrowth:
    """Roll the day's viral-growth event.

    No roll at all below the (skill-lowered) hype threshold.
    """
    hb = float(multipliers.hype_bonus)
    if float(hype) < viral_growth_threshold(hb):
        return ViralGrowth(triggered=False)

    chance = (float(hype) / 100.0) * (1.0 + float(multipliers.virality_bonus) + hb)
    if rng.random() >= chance:
        return ViralGrowth(triggered=False)

    growth_multiplier = (float(hype) / 50.0) * (1.0 + hb)
    new_users = int(math.floor(int(users) * 0.12 * growth_multiplier))
    hype_gain = min(10.0, growth_multiplier * 2.0 * (1.0 + hb))
    return ViralGrowth(triggered=True, new_users=new_users, hype_gain=hype_gain)


def growth_rate(previous_users: int, current_users: int) -> float:
    """Day-over-day user growth in percent."""
    if int(previous_users) <= 0:
        return 0.0
    return (int(current_users) - int(previous_users)) / float(previous_users) * 100.0


def virality_from_stats(current: float, hype: float, growth: float, users: int) -> float:
    v = float(current)
    if hype > 50:
        v += (float(hype) - 50.0) / 50.0 * 0.5
    if growth > 0:
        v += min(float(growth) * 0.1, 2.0)
    if users > 1000:
        v += min((int(users) - 1000) / 10000.0, 1.0) * 0.3
    return decay_virality(v)


def daily_burn(users: int, difficulty: DifficultyConfig, multipliers: SkillMultipliers = SkillMultipliers()) -> float:
    reduction = min(MAX_COST_REDUCTION, max(0.0, float(multipliers.cost_reduction) + float(multipliers.burn_reduction)))
    return (100.0 + int(users) * 0.08) * float(difficulty.burn_multiplier) * (1.0 - reduction)


def is_bankrupt(cash: float, users: int, burn: float, difficulty: DifficultyConfig, has_lifeline: bool) -> bool:
    if int(users) < BANKRUPTCY_USER_FLOOR:
        return True
    if float(cash) >= 0:
        return False

    initial = float(difficulty.initial_cash)
    runway_gone = abs(float(cash)) >= float(burn) * RUNWAY_DAYS
    severe = float(cash) <= -initial * SEVERE_LOSS_FACTOR

    if has_lifeline:
        return severe or (runway_gone and float(cash) < -initial)
    return runway_gone or severe
