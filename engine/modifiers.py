"""engine.modifiers

Role and broadcast modifiers.

- roles: XP multiplier, event outcome bonus, per-tree skill bonuses
- broadcasts: time-boxed windows with per-category XP / odds / virality
  boosts and a chance to spawn free special events
"""

from __future__ import annotations

import random
from dataclasses import replace
from typing import Dict, Optional, Tuple

from content.repository import ContentRepository
from content.schemas import NEUTRAL_BROADCAST_EFFECT, BroadcastDef, BroadcastEffect, EventDef
from core.effects import apply_effects
from core.modes import get_difficulty
from core.progression import LevelUp
from core.state import Company, Effects

BROADCAST_START_DAY = 3
BROADCAST_DURATION = 10

CATEGORY_TREE: Dict[str, str] = {
    "product": "product",
    "marketing": "marketing",
    "finance": "finance",
    "tech": "technology",
    "technology": "technology",
    "research": "technology",
    "business_dev": "marketing",
    "operations": "finance",
    "high_risk": "product",
}


def category_tree(category: str) -> str:
    return CATEGORY_TREE.get(category, "product")


def category_effectiveness(company: Company, content: ContentRepository, category: str) -> float:
    """Role strength in an action category (1.0 without a role)."""
    role = content.role(company.role)
    if role is None:
        return 1.0
    return float(role.tree_bonus(category_tree(category)))


# -------------------------
# Broadcasts
# -------------------------


def is_broadcast_active(company: Company, duration: int = BROADCAST_DURATION) -> bool:
    if not company.broadcast_id or company.broadcast_start_day is None:
        return False
    elapsed = int(company.day) - int(company.broadcast_start_day)
    return 0 <= elapsed < int(duration)


def broadcast_days_remaining(company: Company, duration: int = BROADCAST_DURATION) -> int:
    if not is_broadcast_active(company, duration):
        return 0
    return int(duration) - (int(company.day) - int(company.broadcast_start_day or 0))


def active_broadcast(
    company: Company, content: ContentRepository, duration: int = BROADCAST_DURATION
) -> Optional[BroadcastDef]:
    if not is_broadcast_active(company, duration):
        return None
    return content.broadcast(company.broadcast_id)


def check_and_start_broadcast(
    company: Company,
    content: ContentRepository,
    rng: random.Random,
    *,
    start_day: int = BROADCAST_START_DAY,
    duration: int = BROADCAST_DURATION,
) -> Tuple[Company, Optional[BroadcastDef]]:
    """Open a new broadcast window from `start_day` on whenever none is running.

    Returns (company, started_broadcast_or_None).
    """
    if not company.alive or int(company.day) < int(start_day):
        return company, None
    if is_broadcast_active(company, duration):
        return company, None
    if not content.broadcasts:
        return company, None

    ids = sorted(content.broadcasts.keys())
    picked = content.broadcasts[ids[rng.randrange(len(ids))]]
    return replace(company, broadcast_id=picked.broadcast_id, broadcast_start_day=int(company.day)), picked


def broadcast_effect(
    company: Company,
    content: ContentRepository,
    category: Optional[str],
    duration: int = BROADCAST_DURATION,
) -> BroadcastEffect:
    bc = active_broadcast(company, content, duration)
    if bc is None:
        return NEUTRAL_BROADCAST_EFFECT
    return bc.effect_for(category)


def should_spawn_special_event(
    company: Company, content: ContentRepository, rng: random.Random, duration: int = BROADCAST_DURATION
) -> bool:
    bc = active_broadcast(company, content, duration)
    if bc is None:
        return False
    return rng.random() < float(bc.special_event_chance)


def pick_special_event(
    company: Company, content: ContentRepository, rng: random.Random, duration: int = BROADCAST_DURATION
) -> Optional[EventDef]:
    """Prefer special events themed on the running broadcast; fall back to any."""
    if not content.special_events:
        return None
    pool = sorted(content.special_events.values(), key=lambda e: e.event_id)
    bc = active_broadcast(company, content, duration)
    if bc is not None:
        themed = [e for e in pool if e.category in bc.effects and e.category != "general"]
        if themed:
            pool = themed
    return pool[rng.randrange(len(pool))]


# -------------------------
# XP and odds modifiers
# -------------------------


def xp_modifiers(
    company: Company,
    content: ContentRepository,
    category: Optional[str] = None,
    duration: int = BROADCAST_DURATION,
) -> Tuple[float, ...]:
    """Multipliers for grant_xp, in order: role first, then broadcast."""
    mods = []
    role = content.role(company.role)
    if role is not None:
        mods.append(float(role.xp_multiplier))
    if is_broadcast_active(company, duration):
        mods.append(float(broadcast_effect(company, content, category, duration).xp_multiplier))
    return tuple(mods)


def outcome_bias(
    company: Company,
    content: ContentRepository,
    category: str,
    event_outcome_bonus: float = 0.0,
    duration: int = BROADCAST_DURATION,
) -> float:
    """Total nudge toward good outcomes for an auto-chooser.

    Sums the difficulty bias, the role bonus (scaled by category
    effectiveness), the skill bonus, broadcast odds and anomaly odds.
    """
    bias = float(get_difficulty(company.difficulty).positive_event_bias)
    role = content.role(company.role)
    if role is not None:
        bias += float(role.event_outcome_bonus) * category_effectiveness(company, content, category)
    bias += float(event_outcome_bonus)
    bias += float(broadcast_effect(company, content, category, duration).success_rate_bonus)
    anomaly_bonus = company.day_modifiers.outcome_bonuses.get(category)
    if anomaly_bonus is not None:
        bias += float(anomaly_bonus.success_bonus) + float(anomaly_bonus.critical_success_bonus)
    return bias


# -------------------------
# Ledger entry point with modifiers
# -------------------------


def apply_outcome(
    company: Company,
    effects: Effects,
    content: ContentRepository,
    category: Optional[str] = None,
    *,
    duration: int = BROADCAST_DURATION,
) -> Tuple[Company, Optional[LevelUp]]:
    """Apply a discrete effect bundle (event choice, anomaly, reward).

    Cash is floor-clamped at 0; XP gets the role/broadcast multipliers;
    skill grants are capped at each skill's max level.
    """
    return apply_effects(
        company,
        effects,
        xp_modifiers=xp_modifiers(company, content, category, duration),
        skill_caps=content.skill_caps(),
    )
