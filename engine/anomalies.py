"""engine.anomalies

Anomaly selection: unscheduled perturbations rolled at most once per day.

Weighted lottery (base 1.0):
- x1.5 when the anomaly's triggers mention the company type
- x1.5 when they match flags left by yesterday's choices
- x0.3 when its cash hit would push cash below zero

Flags become advisory day modifiers; event resolution reads them.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

from content.repository import ContentRepository
from content.schemas import ACTION_CATEGORIES, AnomalyDef
from core.rng import weighted_choice
from core.state import AnomalyLogEntry, Company, DailyAction, DayModifiers, OutcomeBonus

from .modifiers import apply_outcome

TYPE_MATCH_WEIGHT = 1.5
FLAG_MATCH_WEIGHT = 1.5
FATAL_CASH_WEIGHT = 0.3

MODIFY_PREFIX = "modify_"
CRITICAL_SUCCESS_BONUS = 0.2
SUCCESS_BONUS = 0.15


@dataclass(frozen=True)
class AnomalyFlags:
    outcome_bonuses: Dict[str, OutcomeBonus] = field(default_factory=dict)
    locked_categories: Tuple[str, ...] = ()
    spawns_special_event: bool = False


@dataclass(frozen=True)
class Activation:
    anomaly: AnomalyDef
    day: int
    flags: AnomalyFlags

    def to_dict(self) -> Dict[str, object]:
        return {
            "anomaly_id": self.anomaly.anomaly_id,
            "name": self.anomaly.name,
            "day": int(self.day),
            "effects": self.anomaly.effects.to_dict(),
            "locked_categories": list(self.flags.locked_categories),
            "boosted_categories": sorted(self.flags.outcome_bonuses.keys()),
            "special_event": bool(self.flags.spawns_special_event),
        }


def anomaly_weight(anomaly: AnomalyDef, company: Company) -> float:
    weight = 1.0
    triggers = set(anomaly.triggers)
    if company.company_type.lower() in triggers:
        weight *= TYPE_MATCH_WEIGHT
    if triggers & {f.lower() for f in company.recent_flags}:
        weight *= FLAG_MATCH_WEIGHT
    cash_delta = anomaly.effects.cash
    if cash_delta is not None and cash_delta < 0 and float(company.cash) + float(cash_delta) < 0:
        weight *= FATAL_CASH_WEIGHT
    return weight


def select_anomaly(company: Company, content: ContentRepository, rng: random.Random) -> Optional[AnomalyDef]:
    pool = sorted(content.anomalies.values(), key=lambda a: a.anomaly_id)
    if not pool:
        return None
    return weighted_choice(pool, [anomaly_weight(a, company) for a in pool], rng)


def parse_anomaly_flags(
    flags: Sequence[str], daily_actions: Sequence[DailyAction], rng: random.Random
) -> AnomalyFlags:
    bonuses: Dict[str, OutcomeBonus] = {}
    locked: List[str] = []
    special = False

    for flag in flags:
        f = str(flag).strip().lower()
        if f.startswith(MODIFY_PREFIX) and f[len(MODIFY_PREFIX):] in ACTION_CATEGORIES:
            bonuses[f[len(MODIFY_PREFIX):]] = OutcomeBonus(
                critical_success_bonus=CRITICAL_SUCCESS_BONUS,
                success_bonus=SUCCESS_BONUS,
            )
        elif f == "lock_action":
            candidates = sorted({a.category for a in daily_actions} - set(locked)) or sorted(set(ACTION_CATEGORIES) - set(locked))
            if candidates:
                locked.append(candidates[rng.randrange(len(candidates))])
        elif f == "special_event":
            special = True

    return AnomalyFlags(outcome_bonuses=bonuses, locked_categories=tuple(locked), spawns_special_event=special)


def roll_daily_anomalies(
    company: Company, content: ContentRepository, rng: random.Random, chance: float
) -> List[Activation]:
    """At most one activation per day."""
    if not company.alive or rng.random() >= float(chance):
        return []
    anomaly = select_anomaly(company, content, rng)
    if anomaly is None:
        return []
    flags = parse_anomaly_flags(anomaly.flags, company.daily_actions, rng)
    return [Activation(anomaly=anomaly, day=int(company.day), flags=flags)]


def roll_contextual_anomaly(
    company: Company,
    content: ContentRepository,
    rng: random.Random,
    triggers: Sequence[str],
    chance: float,
) -> Optional[Activation]:
    """Uniform pick among anomalies whose triggers overlap `triggers` (all when none do)."""
    if not company.alive or rng.random() >= float(chance):
        return None
    wanted = {t.lower() for t in triggers}
    pool = sorted(content.anomalies.values(), key=lambda a: a.anomaly_id)
    matching = [a for a in pool if wanted & set(a.triggers)] or pool
    if not matching:
        return None
    anomaly = matching[rng.randrange(len(matching))]
    flags = parse_anomaly_flags(anomaly.flags, company.daily_actions, rng)
    return Activation(anomaly=anomaly, day=int(company.day), flags=flags)


def _merge_modifiers(mods: DayModifiers, flags: AnomalyFlags) -> DayModifiers:
    bonuses = dict(mods.outcome_bonuses)
    bonuses.update(flags.outcome_bonuses)
    locked = tuple(dict.fromkeys([*mods.locked_categories, *flags.locked_categories]))
    return DayModifiers(
        locked_categories=locked,
        outcome_bonuses=bonuses,
        special_event_queued=bool(mods.special_event_queued or flags.spawns_special_event),
    )


def apply_activation(company: Company, activation: Activation, content: ContentRepository) -> Company:
    """Ledger-apply the anomaly bundle, merge its modifiers and log it."""
    if not company.alive:
        return company
    updated, _level_up = apply_outcome(company, activation.anomaly.effects, content)
    entry = AnomalyLogEntry(
        company_id=company.company_id,
        anomaly_id=activation.anomaly.anomaly_id,
        day=int(activation.day),
        effects=activation.anomaly.effects.to_dict(),
    )
    return replace(
        updated,
        day_modifiers=_merge_modifiers(updated.day_modifiers, activation.flags),
        anomaly_log=[*updated.anomaly_log, entry],
    )
