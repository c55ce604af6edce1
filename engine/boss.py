"""engine.boss

Checkpoint boss encounter.

- one battle per run, opened on the boss day
- turn = player move, win check, then the boss plays its fixed pattern
- boss moves hit the company unclamped (cash can go negative: that is a loss)
- rewards are granted once, on the winning turn
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from content.repository import ContentRepository
from content.schemas import BossMove, BossTemplate
from core.errors import (
    BATTLE_NOT_ACTIVE,
    INSUFFICIENT_CASH,
    INSUFFICIENT_XP,
    MISSING_COST,
    UNKNOWN_MOVE,
    Rejection,
    dead_company,
    reject,
)
from core.effects import apply_effects, scale_negative_effects
from core.progression import deduct_xp, grant_bonus_skill_points
from core.state import Company, Effects

from .loans import default_active_loans

BOSS_DAY = 45
PATTERN_LENGTH = 10
FALLBACK_TEMPLATE = "normal_saas"

PLAYER_MOVES = ("attack", "defend", "special")
ATTACK_COST = 500
DEFEND_COST = 300
DEFEND_COUNTER_DAMAGE = 5
DEFEND_FACTOR = 0.5

REWARD_CASH = 50_000
HARD_REWARD_BONUS = 25_000
REWARD_INVESTORS = ("Black Hole Ventures", "Strategic Capital Partners")
REWARD_QUALITY = 10
REWARD_SKILL_POINTS = 5


@dataclass(frozen=True)
class BossBattle:
    battle_id: str
    company_id: str
    boss_id: str
    boss_name: str
    boss_health: int
    max_health: int
    current_turn: int = 1
    status: str = "active"  # active|won|lost|expired
    attack_pattern: Tuple[str, ...] = ()
    last_player_move: Optional[str] = None
    last_boss_move: Optional[str] = None
    defending: bool = False
    rewards: Dict[str, Any] = field(default_factory=dict)

    @property
    def active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "battle_id": self.battle_id,
            "company_id": self.company_id,
            "boss_id": self.boss_id,
            "boss_name": self.boss_name,
            "boss_health": int(self.boss_health),
            "max_health": int(self.max_health),
            "current_turn": int(self.current_turn),
            "status": self.status,
            "attack_pattern": list(self.attack_pattern),
            "last_player_move": self.last_player_move,
            "last_boss_move": self.last_boss_move,
            "defending": bool(self.defending),
            "rewards": dict(self.rewards),
        }


def battle_from_mapping(d: Dict[str, Any]) -> BossBattle:
    return BossBattle(
        battle_id=str(d["battle_id"]),
        company_id=str(d["company_id"]),
        boss_id=str(d["boss_id"]),
        boss_name=str(d["boss_name"]),
        boss_health=int(d["boss_health"]),
        max_health=int(d["max_health"]),
        current_turn=int(d.get("current_turn", 1)),
        status=str(d.get("status", "active")),
        attack_pattern=tuple(str(x) for x in (d.get("attack_pattern") or [])),
        last_player_move=d.get("last_player_move"),
        last_boss_move=d.get("last_boss_move"),
        defending=bool(d.get("defending", False)),
        rewards=dict(d.get("rewards") or {}),
    )


@dataclass(frozen=True)
class BossTurn:
    company: Company
    battle: Optional[BossBattle]
    message: str = ""
    damage_dealt: int = 0
    damage_taken: int = 0
    boss_move: Optional[BossMove] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


def player_health(company: Company) -> int:
    return int(math.floor(float(company.cash) / 1000.0)) + int(math.floor(int(company.users) / 10.0))


def boss_template_for(company: Company, content: ContentRepository) -> Optional[BossTemplate]:
    key = f"{company.difficulty}_{company.company_type}"
    return content.boss(key) or content.boss(FALLBACK_TEMPLATE)


def generate_attack_pattern(template: BossTemplate, rng: random.Random) -> Tuple[str, ...]:
    """Every third slot (from the first) is a sabotage when the boss has any."""
    attacks = template.moves_of("attack")
    sabotages = template.moves_of("sabotage")
    pattern: List[str] = []
    for i in range(PATTERN_LENGTH):
        pool = sabotages if (i % 3 == 0 and sabotages) else attacks
        pattern.append(pool[rng.randrange(len(pool))].move_id)
    return tuple(pattern)


def get_or_create_boss_battle(
    company: Company,
    existing: Optional[BossBattle],
    content: ContentRepository,
    rng: random.Random,
    boss_day: int = BOSS_DAY,
) -> Optional[BossBattle]:
    """The running battle, a fresh one on the boss day, or None.

    A run gets a single battle: once one exists (won, lost or expired) no
    new one is opened.
    """
    if existing is not None:
        return existing if existing.active else None
    if not company.alive or int(company.day) != int(boss_day):
        return None

    template = boss_template_for(company, content)
    if template is None:
        return None
    return BossBattle(
        battle_id=f"boss-{company.company_id}-{int(company.day)}",
        company_id=company.company_id,
        boss_id=template.template_id,
        boss_name=template.name,
        boss_health=int(template.max_health),
        max_health=int(template.max_health),
        attack_pattern=generate_attack_pattern(template, rng),
    )


def expire_battle(battle: BossBattle) -> BossBattle:
    """Turn timeout: an active battle ends without a winner."""
    if not battle.active:
        return battle
    return replace(battle, status="expired")


# -------------------------
# Turn resolution
# -------------------------


def _player_move(
    company: Company, move_type: str, cost: Optional[Dict[str, int]]
) -> Tuple[Company, int, Optional[Rejection]]:
    """Pay for the move. Returns (company, damage, rejection)."""
    quality = float(company.quality)

    if move_type == "attack":
        paid, _ = apply_effects(company, Effects(cash=-ATTACK_COST))
        return paid, 15 + int(math.floor(quality / 10.0)), None

    if move_type == "defend":
        paid, _ = apply_effects(company, Effects(cash=-DEFEND_COST))
        return paid, DEFEND_COUNTER_DAMAGE, None

    xp_cost = int((cost or {}).get("xp") or 0)
    cash_cost = int((cost or {}).get("cash") or 0)
    if xp_cost > 0:
        if int(company.xp) < xp_cost:
            return company, 0, reject(INSUFFICIENT_XP, "Not enough XP.", required=xp_cost, available=int(company.xp))
        return deduct_xp(company, xp_cost), 30 + int(math.floor(quality / 5.0)), None
    if cash_cost > 0:
        if float(company.cash) < cash_cost:
            return company, 0, reject(
                INSUFFICIENT_CASH, "Not enough cash.", required=cash_cost, available=float(company.cash)
            )
        paid, _ = apply_effects(company, Effects(cash=-cash_cost))
        return paid, 25 + int(math.floor(int(company.users) / 100.0)), None
    return company, 0, reject(MISSING_COST, "A special move needs an XP or cash cost.")


def _boss_damage(effects: Effects) -> int:
    damage = 0.0
    if effects.cash is not None and effects.cash < 0:
        damage += abs(float(effects.cash)) / 100.0
    if effects.users is not None and effects.users < 0:
        damage += abs(int(effects.users)) / 10.0
    return int(math.floor(damage))


def _grant_rewards(company: Company) -> Tuple[Company, Dict[str, Any]]:
    cash = REWARD_CASH + (HARD_REWARD_BONUS if company.difficulty == "hard" else 0)
    rewards = {
        "cash": cash,
        "investors": list(REWARD_INVESTORS),
        "quality": REWARD_QUALITY,
        "skill_points": REWARD_SKILL_POINTS,
    }
    updated, _ = apply_effects(company, Effects(cash=float(cash), quality=float(REWARD_QUALITY)))
    updated = grant_bonus_skill_points(updated, REWARD_SKILL_POINTS)
    updated = replace(
        updated,
        investors=[*updated.investors, *REWARD_INVESTORS],
        outcome="boss_defeated",
    )
    return updated, rewards


def execute_boss_action(
    company: Company,
    battle: Optional[BossBattle],
    move_type: str,
    content: ContentRepository,
    cost: Optional[Dict[str, int]] = None,
) -> BossTurn:
    """One battle turn. `cost` is {"xp": n} or {"cash": n} for a special move."""
    if battle is None or not battle.active:
        return BossTurn(company, battle, rejection=reject(BATTLE_NOT_ACTIVE, "No active boss battle."))
    if not company.alive:
        return BossTurn(company, battle, rejection=dead_company())
    if move_type not in PLAYER_MOVES:
        return BossTurn(company, battle, rejection=reject(UNKNOWN_MOVE, "Unknown move.", move=move_type))

    updated, dealt, rejection = _player_move(company, move_type, cost)
    if rejection is not None:
        return BossTurn(company, battle, rejection=rejection)

    fight = replace(
        battle,
        boss_health=max(0, int(battle.boss_health) - dealt),
        last_player_move=move_type,
        defending=(move_type == "defend"),
    )

    if fight.boss_health <= 0:
        updated, rewards = _grant_rewards(updated)
        fight = replace(fight, status="won", rewards=rewards)
        return BossTurn(
            updated,
            fight,
            message=f"Your {move_type} dealt {dealt} damage! {fight.boss_name} is defeated!",
            damage_dealt=dealt,
        )

    template = content.boss(fight.boss_id)
    move: Optional[BossMove] = None
    if template is not None and fight.attack_pattern:
        move_id = fight.attack_pattern[(int(fight.current_turn) - 1) % len(fight.attack_pattern)]
        move = template.move(move_id) or template.moves[0]

    taken = 0
    raw_users = int(updated.users)
    if move is not None:
        hit = scale_negative_effects(move.effects, DEFEND_FACTOR) if fight.defending else move.effects
        taken = _boss_damage(hit)
        raw_users = int(updated.users) + int(hit.users or 0)
        updated, _ = apply_effects(updated, hit, cash_floor=None)
        fight = replace(fight, last_boss_move=move.move_id)

    if float(updated.cash) < 0 or raw_users <= 0:
        updated = default_active_loans(replace(updated, alive=False, outcome="bankrupt"))
        fight = replace(fight, status="lost")
    else:
        fight = replace(fight, current_turn=int(fight.current_turn) + 1)

    message = f"Your {move_type} dealt {dealt} damage!"
    if move is not None:
        message += f"\n\n{move.name}: {move.description}\nYou took {taken} damage."
    return BossTurn(updated, fight, message=message, damage_dealt=dealt, damage_taken=taken, boss_move=move)
