from __future__ import annotations

import random
from dataclasses import replace

import pytest

from core.errors import (
    BATTLE_NOT_ACTIVE,
    COMPANY_DEAD,
    INSUFFICIENT_CASH,
    INSUFFICIENT_XP,
    MISSING_COST,
    UNKNOWN_MOVE,
)
from core.state import Company
from engine.boss import (
    PATTERN_LENGTH,
    BossBattle,
    battle_from_mapping,
    boss_template_for,
    execute_boss_action,
    expire_battle,
    get_or_create_boss_battle,
    player_health,
)

SABOTAGES = {"techgiant_api_lockout", "techgiant_acquisition_threat"}


def _make_company(**overrides) -> Company:
    base = dict(
        company_id="c1",
        name="Test Co",
        difficulty="normal",
        day=45,
        cash=20_000.0,
        users=500,
        quality=50.0,
        hype=50.0,
    )
    base.update(overrides)
    return Company(**base)


def _marketing_battle(health: int = 150) -> BossBattle:
    return BossBattle(
        battle_id="boss-c1-45",
        company_id="c1",
        boss_id="normal_saas",
        boss_name="TechGiant Corp",
        boss_health=health,
        max_health=150,
        attack_pattern=("techgiant_massive_marketing",) * PATTERN_LENGTH,
    )


def test_battle_opens_on_boss_day(content) -> None:
    battle = get_or_create_boss_battle(_make_company(), None, content, random.Random(3))
    assert battle is not None
    assert battle.boss_name == "TechGiant Corp"
    assert battle.boss_health == battle.max_health == 150
    assert battle.current_turn == 1
    assert len(battle.attack_pattern) == PATTERN_LENGTH
    for i, move_id in enumerate(battle.attack_pattern):
        if i % 3 == 0:
            assert move_id in SABOTAGES
        else:
            assert move_id == "techgiant_massive_marketing"


def test_battle_lifecycle_gates(content) -> None:
    assert get_or_create_boss_battle(_make_company(day=44), None, content, random.Random(1)) is None
    active = _marketing_battle()
    assert get_or_create_boss_battle(_make_company(), active, content, random.Random(1)) is active
    lost = replace(active, status="lost")
    assert get_or_create_boss_battle(_make_company(), lost, content, random.Random(1)) is None


def test_template_lookup_falls_back(content) -> None:
    assert boss_template_for(_make_company(company_type="consumer"), content).template_id == "normal_saas"
    assert boss_template_for(_make_company(difficulty="hard"), content).name == "The Black Hole"


def test_player_health() -> None:
    assert player_health(_make_company()) == 70


def test_attack_scenario(content) -> None:
    battle = get_or_create_boss_battle(_make_company(), None, content, random.Random(3))
    turn = execute_boss_action(_make_company(), battle, "attack", content)
    assert turn.ok
    assert turn.damage_dealt == 20
    assert turn.battle.boss_health == 130
    assert turn.boss_move is not None
    assert turn.battle.last_boss_move == battle.attack_pattern[0]
    assert turn.battle.current_turn == 2
    assert turn.company.alive


def test_defend_halves_the_counter_move(content) -> None:
    turn = execute_boss_action(_make_company(), _marketing_battle(), "defend", content)
    assert turn.damage_dealt == 5
    assert turn.battle.boss_health == 145
    assert turn.battle.defending
    assert turn.company.cash == pytest.approx(18_700.0)
    assert turn.company.users == 475
    assert turn.company.hype == pytest.approx(42.5)
    assert turn.damage_taken == 12


def test_win_grants_rewards_once(content) -> None:
    turn = execute_boss_action(_make_company(), _marketing_battle(health=10), "attack", content)
    assert turn.battle.status == "won"
    assert turn.battle.rewards["cash"] == 50_000
    company = turn.company
    assert company.alive
    assert company.outcome == "boss_defeated"
    assert company.cash == pytest.approx(69_500.0)
    assert company.quality == 60.0
    assert company.bonus_skill_points == 5
    assert company.skill_points == 5
    assert company.investors == ["Black Hole Ventures", "Strategic Capital Partners"]

    again = execute_boss_action(company, turn.battle, "attack", content)
    assert again.rejection.code == BATTLE_NOT_ACTIVE
    assert again.company == company


def test_hard_mode_reward_bonus(content) -> None:
    turn = execute_boss_action(_make_company(difficulty="hard"), _marketing_battle(health=1), "attack", content)
    assert turn.battle.rewards["cash"] == 75_000


def test_negative_cash_loses_the_battle(content) -> None:
    c = _make_company(cash=600.0, users=100)
    turn = execute_boss_action(c, _marketing_battle(), "attack", content)
    assert turn.battle.status == "lost"
    assert not turn.company.alive
    assert turn.company.outcome == "bankrupt"
    assert turn.company.cash == pytest.approx(-1_900.0)


def test_wiped_out_users_lose_the_battle(content) -> None:
    turn = execute_boss_action(_make_company(users=40), _marketing_battle(), "attack", content)
    assert turn.battle.status == "lost"
    assert not turn.company.alive


def test_special_moves(content) -> None:
    xp_turn = execute_boss_action(_make_company(xp=100), _marketing_battle(), "special", content, cost={"xp": 50})
    assert xp_turn.damage_dealt == 40
    assert xp_turn.company.xp == 50

    cash_turn = execute_boss_action(_make_company(), _marketing_battle(), "special", content, cost={"cash": 1_000})
    assert cash_turn.damage_dealt == 30
    assert cash_turn.battle.boss_health == 120


def test_special_move_rejections(content) -> None:
    battle = _marketing_battle()
    c = _make_company(xp=10, cash=500.0)
    assert execute_boss_action(c, battle, "special", content, cost={"xp": 50}).rejection.code == INSUFFICIENT_XP
    assert execute_boss_action(c, battle, "special", content, cost={"cash": 1_000}).rejection.code == INSUFFICIENT_CASH
    assert execute_boss_action(c, battle, "special", content).rejection.code == MISSING_COST
    assert execute_boss_action(c, battle, "flee", content).rejection.code == UNKNOWN_MOVE
    assert execute_boss_action(replace(c, alive=False), battle, "attack", content).rejection.code == COMPANY_DEAD
    assert execute_boss_action(c, None, "attack", content).rejection.code == BATTLE_NOT_ACTIVE


def test_expire_and_mapping(content) -> None:
    battle = _marketing_battle()
    expired = expire_battle(battle)
    assert expired.status == "expired"
    assert expire_battle(expired) is expired
    assert battle_from_mapping(battle.to_dict()) == battle
