from __future__ import annotations

from dataclasses import replace

from core.errors import INSUFFICIENT_SKILL_POINTS, INVALID_AMOUNT, SKILL_MAXED
from core.progression import (
    MAX_LEVEL,
    calculate_level,
    check_level_up,
    deduct_xp,
    grant_bonus_skill_points,
    grant_xp,
    level_progress,
    recalculate_level_and_skill_points,
    spend_skill_points,
    total_skill_points_for_level,
    with_derived_progression,
    xp_for_level,
)
from core.state import Company


def _make_company(**overrides) -> Company:
    c = Company(company_id="c1", name="Test Co", difficulty="normal", cash=10_000.0)
    return with_derived_progression(replace(c, **overrides))


def test_level_table_boundaries() -> None:
    assert calculate_level(0) == 1
    assert calculate_level(99) == 1
    assert calculate_level(100) == 2
    assert calculate_level(249) == 2
    assert calculate_level(250) == 3
    assert calculate_level(10**9) == MAX_LEVEL


def test_level_is_monotonic_in_xp() -> None:
    levels = [calculate_level(xp) for xp in range(0, 70_000, 37)]
    assert levels == sorted(levels)


def test_total_skill_points_accumulate() -> None:
    assert total_skill_points_for_level(1) == 0
    assert total_skill_points_for_level(5) == 4
    assert total_skill_points_for_level(10) == 10


def test_level_progress_midway() -> None:
    p = level_progress(175)
    assert p.level == 2
    assert p.xp_for_current == 100
    assert p.xp_for_next == 250
    assert abs(p.progress_percent - 50.0) < 1e-9

    top = level_progress(xp_for_level(MAX_LEVEL))
    assert top.xp_for_next is None
    assert top.progress_percent == 100.0


def test_check_level_up_reports_gained_points() -> None:
    assert check_level_up(0, 99) is None
    lu = check_level_up(0, 700)
    assert lu is not None
    assert (lu.old_level, lu.new_level, lu.skill_points_gained) == (1, 5, 4)


def test_grant_xp_applies_modifiers_with_floor() -> None:
    c = _make_company()
    updated, level_up = grant_xp(c, 100, (1.15,))
    assert updated.xp == 114
    assert updated.level == 2
    assert updated.skill_points == 1
    assert level_up is not None and level_up.new_level == 2


def test_grant_xp_ignores_non_positive_amounts() -> None:
    c = _make_company(xp=300)
    for amount in (0, -50):
        updated, level_up = grant_xp(c, amount)
        assert updated == c
        assert level_up is None


def test_deduct_xp_floors_at_zero_and_lowers_level() -> None:
    c = _make_company(xp=300)
    assert c.level == 3
    dropped = deduct_xp(c, 1_000)
    assert dropped.xp == 0
    assert dropped.level == 1
    assert dropped.skill_points == 0


def test_spend_scenario_level_five_with_two_spent() -> None:
    c = _make_company(xp=700, skill_points_spent=2, skills={"product_engineering": 2})
    assert c.level == 5
    assert recalculate_level_and_skill_points(c).available == 2

    same, rejection = spend_skill_points(c, "product_engineering", 3, max_level=5)
    assert rejection is not None and rejection.code == INSUFFICIENT_SKILL_POINTS
    assert rejection.details == {"requested": 3, "available": 2}
    assert same == c

    spent, rejection = spend_skill_points(c, "product_engineering", 2, max_level=5)
    assert rejection is None
    assert spent.skill_points_spent == 4
    assert spent.skill_points == 0
    assert spent.skills["product_engineering"] == 4


def test_spend_rejects_maxed_skill_and_bad_amount() -> None:
    c = _make_company(xp=700, skills={"marketing_pr": 3})
    _, rejection = spend_skill_points(c, "marketing_pr", 1, max_level=3)
    assert rejection is not None and rejection.code == SKILL_MAXED

    _, rejection = spend_skill_points(c, "marketing_pr", 0, max_level=3)
    assert rejection is not None and rejection.code == INVALID_AMOUNT


def test_bonus_points_count_toward_available() -> None:
    c = grant_bonus_skill_points(_make_company(), 5)
    assert c.bonus_skill_points == 5
    assert c.skill_points == 5
    assert recalculate_level_and_skill_points(c).earned == 5


def test_recalculate_is_idempotent() -> None:
    c = _make_company(xp=4_321, skill_points_spent=3, bonus_skill_points=2)
    first = recalculate_level_and_skill_points(c)
    second = recalculate_level_and_skill_points(c)
    assert first == second
    assert with_derived_progression(with_derived_progression(c)) == with_derived_progression(c)


def test_available_points_never_negative() -> None:
    c = _make_company(xp=0, skill_points_spent=7)
    assert recalculate_level_and_skill_points(c).available == 0
    assert c.skill_points == 0
