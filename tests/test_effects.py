from __future__ import annotations

import random

import pytest

from core.effects import (
    adjust_cash,
    append_stats_snapshot,
    apply_effects,
    effects_from_mapping,
    scale_negative_effects,
)
from core.progression import calculate_level, recalculate_level_and_skill_points
from core.state import MAX_STAT, MIN_USERS, Company, Effects


def _make_company(**overrides) -> Company:
    base = dict(company_id="c1", name="Test Co", difficulty="normal", cash=1_000.0, users=100)
    base.update(overrides)
    return Company(**base)


def test_discrete_bundle_clamps_every_stat() -> None:
    c = _make_company(quality=95.0, hype=3.0, virality=99.0, users=10, cash=100.0)
    updated, _ = apply_effects(c, Effects(cash=-500, users=-100, quality=20, hype=-10, virality=5))
    assert updated.cash == 0.0
    assert updated.users == MIN_USERS
    assert updated.quality == MAX_STAT
    assert updated.hype == 0.0
    assert updated.virality == MAX_STAT


def test_unclamped_cash_path() -> None:
    c = _make_company(cash=100.0)
    updated, _ = apply_effects(c, Effects(cash=-500), cash_floor=None)
    assert updated.cash == -400.0
    assert adjust_cash(c, -250.0).cash == -150.0


def test_floor_never_forgives_existing_debt() -> None:
    c = _make_company(cash=-3_000.0)
    cost, _ = apply_effects(c, Effects(cash=-200))
    assert cost.cash == -3_000.0
    income, _ = apply_effects(c, Effects(cash=500))
    assert income.cash == -2_500.0
    windfall, _ = apply_effects(c, Effects(cash=4_000))
    assert windfall.cash == 1_000.0


def test_xp_goes_through_progression() -> None:
    c = _make_company()
    updated, level_up = apply_effects(c, Effects(xp=260))
    assert updated.xp == 260
    assert updated.level == 3
    assert updated.skill_points == 2
    assert level_up is not None and level_up.old_level == 1


def test_negative_xp_in_bundle_is_ignored() -> None:
    c = _make_company(xp=120, level=2, skill_points=1)
    updated, level_up = apply_effects(c, Effects(xp=-50))
    assert updated.xp == 120
    assert level_up is None


def test_skill_grants_are_capped_and_free() -> None:
    c = _make_company(skills={"product_engineering": 4})
    caps = {"product_engineering": 5}
    updated, _ = apply_effects(c, Effects(skills={"product_engineering": 3, "no_such_skill": 1}), skill_caps=caps)
    assert updated.skills == {"product_engineering": 5}
    assert updated.skill_points_spent == 0


def test_dead_company_is_untouched() -> None:
    c = _make_company(alive=False)
    updated, level_up = apply_effects(c, Effects(cash=5_000, xp=500))
    assert updated is c
    assert level_up is None
    assert adjust_cash(c, -10.0) is c


def test_effects_from_mapping_validates_shape() -> None:
    eff = effects_from_mapping({"cash": 250, "users": 12.0, "flags": ["viral_moment"], "skills": {"tech_security": 1}})
    assert eff.cash == 250.0
    assert eff.users == 12 and isinstance(eff.users, int)
    assert eff.flags == ("viral_moment",)
    assert eff.skills == {"tech_security": 1}

    with pytest.raises(ValueError):
        effects_from_mapping({"money": 10})
    with pytest.raises(ValueError):
        effects_from_mapping({"cash": "ten"})
    with pytest.raises(ValueError):
        effects_from_mapping({"users": True})
    with pytest.raises(ValueError):
        effects_from_mapping({"flags": "viral_moment"})
    with pytest.raises(ValueError):
        effects_from_mapping({"hype": float("nan")})


def test_scale_negative_effects_rounds_toward_zero() -> None:
    scaled = scale_negative_effects(Effects(cash=-2000, users=-45, hype=-15, quality=5), 0.5)
    assert scaled.cash == -1000.0
    assert scaled.users == -22
    assert scaled.hype == -7.5
    assert scaled.quality == 5


def test_snapshot_row_records_current_stats() -> None:
    c = append_stats_snapshot(_make_company(day=4, cash=321.0))
    assert len(c.stats_history) == 1
    row = c.stats_history[0]
    assert (row.day, row.cash, row.users) == (4, 321.0, 100)


def test_random_bundles_keep_invariants() -> None:
    rng = random.Random(20240101)
    c = _make_company()
    for _ in range(300):
        eff = Effects(
            cash=rng.uniform(-5_000, 5_000),
            users=rng.randint(-500, 500),
            quality=rng.uniform(-60, 60),
            hype=rng.uniform(-60, 60),
            virality=rng.uniform(-60, 60),
            xp=rng.randint(-200, 400),
        )
        c, _ = apply_effects(c, eff)
        assert c.users >= MIN_USERS
        assert c.cash >= 0.0
        for stat in (c.quality, c.hype, c.virality):
            assert 0.0 <= stat <= MAX_STAT
        assert c.level == calculate_level(c.xp)
        assert c.skill_points == recalculate_level_and_skill_points(c).available
