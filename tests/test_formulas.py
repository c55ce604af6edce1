from __future__ import annotations

import random

import pytest

from core.formulas import (
    SkillMultipliers,
    churn,
    daily_burn,
    daily_revenue,
    decay_hype,
    growth_rate,
    hype_retained_users,
    is_bankrupt,
    retention,
    revenue_per_user,
    roll_viral_growth,
    users_after_churn,
    viral_growth_threshold,
    virality_from_stats,
)
from core.modes import DIFFICULTIES, get_difficulty

NORMAL = DIFFICULTIES["normal"]


def test_revenue_scenario() -> None:
    assert daily_revenue(1_000, 50.0) == pytest.approx(400.0)
    assert revenue_per_user(0) == pytest.approx(0.20)
    assert revenue_per_user(100) == pytest.approx(0.60)


def test_revenue_applies_skill_and_loan_multipliers() -> None:
    mult = SkillMultipliers(revenue_multiplier=1.1)
    assert daily_revenue(1_000, 50.0, mult) == pytest.approx(440.0)
    assert daily_revenue(1_000, 50.0, loan_multiplier=0.9) == pytest.approx(360.0)


def test_retention_clamped_range() -> None:
    assert retention(50, NORMAL) == pytest.approx(0.825)
    assert retention(100, DIFFICULTIES["easy"]) == pytest.approx(0.98)
    assert retention(0, DIFFICULTIES["another_story"]) == pytest.approx(0.62)


@pytest.mark.parametrize("key", sorted(DIFFICULTIES.keys()))
def test_churn_is_complement_of_retention_plus_penalty(key: str) -> None:
    d = DIFFICULTIES[key]
    for q in range(0, 101, 10):
        expected = max(0.0, 1.0 - retention(q, d) + d.churn_penalty)
        assert churn(q, d) == pytest.approx(expected)
        assert churn(q, d) >= 0.0


def test_users_after_churn_respects_floor() -> None:
    assert users_after_churn(1_000, 0.175) == 825
    assert users_after_churn(6, 0.5) == 5


def test_burn_and_cost_reduction_cap() -> None:
    assert daily_burn(1_000, NORMAL) == pytest.approx(180.0)
    assert daily_burn(1_000, DIFFICULTIES["hard"]) == pytest.approx(207.0)
    capped = daily_burn(1_000, NORMAL, SkillMultipliers(cost_reduction=0.6, burn_reduction=0.3))
    assert capped == pytest.approx(45.0)


def test_hype_helpers() -> None:
    assert hype_retained_users(1_000, 100.0) == 50
    assert hype_retained_users(1_000, 0.0) == 0
    assert decay_hype(100.0) == pytest.approx(95.0)
    assert viral_growth_threshold(0.0) == 30.0
    assert viral_growth_threshold(5.0) == 20.0


def test_viral_growth_needs_threshold() -> None:
    rng = random.Random(1)
    assert not roll_viral_growth(1_000, 25.0, SkillMultipliers(), rng).triggered


def test_viral_growth_at_full_hype() -> None:
    growth = roll_viral_growth(1_000, 100.0, SkillMultipliers(), random.Random(5))
    assert growth.triggered
    assert growth.new_users == 240
    assert growth.hype_gain == pytest.approx(4.0)


def test_growth_rate_and_virality() -> None:
    assert growth_rate(100, 110) == pytest.approx(10.0)
    assert growth_rate(0, 50) == 0.0
    assert virality_from_stats(0.0, 40.0, -5.0, 100) == 0.0
    # hype 100 and 10% growth push virality up before decay
    assert virality_from_stats(10.0, 100.0, 10.0, 500) == pytest.approx((10.0 + 0.5 + 1.0) * 0.97)


def test_bankruptcy_scenario_normal_severe_loss() -> None:
    for lifeline in (False, True):
        for burn in (1.0, 180.0, 50_000.0):
            assert is_bankrupt(-16_000.0, 1_000, burn, NORMAL, lifeline)


def test_bankruptcy_boundaries() -> None:
    assert is_bankrupt(1_000_000.0, 4, 100.0, NORMAL, False)
    assert not is_bankrupt(-1.0, 100, 100.0, NORMAL, False)
    assert not is_bankrupt(0.0, 5, 100.0, NORMAL, False)


def test_lifeline_extends_runway() -> None:
    # 8 days of burn gone but still above -initial cash
    assert is_bankrupt(-800.0, 100, 100.0, NORMAL, False)
    assert not is_bankrupt(-800.0, 100, 100.0, NORMAL, True)
    assert is_bankrupt(-10_500.0, 100, 100.0, NORMAL, True)


def test_unknown_difficulty_falls_back_to_normal() -> None:
    assert get_difficulty("nightmare") is NORMAL
    assert get_difficulty(" HARD ").key == "hard"
