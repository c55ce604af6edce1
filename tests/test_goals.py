from __future__ import annotations

from dataclasses import replace

import pytest

from core.goals import (
    default_goals,
    evaluate_all_goals,
    evaluate_goal,
    goal_metric,
    goal_progress_text,
    goals_from_pairs,
    make_goal,
    progress_percent,
)
from core.state import Company, Goal


def _make_company(**overrides) -> Company:
    base = dict(company_id="c1", name="Test Co", difficulty="normal", cash=5_000.0, users=100)
    base.update(overrides)
    return Company(**base)


def test_make_goal_validates() -> None:
    g = make_goal("reach_users", 2_000)
    assert g.goal_id == "goal-reach_users"
    assert g.description == "Reach 2,000 users"
    with pytest.raises(ValueError):
        make_goal("reach_moon", 1)
    with pytest.raises(ValueError):
        make_goal("reach_cash", 0)


def test_completion_is_sticky() -> None:
    goal = make_goal("reach_users", 2_000)
    done = evaluate_goal(_make_company(users=2_500), goal)
    assert done.completed
    assert done.progress == 2_500

    later = evaluate_goal(_make_company(users=100), done)
    assert later.completed
    assert later.progress == 100


def test_metrics_per_goal_type() -> None:
    c = _make_company(users=1_000, quality=50.0, day=12, skills={"tech_security": 2, "product_ux": 1})
    assert goal_metric(c, "reach_daily_revenue") == pytest.approx(400.0)
    assert goal_metric(c, "reach_skill_level") == 3.0
    assert goal_metric(c, "survive_days") == 12.0
    assert goal_metric(c, "reach_cash") == 5_000.0


def test_progress_text_and_percent() -> None:
    g = Goal(goal_id="g", goal_type="reach_users", target=2_000.0, progress=500.0)
    assert goal_progress_text(g) == "500/2000 (25%)"
    assert progress_percent(replace(g, progress=5_000.0)) == 100.0


def test_default_goals_per_difficulty() -> None:
    goals = default_goals("hard")
    assert [g.goal_id for g in goals] == ["goal-1", "goal-2", "goal-3"]
    assert [g.goal_type for g in goals] == ["reach_users", "reach_quality", "survive_days"]
    assert [g.goal_type for g in default_goals("unknown")] == [g.goal_type for g in default_goals("normal")]


def test_evaluate_all_goals_keeps_order() -> None:
    c = _make_company(users=600, goals=goals_from_pairs([("reach_users", 500), ("reach_cash", 10_000)]))
    evaluated = evaluate_all_goals(c)
    assert [g.completed for g in evaluated] == [True, False]
    assert evaluated[1].progress == 5_000.0
