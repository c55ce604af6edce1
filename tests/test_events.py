from __future__ import annotations

import random
from dataclasses import replace

from core.errors import (
    ACTION_ALREADY_SELECTED,
    ACTION_LOCKED,
    EVENT_NOT_PENDING,
    INSUFFICIENT_ACTION_POINTS,
    NOT_FOUND,
    PENDING_EVENTS,
)
from core.modes import DIFFICULTIES
from core.state import OUTCOME_TYPES, SPECIAL_EVENT_ACTION_ID, Company, DailyAction, DayModifiers
from engine.events import (
    OPTION_LABELS,
    build_pending_event,
    generate_daily_action_set,
    generate_events_from_action,
    resolve_choice,
    take_action,
)


def _make_company(**overrides) -> Company:
    base = dict(
        company_id="c1",
        name="Test Co",
        difficulty="normal",
        cash=5_000.0,
        users=100,
        quality=50.0,
        action_points=4,
        daily_actions=[
            DailyAction("product_ship_feature", "product", "Ship a feature"),
            DailyAction("bizdev_enterprise", "business_dev", "Enterprise deal", weight=2),
        ],
    )
    base.update(overrides)
    return Company(**base)


def _crunch_event(content, seed: int = 1):
    return build_pending_event(
        content.event("product_launch_crunch"),
        action_id="product_ship_feature",
        category="product",
        rng=random.Random(seed),
    )


def test_daily_action_set_respects_limit(content) -> None:
    for key, diff in DIFFICULTIES.items():
        actions = generate_daily_action_set(diff, content, random.Random(7))
        assert len(actions) == diff.action_limit
        ids = [a.action_id for a in actions]
        assert len(set(ids)) == len(ids)
        assert all(content.action(i) is not None for i in ids)
        # at most one action per category for these limits
        cats = [a.category for a in actions]
        assert len(set(cats)) == len(cats)


def test_pending_event_has_one_choice_per_outcome(content) -> None:
    ev = _crunch_event(content)
    assert [c.label for c in ev.choices] == list(OPTION_LABELS)
    assert sorted(c.outcome for c in ev.choices) == sorted(OUTCOME_TYPES)


def test_labels_do_not_follow_outcomes(content) -> None:
    first_outcomes = {_crunch_event(content, seed).choices[0].outcome for seed in range(40)}
    assert len(first_outcomes) > 1


def test_events_from_action_are_distinct(content) -> None:
    events = generate_events_from_action(
        "product_ship_feature", ["product_launch_crunch", "product_launch_crunch", "nope"], 3, content, random.Random(2)
    )
    assert [e.event_id for e in events] == ["product_launch_crunch"]
    assert events[0].category == "product"


def test_take_action_queues_events(content) -> None:
    c = _make_company()
    result = take_action(c, "product_ship_feature", content, random.Random(4))
    assert result.ok
    assert 1 <= len(result.events) <= 2
    assert result.company.pending_events == result.events
    assert result.company.daily_actions[0].selected
    # choosing an action costs nothing until its events resolve
    assert result.company.action_points == 4


def test_take_action_rejections(content) -> None:
    c = _make_company()
    busy = replace(c, pending_events=[_crunch_event(content)])
    assert take_action(busy, "product_ship_feature", content, random.Random(1)).rejection.code == PENDING_EVENTS

    assert take_action(c, "ops_hire", content, random.Random(1)).rejection.code == NOT_FOUND

    taken = replace(c, daily_actions=[replace(a, selected=True) for a in c.daily_actions])
    assert take_action(taken, "product_ship_feature", content, random.Random(1)).rejection.code == ACTION_ALREADY_SELECTED

    locked = replace(c, day_modifiers=DayModifiers(locked_categories=("product",)))
    assert take_action(locked, "product_ship_feature", content, random.Random(1)).rejection.code == ACTION_LOCKED

    poor = replace(c, action_points=1)
    result = take_action(poor, "bizdev_enterprise", content, random.Random(1))
    assert result.rejection.code == INSUFFICIENT_ACTION_POINTS
    assert result.rejection.details == {"required": 2, "available": 1}


def test_queued_special_event_rides_along(content) -> None:
    c = _make_company(day_modifiers=DayModifiers(special_event_queued=True))
    result = take_action(c, "product_ship_feature", content, random.Random(9))
    assert result.ok
    specials = [e for e in result.events if e.is_special]
    assert len(specials) == 1
    assert specials[0].event_id in content.special_events
    assert not result.company.day_modifiers.special_event_queued


def test_resolve_choice_applies_effects_once(content) -> None:
    ev = _crunch_event(content)
    c = _make_company(pending_events=[ev], action_points=2)
    success = next(ch for ch in ev.choices if ch.outcome == "success")

    result = resolve_choice(c, ev.event_id, success.choice_id, content)
    assert result.ok
    assert result.company.users == 115
    assert result.company.quality == 51.0
    assert result.company.xp == 12
    assert result.company.action_points == 1
    assert result.company.pending_events == []

    again = resolve_choice(result.company, ev.event_id, success.choice_id, content)
    assert again.rejection.code == EVENT_NOT_PENDING
    assert again.company == result.company


def test_resolve_choice_role_xp_multiplier(content) -> None:
    ev = _crunch_event(content)
    c = _make_company(pending_events=[ev], role="founder")
    success = next(ch for ch in ev.choices if ch.outcome == "success")
    result = resolve_choice(c, ev.event_id, success.choice_id, content)
    assert result.company.xp == 13
    assert result.level_up is None


def test_skill_grant_from_choice_is_capped(content) -> None:
    ev = _crunch_event(content)
    c = _make_company(pending_events=[ev], skills={"product_engineering": 5})
    crit = next(ch for ch in ev.choices if ch.outcome == "critical_success")
    result = resolve_choice(c, ev.event_id, crit.choice_id, content)
    assert result.company.skills == {"product_engineering": 5}
    assert result.company.skill_points_spent == 0


def test_unknown_choice_is_rejected(content) -> None:
    ev = _crunch_event(content)
    c = _make_company(pending_events=[ev])
    assert resolve_choice(c, ev.event_id, "c9", content).rejection.code == NOT_FOUND


def test_normal_event_needs_action_point(content) -> None:
    ev = _crunch_event(content)
    c = _make_company(pending_events=[ev], action_points=0)
    result = resolve_choice(c, ev.event_id, ev.choices[0].choice_id, content)
    assert result.rejection.code == INSUFFICIENT_ACTION_POINTS
    assert result.company.pending_events == [ev]


def test_special_event_is_free(content) -> None:
    special = build_pending_event(
        content.special_events["broadcast_tech_demo_day"],
        action_id=SPECIAL_EVENT_ACTION_ID,
        category="tech",
        rng=random.Random(3),
    )
    c = _make_company(pending_events=[special], action_points=0)
    success = next(ch for ch in special.choices if ch.outcome == "success")
    result = resolve_choice(c, special.event_id, success.choice_id, content)
    assert result.ok
    assert result.company.action_points == 0
    assert result.company.users == 120
