from __future__ import annotations

import random

import pytest

from core.state import Company, DailyAction
from engine.anomalies import (
    Activation,
    AnomalyFlags,
    anomaly_weight,
    apply_activation,
    parse_anomaly_flags,
    roll_contextual_anomaly,
    roll_daily_anomalies,
    select_anomaly,
)
from engine.loans import PENALTY_TRIGGERS


def _make_company(**overrides) -> Company:
    base = dict(company_id="c1", name="Test Co", difficulty="normal", cash=5_000.0, users=100, day=3)
    base.update(overrides)
    return Company(**base)


def test_weight_rules(content) -> None:
    client = content.anomaly("surprise_enterprise_client")
    assert anomaly_weight(client, _make_company(company_type="consumer")) == 1.0
    assert anomaly_weight(client, _make_company()) == pytest.approx(1.5)
    assert anomaly_weight(client, _make_company(recent_flags=("enterprise",))) == pytest.approx(2.25)

    freeze = content.anomaly("payment_processor_freeze")
    assert anomaly_weight(freeze, _make_company(cash=1_000.0)) == pytest.approx(0.45)


def test_parse_flags(content) -> None:
    actions = [DailyAction("tech_harden", "tech", "Harden")]
    flags = parse_anomaly_flags(["modify_marketing", "lock_action", "special_event", "whatever"], actions, random.Random(1))
    assert set(flags.outcome_bonuses) == {"marketing"}
    assert flags.outcome_bonuses["marketing"].critical_success_bonus == pytest.approx(0.2)
    assert flags.outcome_bonuses["marketing"].success_bonus == pytest.approx(0.15)
    assert flags.locked_categories == ("tech",)
    assert flags.spawns_special_event


def test_at_most_one_anomaly_per_day(content) -> None:
    c = _make_company()
    assert roll_daily_anomalies(c, content, random.Random(1), 0.0) == []
    for seed in range(10):
        fired = roll_daily_anomalies(c, content, random.Random(seed), 1.0)
        assert len(fired) == 1
        assert fired[0].day == 3
    assert roll_daily_anomalies(_make_company(alive=False), content, random.Random(1), 1.0) == []


def test_select_is_deterministic(content) -> None:
    c = _make_company()
    picks = [select_anomaly(c, content, random.Random(seed)).anomaly_id for seed in range(5)]
    assert picks == [select_anomaly(c, content, random.Random(seed)).anomaly_id for seed in range(5)]


def test_activation_goes_through_ledger_and_log(content) -> None:
    c = _make_company(cash=100.0, users=10)
    act = Activation(anomaly=content.anomaly("surprise_enterprise_client"), day=3, flags=AnomalyFlags())
    updated = apply_activation(c, act, content)
    assert updated.cash == 2_100.0
    assert updated.users == 25
    assert updated.xp == 20
    assert [e.anomaly_id for e in updated.anomaly_log] == ["surprise_enterprise_client"]
    assert updated.anomaly_log[0].effects == {"cash": 2000.0, "users": 15, "xp": 20}


def test_activation_merges_day_modifiers(content) -> None:
    c = _make_company(daily_actions=[DailyAction("tech_harden", "tech", "Harden")])
    outage = content.anomaly("server_outage")
    flags = parse_anomaly_flags(outage.flags, c.daily_actions, random.Random(2))
    updated = apply_activation(c, Activation(anomaly=outage, day=3, flags=flags), content)
    assert updated.day_modifiers.locked_categories == ("tech",)
    assert updated.users == 60


def test_negative_cash_anomaly_floors_at_zero(content) -> None:
    c = _make_company(cash=300.0)
    act = Activation(anomaly=content.anomaly("surprise_tax_bill"), day=3, flags=AnomalyFlags())
    assert apply_activation(c, act, content).cash == 0.0


def test_negative_cash_anomaly_keeps_existing_debt(content) -> None:
    c = _make_company(cash=-3_000.0)
    act = Activation(anomaly=content.anomaly("surprise_tax_bill"), day=3, flags=AnomalyFlags())
    assert apply_activation(c, act, content).cash == -3_000.0


def test_income_anomaly_not_down_weighted_in_debt(content) -> None:
    client = content.anomaly("surprise_enterprise_client")
    assert anomaly_weight(client, _make_company(cash=-5_000.0)) == pytest.approx(1.5)


def test_contextual_roll_prefers_matching_triggers(content) -> None:
    c = _make_company()
    for seed in range(10):
        act = roll_contextual_anomaly(c, content, random.Random(seed), PENALTY_TRIGGERS, 1.0)
        assert act is not None
        assert act.anomaly.anomaly_id in {"late_fee_collections", "credit_rating_drop"}
    assert roll_contextual_anomaly(c, content, random.Random(1), PENALTY_TRIGGERS, 0.0) is None
