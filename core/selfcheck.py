"""
core.selfcheck
Minimal "it runs" proof: one seeded campaign through the real day flow.

Run:
  python -m core.selfcheck
"""

from __future__ import annotations

import random

from content.repository import ContentRepository, default_repository
from engine.config import EngineConfig
from engine.pipeline import create_company, end_day, make_choice, perform_action, start_day
from engine.skills import auto_allocate

from .progression import calculate_level, recalculate_level_and_skill_points
from .rng import rng_from
from .state import MAX_STAT, MIN_USERS, Company


def check_invariants(company: Company) -> None:
    info = recalculate_level_and_skill_points(company)
    assert company.level == calculate_level(company.xp)
    assert company.skill_points == info.available
    assert company.skill_points >= 0
    assert company.users >= MIN_USERS
    assert 0.0 <= company.quality <= MAX_STAT
    assert 0.0 <= company.hype <= MAX_STAT
    assert 0.0 <= company.virality <= MAX_STAT
    assert [s.day for s in company.stats_history] == sorted({s.day for s in company.stats_history})


def _resolve_all(company: Company, content: ContentRepository, cfg: EngineConfig, rng: random.Random) -> Company:
    # events left over from yesterday (no action points) are picked up here too
    for event in list(company.pending_events):
        choice = event.choices[rng.randrange(len(event.choices))]
        chosen = make_choice(company, event.event_id, choice.choice_id, content, cfg)
        if not chosen.ok:
            break
        company = chosen.company
        check_invariants(company)
    return company


def run_campaign_smoke(days: int = 30) -> Company:
    content = default_repository()
    cfg = EngineConfig(base_seed=42, difficulty="normal", max_day=days)
    company = create_company(cfg, company_id="selfcheck", name="Selfcheck Labs", content=content, role="founder")
    rng = rng_from("selfcheck", base_seed=cfg.base_seed)

    while company.alive:
        started = start_day(company, content, cfg)
        assert started.ok, started.rejection
        company = _resolve_all(started.company, content, cfg, rng)

        for action in list(company.daily_actions):
            if company.pending_events or company.action_points <= 0:
                break
            result = perform_action(company, action.action_id, content, cfg)
            if not result.ok:
                continue
            company = _resolve_all(result.company, content, cfg, rng)

        company, _ = auto_allocate(company, content, rng)
        ended = end_day(company, content, cfg)
        assert ended.ok, ended.rejection
        company = ended.company
        check_invariants(company)

    return company


if __name__ == "__main__":
    final = run_campaign_smoke()
    print("OK: campaign smoke test passed.")
    print(f"Outcome: {final.outcome} on day {final.day}")
    print(f"Cash: {final.cash:,.2f}  Users: {final.users}  Level: {final.level}")
    print("Anomalies fired:", len(final.anomaly_log))
