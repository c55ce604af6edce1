"""engine.sim_runner

Headless bulk simulation for balance tuning.

Bots play the real day lifecycle (start day, actions, choices, skills,
end day) with a seeded rng, so the same seed always gives the same
summary. No network, no UI.

Run:
  python -m engine.sim_runner --difficulty normal --companies 100 --days 90 --seed 42
"""

from __future__ import annotations

import argparse
import json
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from content.repository import ContentRepository, default_repository
from core.formulas import daily_burn
from core.modes import DIFFICULTIES
from core.rng import rng_from
from core.state import Company, PendingEvent, active_loans

from .boss import PATTERN_LENGTH, BossBattle, execute_boss_action, expire_battle
from .config import EngineConfig
from .loans import accept_loan, calculate_credibility_score, generate_loan_offers
from .modifiers import outcome_bias
from .pipeline import create_company, end_day, make_choice, perform_action, start_day
from .skills import auto_allocate, calculate_multipliers

LOW_RUNWAY_DAYS = 3


@dataclass(frozen=True)
class CompanyRun:
    company_id: str
    survived: bool
    outcome: Optional[str]
    final_day: int
    final_cash: float
    final_users: int
    final_level: int
    actions_taken: int
    bankrupt_day: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "survived": bool(self.survived),
            "outcome": self.outcome,
            "final_day": int(self.final_day),
            "final_cash": float(self.final_cash),
            "final_users": int(self.final_users),
            "final_level": int(self.final_level),
            "actions_taken": int(self.actions_taken),
            "bankrupt_day": int(self.bankrupt_day),
        }


@dataclass(frozen=True)
class SimulationResult:
    difficulty: str
    companies: int
    days: int
    seed: int
    survival_rate: float
    avg_final_cash: float
    avg_final_users: float
    avg_final_level: float
    avg_actions_taken: float
    avg_bankrupt_day: float
    avg_final_day: float
    runs: List[CompanyRun] = field(default_factory=list)

    def to_dict(self, include_runs: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "difficulty": self.difficulty,
            "companies": int(self.companies),
            "days": int(self.days),
            "seed": int(self.seed),
            "survival_rate": float(self.survival_rate),
            "avg_final_cash": float(self.avg_final_cash),
            "avg_final_users": float(self.avg_final_users),
            "avg_final_level": float(self.avg_final_level),
            "avg_actions_taken": float(self.avg_actions_taken),
            "avg_bankrupt_day": float(self.avg_bankrupt_day),
            "avg_final_day": float(self.avg_final_day),
        }
        if include_runs:
            out["runs"] = [r.to_dict() for r in self.runs]
        return out


def pick_outcome(bias: float, rng: random.Random) -> str:
    """Bot outcome roll: 50% success, 15% critical success, 15% failure, 20% critical failure.

    A positive bias may upgrade the pick to a success or critical success.
    """
    roll = rng.random()
    if roll < 0.5:
        outcome = "success"
    elif roll < 0.65:
        outcome = "critical_success"
    elif roll < 0.80:
        outcome = "failure"
    else:
        outcome = "critical_failure"

    if bias > 0 and rng.random() < min(1.0, bias):
        outcome = "success" if rng.random() < 0.5 else "critical_success"
    return outcome


def _choice_for(event: PendingEvent, outcome: str) -> str:
    chosen = next((c for c in event.choices if c.outcome == outcome), None)
    if chosen is None:
        chosen = next((c for c in event.choices if c.outcome == "success"), event.choices[0])
    return chosen.choice_id


def _resolve_pending(
    company: Company, content: ContentRepository, config: EngineConfig, rng: random.Random
) -> Company:
    skill_bonus = calculate_multipliers(company, content).event_outcome_bonus
    for event in list(company.pending_events):
        bias = outcome_bias(company, content, event.category, skill_bonus, config.broadcast_duration)
        result = make_choice(company, event.event_id, _choice_for(event, pick_outcome(bias, rng)), content, config)
        if not result.ok:
            break
        company = result.company
    return company


def _maybe_borrow(company: Company, content: ContentRepository, config: EngineConfig) -> Company:
    """One lifeline loan per run, taken when runway gets short."""
    if company.lifeline_used or active_loans(company):
        return company
    burn = daily_burn(company.users, config.difficulty_config, calculate_multipliers(company, content))
    if float(company.cash) >= burn * LOW_RUNWAY_DAYS:
        return company
    offers = generate_loan_offers(calculate_credibility_score(company))
    result = accept_loan(company, offers[0])
    return result.company if result.ok else company


def _fight(
    company: Company, battle: BossBattle, content: ContentRepository
) -> Tuple[Company, BossBattle]:
    for _ in range(PATTERN_LENGTH * 3):
        if not battle.active or not company.alive:
            break
        turn = execute_boss_action(company, battle, "attack", content)
        if not turn.ok:
            break
        company, battle = turn.company, turn.battle
    return company, expire_battle(battle)


def simulate_company(
    index: int, content: ContentRepository, config: EngineConfig, role: Optional[str] = None
) -> CompanyRun:
    company_id = f"sim-{index}"
    company = create_company(config, company_id=company_id, name=f"Sim Startup {index}", content=content, role=role)
    rng = rng_from("sim-bot", company_id, base_seed=int(config.base_seed))
    battle: Optional[BossBattle] = None
    actions_taken = 0
    bankrupt_day = 0

    while company.alive:
        day = int(company.day)
        started = start_day(company, content, config, battle)
        if not started.ok:
            break
        company = started.company
        if started.battle is not None and started.battle.active:
            company, battle = _fight(company, started.battle, content)
            if not company.alive:
                bankrupt_day = day
                break

        company = _resolve_pending(company, content, config, rng)
        tried = set()
        while company.action_points > 0 and not company.pending_events:
            candidates = [
                a
                for a in company.daily_actions
                if not a.selected
                and a.action_id not in tried
                and a.category not in company.day_modifiers.locked_categories
                and a.weight <= company.action_points
            ]
            if not candidates:
                break
            action = candidates[rng.randrange(len(candidates))]
            tried.add(action.action_id)
            result = perform_action(company, action.action_id, content, config)
            if not result.ok:
                continue
            actions_taken += 1
            company = _resolve_pending(result.company, content, config, rng)

        company, _upgrades = auto_allocate(company, content, rng)
        company = _maybe_borrow(company, content, config)

        ended = end_day(company, content, config)
        if not ended.ok:
            break
        company = ended.company
        if company.outcome == "bankrupt":
            bankrupt_day = day

    return CompanyRun(
        company_id=company_id,
        survived=company.outcome != "bankrupt",
        outcome=company.outcome,
        final_day=int(company.day),
        final_cash=float(company.cash),
        final_users=int(company.users),
        final_level=int(company.level),
        actions_taken=actions_taken,
        bankrupt_day=bankrupt_day,
    )


def _avg(values: Sequence[float]) -> float:
    return float(sum(values)) / len(values) if values else 0.0


def run_bulk_simulation(
    difficulty: str = "normal",
    companies: int = 100,
    days: int = 90,
    seed: int = 42,
    content: Optional[ContentRepository] = None,
    role: Optional[str] = None,
) -> SimulationResult:
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    if int(companies) <= 0 or int(days) <= 0:
        raise ValueError("companies and days must be positive")

    repo = content or default_repository()
    cfg = EngineConfig(base_seed=int(seed), difficulty=difficulty, max_day=int(days))
    runs = [simulate_company(i, repo, cfg, role) for i in range(int(companies))]
    bankrupt = [r for r in runs if not r.survived]

    return SimulationResult(
        difficulty=difficulty,
        companies=int(companies),
        days=int(days),
        seed=int(seed),
        survival_rate=sum(1 for r in runs if r.survived) / float(len(runs)),
        avg_final_cash=_avg([r.final_cash for r in runs]),
        avg_final_users=_avg([r.final_users for r in runs]),
        avg_final_level=_avg([r.final_level for r in runs]),
        avg_actions_taken=_avg([r.actions_taken for r in runs]),
        avg_bankrupt_day=_avg([r.bankrupt_day for r in bankrupt]),
        avg_final_day=_avg([r.final_day for r in runs]),
        runs=runs,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a seeded bulk simulation and print a JSON summary.")
    parser.add_argument("--difficulty", default="normal", choices=sorted(DIFFICULTIES.keys()))
    parser.add_argument("--companies", type=int, default=100)
    parser.add_argument("--days", type=int, default=90)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--role", default=None)
    parser.add_argument("--runs", action="store_true", help="include per-company results")
    args = parser.parse_args(argv)

    result = run_bulk_simulation(
        difficulty=args.difficulty,
        companies=args.companies,
        days=args.days,
        seed=args.seed,
        role=args.role,
    )
    print(json.dumps(result.to_dict(include_runs=args.runs), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
