"""
core.modes
Difficulty specifications (economic constants per difficulty).

Kept in core so balancing lives in one place, but UI can still display labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class DifficultyConfig:
    key: str
    label: str
    desc: str
    action_limit: int
    retention_bonus: float
    churn_penalty: float
    burn_multiplier: float
    positive_event_bias: float
    base_burn: float
    initial_cash: float


DIFFICULTIES: Dict[str, DifficultyConfig] = {
    "easy": DifficultyConfig(
        key="easy",
        label="Easy",
        desc="More runway, stickier users and a kinder event deck.",
        action_limit=5,
        retention_bonus=0.05,
        churn_penalty=-0.02,
        burn_multiplier=0.9,
        positive_event_bias=0.20,
        base_burn=80.0,
        initial_cash=15_000.0,
    ),
    "normal": DifficultyConfig(
        key="normal",
        label="Normal",
        desc="Baseline economy. Mistakes hurt but are recoverable.",
        action_limit=4,
        retention_bonus=0.0,
        churn_penalty=0.0,
        burn_multiplier=1.0,
        positive_event_bias=0.0,
        base_burn=100.0,
        initial_cash=10_000.0,
    ),
    "hard": DifficultyConfig(
        key="hard",
        label="Hard",
        desc="Fewer actions, leakier retention and a heavier burn.",
        action_limit=3,
        retention_bonus=-0.05,
        churn_penalty=0.02,
        burn_multiplier=1.15,
        positive_event_bias=-0.10,
        base_burn=120.0,
        initial_cash=8_000.0,
    ),
    "another_story": DifficultyConfig(
        key="another_story",
        label="Another Story",
        desc="The market is actively hostile. Survival is the win condition.",
        action_limit=3,
        retention_bonus=-0.08,
        churn_penalty=0.03,
        burn_multiplier=1.25,
        positive_event_bias=-0.15,
        base_burn=140.0,
        initial_cash=6_000.0,
    ),
}


def get_difficulty(key: str) -> DifficultyConfig:
    return DIFFICULTIES.get(str(key or "").strip().lower(), DIFFICULTIES["normal"])
