"""engine.config

Engine configuration passed from UI / simulation runner.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from core.modes import DifficultyConfig, get_difficulty


@dataclass(frozen=True)
class EngineConfig:
    base_seed: int
    difficulty: str = "normal"
    max_day: int = 90
    boss_day: int = 45
    anomaly_chance: float = 0.25
    loan_penalty_anomaly_chance: float = 0.30
    broadcast_start_day: int = 3
    broadcast_duration: int = 10

    @property
    def difficulty_config(self) -> DifficultyConfig:
        return get_difficulty(self.difficulty)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
