"""core.errors

Typed failure values.

Expected conditions (insufficient resources, unknown ids, dead company)
come back as a `Rejection` instead of an exception, so callers can render
a message from `code` + `details`. Malformed inputs still raise ValueError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

COMPANY_DEAD = "company_dead"
NOT_FOUND = "not_found"
INSUFFICIENT_SKILL_POINTS = "insufficient_skill_points"
SKILL_MAXED = "skill_maxed"
INVALID_AMOUNT = "invalid_amount"
INSUFFICIENT_CASH = "insufficient_cash"
INSUFFICIENT_XP = "insufficient_xp"
INSUFFICIENT_ACTION_POINTS = "insufficient_action_points"
ACTIVE_LOAN_EXISTS = "active_loan_exists"
LOAN_NOT_ACTIVE = "loan_not_active"
PENDING_EVENTS = "pending_events"
EVENT_NOT_PENDING = "event_not_pending"
ACTION_ALREADY_SELECTED = "action_already_selected"
ACTION_LOCKED = "action_locked"
NO_EVENTS = "no_events"
DAY_ALREADY_STARTED = "day_already_started"
BATTLE_NOT_ACTIVE = "battle_not_active"
MISSING_COST = "missing_cost"
UNKNOWN_MOVE = "unknown_move"


@dataclass(frozen=True)
class Rejection:
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


def reject(code: str, message: str, **details: Any) -> Rejection:
    return Rejection(code=code, message=message, details=dict(details))


def dead_company() -> Rejection:
    return Rejection(code=COMPANY_DEAD, message="This company is no longer operating.")
