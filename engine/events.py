"""engine.events

Event resolution:
- daily action set generation
- action -> pending events (shuffled choices, neutral labels)
- choice resolution through the ledger

Choice labels ("Option A".."Option D") are assigned after shuffling, so
neither label nor position says anything about the outcome type.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from content.repository import ContentRepository
from content.schemas import ACTION_CATEGORIES, EventDef
from core.effects import add_pending_events, mark_action_selected, remove_pending_event
from core.errors import (
    ACTION_ALREADY_SELECTED,
    ACTION_LOCKED,
    EVENT_NOT_PENDING,
    INSUFFICIENT_ACTION_POINTS,
    NO_EVENTS,
    NOT_FOUND,
    PENDING_EVENTS,
    Rejection,
    dead_company,
    reject,
)
from core.modes import DifficultyConfig
from core.progression import LevelUp
from core.rng import shuffled
from core.state import SPECIAL_EVENT_ACTION_ID, Company, DailyAction, EventChoice, PendingEvent

from .modifiers import (
    BROADCAST_DURATION,
    apply_outcome,
    pick_special_event,
    should_spawn_special_event,
)

OPTION_LABELS = ("Option A", "Option B", "Option C", "Option D")
MIN_EVENTS_PER_ACTION = 1
MAX_EVENTS_PER_ACTION = 3


@dataclass(frozen=True)
class ActionResult:
    company: Company
    events: List[PendingEvent] = field(default_factory=list)
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class ChoiceResult:
    company: Company
    event: Optional[PendingEvent] = None
    choice: Optional[EventChoice] = None
    level_up: Optional[LevelUp] = None
    rejection: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


def generate_daily_action_set(difficulty: DifficultyConfig, content: ContentRepository, rng: random.Random) -> List[DailyAction]:
    """Spread the day's offer across categories, then trim to the action limit."""
    total = int(difficulty.action_limit)
    per_category = int(math.ceil(total / float(len(ACTION_CATEGORIES))))

    picked = []
    for category in ACTION_CATEGORIES:
        pool = sorted(content.actions_in(category), key=lambda a: a.action_id)
        picked.extend(shuffled(pool, rng)[:per_category])

    return [
        DailyAction(
            action_id=a.action_id,
            category=a.category,
            name=a.name,
            description=a.description,
            weight=int(a.weight),
        )
        for a in shuffled(picked, rng)[:total]
    ]


def build_pending_event(event: EventDef, *, action_id: str, category: str, rng: random.Random) -> PendingEvent:
    choices = shuffled(event.choices, rng)
    return PendingEvent(
        event_id=event.event_id,
        action_id=action_id,
        category=category,
        name=event.name,
        description=event.description,
        choices=[
            EventChoice(
                choice_id=c.choice_id,
                label=OPTION_LABELS[ix],
                outcome=c.outcome,
                text=c.text,
                effects=c.effects,
            )
            for ix, c in enumerate(choices)
        ],
    )


def generate_events_from_action(
    action_id: str,
    pool: Sequence[str],
    count: int,
    content: ContentRepository,
    rng: random.Random,
) -> List[PendingEvent]:
    """Draw up to `count` distinct events from the pool. Unknown ids are skipped."""
    action = content.action(action_id)
    category = action.category if action is not None else ""

    unique_pool = list(dict.fromkeys(pool))
    drawn = shuffled(unique_pool, rng)[: max(0, min(int(count), len(unique_pool)))]

    events: List[PendingEvent] = []
    for event_id in drawn:
        ev = content.event(event_id)
        if ev is None:
            continue
        events.append(build_pending_event(ev, action_id=action_id, category=category, rng=rng))
    return events


def select_choice(event: PendingEvent, choice_id: str) -> Optional[EventChoice]:
    return next((c for c in event.choices if c.choice_id == choice_id), None)


def find_pending_event(company: Company, event_id: str) -> Optional[PendingEvent]:
    return next((e for e in company.pending_events if e.event_id == event_id), None)


def _special_event(
    company: Company, content: ContentRepository, rng: random.Random, duration: int
) -> Optional[PendingEvent]:
    picked = pick_special_event(company, content, rng, duration)
    if picked is None or find_pending_event(company, picked.event_id) is not None:
        return None
    return build_pending_event(picked, action_id=SPECIAL_EVENT_ACTION_ID, category=picked.category, rng=rng)


def take_action(
    company: Company,
    action_id: str,
    content: ContentRepository,
    rng: random.Random,
    *,
    duration: int = BROADCAST_DURATION,
) -> ActionResult:
    """Select one of today's actions and queue its events.

    A special event may ride along: first a queued one from an anomaly,
    otherwise a broadcast roll. Special events cost no action points.
    """
    if not company.alive:
        return ActionResult(company, rejection=dead_company())
    if company.pending_events:
        return ActionResult(
            company,
            rejection=reject(PENDING_EVENTS, "Resolve pending events first.", pending=len(company.pending_events)),
        )

    daily = next((a for a in company.daily_actions if a.action_id == action_id), None)
    if daily is None:
        return ActionResult(company, rejection=reject(NOT_FOUND, "That action is not available today.", action_id=action_id))
    if daily.selected:
        return ActionResult(company, rejection=reject(ACTION_ALREADY_SELECTED, "Action already taken today.", action_id=action_id))
    if daily.category in company.day_modifiers.locked_categories:
        return ActionResult(company, rejection=reject(ACTION_LOCKED, "This category is locked today.", category=daily.category))
    if int(company.action_points) < int(daily.weight):
        return ActionResult(
            company,
            rejection=reject(
                INSUFFICIENT_ACTION_POINTS,
                "Not enough action points.",
                required=int(daily.weight),
                available=int(company.action_points),
            ),
        )

    action = content.action(action_id)
    if action is None:
        return ActionResult(company, rejection=reject(NOT_FOUND, "Unknown action.", action_id=action_id))

    count = rng.randint(MIN_EVENTS_PER_ACTION, MAX_EVENTS_PER_ACTION)
    events = generate_events_from_action(action_id, action.event_pool, count, content, rng)
    if not events:
        return ActionResult(company, rejection=reject(NO_EVENTS, "This action produced no events.", action_id=action_id))

    updated = mark_action_selected(company, action_id)

    special: Optional[PendingEvent] = None
    if updated.day_modifiers.special_event_queued:
        special = _special_event(updated, content, rng, duration)
        updated = replace(updated, day_modifiers=replace(updated.day_modifiers, special_event_queued=False))
    elif should_spawn_special_event(updated, content, rng, duration):
        special = _special_event(updated, content, rng, duration)
    if special is not None:
        events = [*events, special]

    return ActionResult(add_pending_events(updated, events), events=events)


def resolve_choice(
    company: Company,
    event_id: str,
    choice_id: str,
    content: ContentRepository,
    *,
    duration: int = BROADCAST_DURATION,
) -> ChoiceResult:
    """Apply the chosen option of a pending event.

    Costs one action point unless the event is a special one. With no points
    left, events stay queued and carry over to the next day.
    """
    if not company.alive:
        return ChoiceResult(company, rejection=dead_company())

    event = find_pending_event(company, event_id)
    if event is None:
        return ChoiceResult(company, rejection=reject(EVENT_NOT_PENDING, "That event is not pending.", event_id=event_id))

    choice = select_choice(event, choice_id)
    if choice is None:
        return ChoiceResult(company, event=event, rejection=reject(NOT_FOUND, "Unknown choice.", choice_id=choice_id))

    cost = 0 if event.is_special else 1
    if int(company.action_points) < cost:
        return ChoiceResult(
            company,
            event=event,
            rejection=reject(INSUFFICIENT_ACTION_POINTS, "No action points left today.", required=cost, available=0),
        )

    updated, level_up = apply_outcome(company, choice.effects, content, event.category, duration=duration)
    updated = remove_pending_event(updated, event_id)
    updated = replace(
        updated,
        action_points=max(0, int(updated.action_points) - cost),
        recent_flags=tuple(dict.fromkeys([*updated.recent_flags, *choice.effects.flags])),
    )
    return ChoiceResult(updated, event=event, choice=choice, level_up=level_up)
