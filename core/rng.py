"""
core.rng
Deterministic RNG helpers that do NOT rely on Python's built-in hash().

Every random draw in the engine goes through a `random.Random` built here
and passed in explicitly. Same (base_seed + inputs) => same run.
"""

from __future__ import annotations

import hashlib
import json
import random
from typing import Any, List, Sequence, TypeVar

T = TypeVar("T")


def stable_int_seed(*parts: Any, salt: str = "startup-survivor-engine") -> int:
    """Return a stable 32-bit integer seed derived from arbitrary inputs.

    Uses SHA-256 over a canonical JSON representation of `parts`.
    This avoids Python's randomized hash() and is stable across processes/platforms.

    Notes:
    - `default=str` ensures non-JSON types still serialize deterministically enough for our usage.
    - Output is 0..2**32-1 (works with random.Random).
    """
    payload = json.dumps(parts, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    h = hashlib.sha256((salt + "|" + payload).encode("utf-8")).digest()
    return int.from_bytes(h[:4], "big", signed=False)


def rng_from(*parts: Any, base_seed: int) -> random.Random:
    """Create a Random instance from (base_seed + parts)."""
    seed = stable_int_seed(base_seed, *parts)
    return random.Random(seed)


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    """Return a shuffled copy; the input is left untouched."""
    out = list(items)
    rng.shuffle(out)
    return out


def weighted_choice(items: Sequence[T], weights: Sequence[float], rng: random.Random) -> T:
    """Roulette-wheel pick. Non-positive total falls back to a uniform pick."""
    if not items:
        raise ValueError("weighted_choice() needs at least one item")
    if len(items) != len(weights):
        raise ValueError("items and weights must have the same length")

    total = float(sum(max(0.0, float(w)) for w in weights))
    if total <= 0.0:
        return items[rng.randrange(len(items))]

    roll = rng.random() * total
    for item, w in zip(items, weights):
        roll -= max(0.0, float(w))
        if roll <= 0.0:
            return item
    return items[-1]
