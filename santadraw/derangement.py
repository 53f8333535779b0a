"""
Draw engine: a random giver -> receiver assignment with no self-assignment.

Pure computation. Nothing here touches the database, the app config, or the
caller's sequence; the group workflow in ``services.draw`` wraps it.
"""
from __future__ import annotations

import logging
import random
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Hashable, MutableSequence, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
RngLike = Union[None, int, random.Random]
ShuffleFn = Callable[[MutableSequence, random.Random], None]

DEFAULT_MIN_SIZE = 3
DEFAULT_MAX_ATTEMPTS = 10


class DrawError(RuntimeError):
    pass


class InsufficientParticipantsError(DrawError):
    def __init__(self, count: int, min_size: int):
        self.count = count
        self.min_size = min_size
        super().__init__(f"A draw needs at least {min_size} confirmed participants (got {count}).")


class DerangementGenerationError(DrawError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not produce a valid draw after {attempts} attempts. Please try again.")


class DuplicateParticipantError(ValueError):
    pass


@dataclass(frozen=True)
class Participant:
    id: Hashable
    name: str = ""


@dataclass(frozen=True)
class Assignment:
    giver: Participant
    receiver: Participant
    created_at: datetime


@dataclass(frozen=True)
class DrawResult:
    assignments: tuple[Assignment, ...]
    seed: str
    attempts: int

    def as_pairs(self) -> list[tuple[Hashable, Hashable]]:
        return [(a.giver.id, a.receiver.id) for a in self.assignments]

    def as_mapping(self) -> dict[Hashable, Hashable]:
        return {a.giver.id: a.receiver.id for a in self.assignments}


def _normalize_rng(rng: RngLike) -> random.Random:
    if isinstance(rng, random.Random):
        return rng
    if isinstance(rng, int):
        return random.Random(rng)
    return random.Random()


def restricted_shuffle(seq: MutableSequence[T], rng: random.Random) -> None:
    """
    Backward Fisher-Yates where the cursor element always swaps with a slot
    strictly before it (Sattolo). Produces a single cycle over the positions,
    so no element stays where it started.
    """
    i = len(seq)
    while i > 1:
        j = rng.randrange(i - 1)
        i -= 1
        seq[i], seq[j] = seq[j], seq[i]


def uniform_shuffle(seq: MutableSequence[T], rng: random.Random) -> None:
    """Plain Fisher-Yates; any permutation, fixed points included."""
    rng.shuffle(seq)


SHUFFLE_STRATEGIES: dict[str, ShuffleFn] = {
    "restricted": restricted_shuffle,
    "uniform": uniform_shuffle,
}


def _has_fixed_point(givers: Sequence[Participant], receivers: Sequence[Participant]) -> bool:
    return any(g.id == r.id for g, r in zip(givers, receivers))


def generate(
    participants: Sequence[Participant],
    min_size: int = DEFAULT_MIN_SIZE,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rng: RngLike = None,
    shuffle: ShuffleFn | None = None,
) -> DrawResult:
    """
    Pair every participant with another one so that each gives exactly once
    and receives exactly once, and nobody draws themselves.

    Giver order in the result follows the input order. Raises
    InsufficientParticipantsError below ``min_size`` and
    DerangementGenerationError once ``max_attempts`` shuffles all failed
    validation.
    """
    givers = list(participants)
    if len(givers) < min_size:
        raise InsufficientParticipantsError(len(givers), min_size)

    ids = [p.id for p in givers]
    if len(set(ids)) != len(ids):
        raise DuplicateParticipantError("Participant ids must be unique within a draw.")

    rnd = _normalize_rng(rng)
    shuffle_fn = shuffle or restricted_shuffle

    for attempt in range(1, max_attempts + 1):
        receivers = givers[:]
        shuffle_fn(receivers, rnd)
        if _has_fixed_point(givers, receivers):
            logger.debug("Draw attempt %d/%d rejected: self-assignment", attempt, max_attempts)
            continue

        now = datetime.now(timezone.utc)
        assignments = tuple(
            Assignment(giver=g, receiver=r, created_at=now) for g, r in zip(givers, receivers)
        )
        return DrawResult(assignments=assignments, seed=secrets.token_urlsafe(9), attempts=attempt)

    raise DerangementGenerationError(max_attempts)
