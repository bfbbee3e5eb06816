"""
Memory Model and Card Scheduling Facade.

Implements:
- A difficulty/stability memory model (FSRS-5 formulas, default weights)
- Intraday learning and relearning steps around long-term review
- The two-button facade ("forgot" / "remembered") used by the session runner

Rating Scale:
1 - Again: forgot the answer
2 - Hard: recalled with serious difficulty
3 - Good: recalled after some thought
4 - Easy: recalled instantly

Every function here is pure. The clock is always passed in as ``now``;
nothing reads the system time except ``is_due`` when no reference time
is given.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import NamedTuple

from loguru import logger

from .errors import InvalidArgumentError
from .models import Card, CardState, MemoryState, utcnow

# =============================================================================
# Constants
# =============================================================================

DECAY = -0.5
FACTOR = 19 / 81  # Makes R(S, S) == 0.9

# FSRS-5 default parameters
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.40255, 1.18385, 3.173, 15.69105, 7.1949,
    0.5345, 1.4604, 0.0046, 1.54575, 0.1192,
    1.01925, 1.9395, 0.11, 0.29605, 2.2698,
    0.2315, 2.9898, 0.51655, 0.6621,
)

STABILITY_MIN = 0.01
DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0

SECONDS_PER_DAY = 86400


class Rating(IntEnum):
    """Memory-model rating vocabulary."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class Outcome(Enum):
    """Two-button review outcome shown to the learner."""

    FORGOT = "forgot"
    REMEMBERED = "remembered"


OUTCOME_RATINGS: dict[Outcome, Rating] = {
    Outcome.FORGOT: Rating.AGAIN,
    Outcome.REMEMBERED: Rating.GOOD,
}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _interval_days(due: datetime, now: datetime) -> int:
    """Whole days between ``now`` and ``due``, never negative."""
    days = (due - now).total_seconds() / SECONDS_PER_DAY
    return max(0, _round_half_up(days))


# =============================================================================
# Configuration & Results
# =============================================================================


def _validate_steps(name: str, steps: tuple[timedelta, ...], allow_empty: bool) -> None:
    if not steps and not allow_empty:
        raise InvalidArgumentError(f"{name} must contain at least one step")
    previous = timedelta(0)
    for step in steps:
        if step <= previous:
            raise InvalidArgumentError(f"{name} must be positive and strictly ascending")
        if step >= timedelta(days=1):
            raise InvalidArgumentError(f"{name} must be shorter than one day")
        previous = step


@dataclass
class SchedulerConfig:
    """Configuration for the memory model."""

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    desired_retention: float = 0.9
    maximum_interval: int = 36500  # Days
    learning_steps: tuple[timedelta, ...] = (timedelta(minutes=1), timedelta(minutes=10))
    relearning_steps: tuple[timedelta, ...] = (timedelta(minutes=10),)

    def __post_init__(self) -> None:
        self.weights = tuple(self.weights)
        self.learning_steps = tuple(self.learning_steps)
        self.relearning_steps = tuple(self.relearning_steps)

        if len(self.weights) != len(DEFAULT_WEIGHTS):
            raise InvalidArgumentError(
                f"Expected {len(DEFAULT_WEIGHTS)} weights, got {len(self.weights)}"
            )
        if not 0.0 < self.desired_retention < 1.0:
            raise InvalidArgumentError("desired_retention must be between 0 and 1")
        if self.maximum_interval < 1:
            raise InvalidArgumentError("maximum_interval must be at least 1 day")

        # Remembered must never schedule sooner than forgot
        _validate_steps("learning_steps", self.learning_steps, allow_empty=False)
        _validate_steps("relearning_steps", self.relearning_steps, allow_empty=True)


class SchedulingResult(NamedTuple):
    """Outcome of scheduling one review; unpacks as (state, due, interval_days)."""

    state: MemoryState
    due: datetime
    interval_days: int


@dataclass(frozen=True)
class IntervalPreview:
    """Days until the next review for each answer button."""

    forgot: int
    remembered: int


# =============================================================================
# Memory Model
# =============================================================================


class MemoryScheduler:
    """
    Difficulty/stability spaced repetition model.

    Each card carries:
    - Stability (S): days until recall probability decays to 90%
    - Difficulty (D): 1 (easy) to 10 (hard), drifts with each rating
    - Retrievability (R): current recall probability, derived from S
      and the time since the last review

    New cards walk through intraday learning steps before graduating to
    day-scale review. Forgetting a graduated card sends it through the
    relearning steps (or straight back to review when there are none).
    """

    def __init__(self, config: SchedulerConfig | None = None):
        """
        Initialize the memory model.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SchedulerConfig()
        self.w = self.config.weights

    def empty_state(self, now: datetime) -> MemoryState:
        """State of a card that has never been reviewed."""
        return MemoryState(state=CardState.NEW, due=now)

    # -------------------------------------------------------------------------
    # Formulas
    # -------------------------------------------------------------------------

    def retrievability(self, state: MemoryState, now: datetime) -> float:
        """Probability of recall at ``now``."""
        if state.state is CardState.NEW or state.stability <= 0:
            return 0.0
        return self._forgetting_curve(self._elapsed_days(state, now), state.stability)

    def next_interval(self, stability: float) -> int:
        """Interval in days at which recall decays to the desired retention."""
        raw = stability / FACTOR * (self.config.desired_retention ** (1 / DECAY) - 1)
        return min(max(1, _round_half_up(raw)), self.config.maximum_interval)

    @staticmethod
    def _forgetting_curve(elapsed_days: float, stability: float) -> float:
        return (1 + FACTOR * elapsed_days / stability) ** DECAY

    @staticmethod
    def _elapsed_days(state: MemoryState, now: datetime) -> float:
        if state.last_review is None:
            return 0.0
        return max(0.0, (now - state.last_review).total_seconds() / SECONDS_PER_DAY)

    @staticmethod
    def _clamp_difficulty(value: float) -> float:
        return min(max(value, DIFFICULTY_MIN), DIFFICULTY_MAX)

    def _initial_stability(self, rating: Rating) -> float:
        return max(self.w[rating - 1], STABILITY_MIN)

    def _initial_difficulty(self, rating: Rating) -> float:
        return self._clamp_difficulty(self.w[4] - math.exp(self.w[5] * (rating - 1)) + 1)

    def _next_difficulty(self, difficulty: float, rating: Rating) -> float:
        delta = -self.w[6] * (rating - 3)
        damped = difficulty + delta * (10 - difficulty) / 9
        reverted = self.w[7] * self._initial_difficulty(Rating.EASY) + (1 - self.w[7]) * damped
        return self._clamp_difficulty(reverted)

    def _short_term_stability(self, stability: float, rating: Rating) -> float:
        return max(stability * math.exp(self.w[17] * (rating - 3 + self.w[18])), STABILITY_MIN)

    def _recall_stability(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        hard_penalty = self.w[15] if rating == Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating == Rating.EASY else 1.0
        growth = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** -self.w[9]
            * (math.exp(self.w[10] * (1 - retrievability)) - 1)
            * hard_penalty
            * easy_bonus
        )
        return max(stability * (1 + growth), STABILITY_MIN)

    def _forget_stability(
        self, difficulty: float, stability: float, retrievability: float
    ) -> float:
        forgotten = (
            self.w[11]
            * difficulty ** -self.w[12]
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp(self.w[14] * (1 - retrievability))
        )
        return max(min(forgotten, stability), STABILITY_MIN)

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def review(self, state: MemoryState, rating: Rating | int, now: datetime) -> SchedulingResult:
        """
        Calculate the memory state after a review.

        Args:
            state: Current memory state (left untouched)
            rating: Rating 1-4
            now: Review timestamp

        Returns:
            SchedulingResult with the new state, due date and interval
        """
        rating = _coerce_rating(rating)
        lifecycle = state.state

        if lifecycle is CardState.NEW:
            new_state = self._review_new(state, rating, now)
        elif lifecycle is CardState.LEARNING or lifecycle is CardState.RELEARNING:
            new_state = self._review_learning(state, rating, now)
        elif lifecycle is CardState.REVIEW:
            new_state = self._review_graduated(state, rating, now)
        else:
            raise InvalidArgumentError(f"Unknown lifecycle state: {lifecycle!r}")

        interval = _interval_days(new_state.due, now)
        logger.debug(
            f"Scheduled {lifecycle.value} -> {new_state.state.value}: rating={rating.name}, "
            f"S={new_state.stability:.2f}, D={new_state.difficulty:.2f}, interval={interval}d"
        )
        return SchedulingResult(state=new_state, due=new_state.due, interval_days=interval)

    def preview(self, state: MemoryState, now: datetime) -> IntervalPreview:
        """Intervals for both answer buttons, without changing ``state``."""
        return IntervalPreview(
            forgot=self.review(state, OUTCOME_RATINGS[Outcome.FORGOT], now).interval_days,
            remembered=self.review(state, OUTCOME_RATINGS[Outcome.REMEMBERED], now).interval_days,
        )

    def _review_new(self, state: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        stability = self._initial_stability(rating)
        difficulty = self._initial_difficulty(rating)
        return self._advance_steps(
            state, CardState.LEARNING, self.config.learning_steps, 0,
            rating, stability, difficulty, now,
        )

    def _review_learning(self, state: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        elapsed = self._elapsed_days(state, now)
        difficulty = self._next_difficulty(state.difficulty, rating)

        if elapsed < 1:
            stability = self._short_term_stability(state.stability, rating)
        else:
            r = self._forgetting_curve(elapsed, state.stability)
            if rating == Rating.AGAIN:
                stability = self._forget_stability(state.difficulty, state.stability, r)
            else:
                stability = self._recall_stability(state.difficulty, state.stability, r, rating)

        if state.state is CardState.RELEARNING:
            steps = self.config.relearning_steps
        else:
            steps = self.config.learning_steps

        return self._advance_steps(
            state, state.state, steps, state.step or 0,
            rating, stability, difficulty, now,
        )

    def _review_graduated(self, state: MemoryState, rating: Rating, now: datetime) -> MemoryState:
        r = self._forgetting_curve(self._elapsed_days(state, now), state.stability)
        difficulty = self._next_difficulty(state.difficulty, rating)

        if rating != Rating.AGAIN:
            stability = self._recall_stability(state.difficulty, state.stability, r, rating)
            return self._graduate(state, stability, difficulty, now)

        stability = self._forget_stability(state.difficulty, state.stability, r)
        lapsed = replace(state, lapses=state.lapses + 1)

        if not self.config.relearning_steps:
            return self._graduate(lapsed, stability, difficulty, now)

        first_step = self.config.relearning_steps[0]
        return replace(
            lapsed,
            state=CardState.RELEARNING,
            due=now + first_step,
            stability=stability,
            difficulty=difficulty,
            last_review=now,
            review_count=state.review_count + 1,
            step=0,
            scheduled_days=0,
        )

    def _advance_steps(
        self,
        state: MemoryState,
        lifecycle: CardState,
        steps: tuple[timedelta, ...],
        step: int,
        rating: Rating,
        stability: float,
        difficulty: float,
        now: datetime,
    ) -> MemoryState:
        """Move through intraday steps, graduating past the last one."""
        if not steps:
            return self._graduate(state, stability, difficulty, now)

        step = min(step, len(steps) - 1)
        if rating == Rating.AGAIN:
            next_step = 0
        elif rating == Rating.HARD:
            next_step = step
        elif rating == Rating.GOOD:
            next_step = step + 1
        else:
            next_step = len(steps)

        if next_step >= len(steps):
            return self._graduate(state, stability, difficulty, now)

        return replace(
            state,
            state=lifecycle,
            due=now + steps[next_step],
            stability=stability,
            difficulty=difficulty,
            last_review=now,
            review_count=state.review_count + 1,
            step=next_step,
            scheduled_days=0,
        )

    def _graduate(
        self, state: MemoryState, stability: float, difficulty: float, now: datetime
    ) -> MemoryState:
        interval = self.next_interval(stability)
        return replace(
            state,
            state=CardState.REVIEW,
            due=now + timedelta(days=interval),
            stability=stability,
            difficulty=difficulty,
            last_review=now,
            review_count=state.review_count + 1,
            step=None,
            scheduled_days=interval,
        )


def _coerce_rating(rating: Rating | int) -> Rating:
    try:
        return Rating(rating)
    except ValueError:
        raise InvalidArgumentError(f"Rating must be 1-4, got {rating!r}") from None


def _coerce_outcome(outcome: Outcome | str) -> Outcome:
    try:
        return Outcome(outcome)
    except ValueError:
        raise InvalidArgumentError(
            f"Outcome must be 'forgot' or 'remembered', got {outcome!r}"
        ) from None


# =============================================================================
# Scheduling Facade
# =============================================================================

_default_scheduler = MemoryScheduler()

_STATE_NAMES: dict[CardState, str] = {
    CardState.NEW: "New",
    CardState.LEARNING: "Learning",
    CardState.REVIEW: "Review",
    CardState.RELEARNING: "Relearning",
}


def empty_memory_state(now: datetime) -> MemoryState:
    """Memory state for a brand-new card: lifecycle new, due at ``now``."""
    return _default_scheduler.empty_state(now)


def schedule_review(
    state: MemoryState,
    outcome: Outcome | str,
    now: datetime,
    scheduler: MemoryScheduler | None = None,
) -> SchedulingResult:
    """
    Schedule a card after the learner answers.

    Args:
        state: Current memory state
        outcome: "forgot" or "remembered"
        now: Review timestamp
        scheduler: Memory model to use (module default if None)

    Returns:
        SchedulingResult with the new state, due date and interval in days
    """
    rating = OUTCOME_RATINGS[_coerce_outcome(outcome)]
    return (scheduler or _default_scheduler).review(state, rating, now)


def preview_intervals(
    state: MemoryState,
    now: datetime,
    scheduler: MemoryScheduler | None = None,
) -> IntervalPreview:
    """Intervals each button would produce, without touching ``state``."""
    return (scheduler or _default_scheduler).preview(state, now)


def review_card(
    card: Card,
    outcome: Outcome | str,
    now: datetime,
    scheduler: MemoryScheduler | None = None,
) -> tuple[Card, SchedulingResult]:
    """Return an updated copy of ``card`` and its scheduling result."""
    result = schedule_review(card.memory, outcome, now, scheduler)
    return replace(card, memory=result.state, updated_at=now), result


def format_interval(days: int) -> str:
    """
    Format an interval for display.

    e.g., "< 1 day", "3 days", "1 week", "2 months", "3 years"
    """
    if days < 0:
        raise InvalidArgumentError(f"Interval cannot be negative: {days}")
    if days == 0:
        return "< 1 day"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 14:
        return "1 week"
    if days < 30:
        return f"{_round_half_up(days / 7)} weeks"
    if days < 60:
        return "1 month"
    if days < 365:
        return f"{_round_half_up(days / 30)} months"
    if days < 730:
        return "1 year"
    return f"{_round_half_up(days / 365)} years"


def is_due(card: Card, as_of: datetime | None = None) -> bool:
    """Whether ``card`` is due at ``as_of`` (inclusive)."""
    return card.due <= (as_of or utcnow())


def get_state_name(state: object) -> str:
    """Display name for a lifecycle state."""
    if isinstance(state, CardState):
        return _STATE_NAMES[state]
    return "Unknown"


def calculate_retention(remembered: int, total: int) -> float:
    """Fraction of reviews remembered, 0.0 when there were none."""
    if remembered < 0 or total < 0:
        raise InvalidArgumentError("Review counts cannot be negative")
    if total == 0:
        return 0.0
    return remembered / total
