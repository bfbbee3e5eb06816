"""
Review Queue Builder.

Builds the ordered card-id queue for a session:
1. Due cards (learning/relearning first, then review), optionally topic-filtered
2. A capped batch of new cards, in creation order
3. Topic interleaving so related material is spaced apart
4. Micro sessions truncated to a short fixed length

Building a queue never writes to the store.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from .errors import InvalidArgumentError
from .models import Card, CardState, SessionMode, utcnow
from .store import ReviewStore
from .topics import TopicRelationIndex

Clock = Callable[[], datetime]

# =============================================================================
# Options & Results
# =============================================================================


@dataclass
class QueueOptions:
    """Options for building a session queue."""

    mode: SessionMode = SessionMode.STANDARD
    topic_ids: list[str] = field(default_factory=list)
    micro_limit: int = 12
    new_card_limit: int = 5
    interleave_related: bool = True

    def __post_init__(self) -> None:
        try:
            self.mode = SessionMode(self.mode)
        except ValueError:
            raise InvalidArgumentError(f"Unknown session mode: {self.mode!r}") from None
        self.topic_ids = list(self.topic_ids or [])
        if self.micro_limit < 0 or self.new_card_limit < 0:
            raise InvalidArgumentError("Queue limits cannot be negative")


@dataclass
class QueueResult:
    """An ordered session queue plus pool sizes."""

    card_ids: list[str]
    total_due: int
    total_new: int


@dataclass
class DueBreakdown:
    """Due cards by lifecycle, plus the full new-card pool."""

    learning: int = 0
    review: int = 0
    new: int = 0

    @property
    def total(self) -> int:
        return self.learning + self.review + self.new


# =============================================================================
# Pool helpers
# =============================================================================


def _filter_topics(cards: Iterable[Card], topic_ids: Sequence[str] | None) -> list[Card]:
    """Keep cards sharing a topic with ``topic_ids``; empty filter keeps all."""
    if not topic_ids:
        return list(cards)
    wanted = set(topic_ids)
    return [c for c in cards if c.shares_topic(wanted)]


def _partition_due(cards: Iterable[Card]) -> tuple[list[Card], list[Card]]:
    """Split due cards into (learning + relearning, review); new cards are dropped."""
    learning: list[Card] = []
    review: list[Card] = []

    for card in cards:
        state = card.state
        if state is CardState.LEARNING or state is CardState.RELEARNING:
            learning.append(card)
        elif state is CardState.REVIEW:
            review.append(card)
        elif state is CardState.NEW:
            continue
        else:
            raise InvalidArgumentError(f"Unknown lifecycle state: {state!r}")

    return learning, review


# =============================================================================
# Topic Interleaving
# =============================================================================

_START = object()


def interleave_by_topic(cards: Sequence[Card], relations: TopicRelationIndex) -> list[Card]:
    """
    Reorder cards so consecutive cards avoid the same or related topics.

    Cards are grouped by their first topic id (cards without topics share
    one group) in order of first appearance. Each step takes the next card
    from the first non-empty group that is neither the previous group nor
    in the previous group's related set; when every candidate is blocked,
    the first non-empty group is used.

    Args:
        cards: Queue in pool order (not modified)
        relations: Directed topic relations

    Returns:
        A permutation of ``cards``
    """
    if len(cards) <= 2:
        return list(cards)

    groups: dict[str | None, list[Card]] = {}
    for card in cards:
        groups.setdefault(card.primary_topic_id, []).append(card)

    keys = list(groups)
    cursors = dict.fromkeys(keys, 0)

    def has_cards(key: str | None) -> bool:
        return cursors[key] < len(groups[key])

    result: list[Card] = []
    previous: object = _START
    blocked: frozenset[str] = frozenset()

    while len(result) < len(cards):
        candidates = [k for k in keys if has_cards(k)]
        chosen = next(
            (k for k in candidates if k != previous and k not in blocked),
            candidates[0],
        )

        result.append(groups[chosen][cursors[chosen]])
        cursors[chosen] += 1
        previous = chosen
        blocked = relations.related_to(chosen)

    return result


# =============================================================================
# Queue Builder
# =============================================================================


class QueueBuilder:
    """
    Selects, orders and interleaves cards for a review session.

    Pools are read from the store on every call; the clock decides what
    counts as due.
    """

    def __init__(self, store: ReviewStore, clock: Clock = utcnow):
        """
        Initialize the queue builder.

        Args:
            store: Card and topic storage
            clock: Returns the current time (injected for tests)
        """
        self.store = store
        self.clock = clock

    def _due_pools(self, topic_ids: Sequence[str] | None) -> tuple[list[Card], list[Card]]:
        due = _filter_topics(self.store.get_due_cards(self.clock()), topic_ids)
        return _partition_due(due)

    def _new_pool(self, topic_ids: Sequence[str] | None) -> list[Card]:
        return _filter_topics(self.store.get_new_cards(), topic_ids)

    def build_queue(self, options: QueueOptions | None = None) -> QueueResult:
        """
        Build a session queue.

        Args:
            options: Queue options (defaults if None)

        Returns:
            QueueResult with ordered card ids and pool sizes
        """
        options = options or QueueOptions()

        learning, review = self._due_pools(options.topic_ids)
        new_cards = self._new_pool(options.topic_ids)[: options.new_card_limit]

        logger.debug(
            f"Pools: {len(learning)} learning, {len(review)} review, "
            f"{len(new_cards)} new (cap {options.new_card_limit})"
        )

        queue = [*learning, *review, *new_cards]

        if options.interleave_related:
            relations = TopicRelationIndex.from_topics(self.store.get_all_topics())
            queue = interleave_by_topic(queue, relations)

        if options.mode is SessionMode.MICRO:
            queue = queue[: options.micro_limit]

        result = QueueResult(
            card_ids=[c.id for c in queue],
            total_due=len(learning) + len(review),
            total_new=len(new_cards),
        )

        logger.debug(
            f"Queue built ({options.mode.value}): {len(result.card_ids)} cards, "
            f"{result.total_due} due + {result.total_new} new"
        )
        return result

    def get_due_count(self, topic_ids: Sequence[str] | None = None) -> int:
        """Number of learning, relearning and review cards due now."""
        learning, review = self._due_pools(topic_ids)
        return len(learning) + len(review)

    def get_due_breakdown(self, topic_ids: Sequence[str] | None = None) -> DueBreakdown:
        """
        Due counts by lifecycle.

        ``new`` is the whole filtered new-card pool; unlike ``build_queue``
        it is not capped by the new-card limit.
        """
        learning, review = self._due_pools(topic_ids)
        return DueBreakdown(
            learning=len(learning),
            review=len(review),
            new=len(self._new_pool(topic_ids)),
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def build_queue(
    store: ReviewStore, options: QueueOptions | None = None, clock: Clock = utcnow
) -> QueueResult:
    """Build a session queue from ``store``."""
    return QueueBuilder(store, clock).build_queue(options)


def get_due_count(
    store: ReviewStore, topic_ids: Sequence[str] | None = None, clock: Clock = utcnow
) -> int:
    """Number of due learning/review cards in ``store``."""
    return QueueBuilder(store, clock).get_due_count(topic_ids)


def get_due_breakdown(
    store: ReviewStore, topic_ids: Sequence[str] | None = None, clock: Clock = utcnow
) -> DueBreakdown:
    """Due counts by lifecycle for ``store``."""
    return QueueBuilder(store, clock).get_due_breakdown(topic_ids)
