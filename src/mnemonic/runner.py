"""
Review Session Runner.

Drives one study session end to end:
1. Build the queue and persist a new active session
2. Show the current card with both interval previews
3. On each answer: schedule (pure), then persist card, daily stats
   and session as separate writes
4. Close the session with summary stats when the queue runs out or
   the learner stops

A session left active (e.g. the process exited) can be resumed.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime

from loguru import logger

from .errors import NoActiveSessionError
from .models import Card, CardState, ReviewSession, SessionMode, SessionStats, utcnow
from .queue_builder import Clock, QueueBuilder, QueueOptions
from .scheduler import (
    IntervalPreview,
    MemoryScheduler,
    Outcome,
    SchedulingResult,
    preview_intervals,
    review_card,
)
from .stats import add_time, empty_daily_stats, record_review
from .store import ReviewStore


class ReviewRunner:
    """
    Steps through a session queue, scheduling and recording each answer.

    Only one session is active at a time; starting a new one closes any
    session still marked active in the store.
    """

    def __init__(
        self,
        store: ReviewStore,
        queue_builder: QueueBuilder | None = None,
        scheduler: MemoryScheduler | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the runner.

        Args:
            store: Storage for cards, sessions and daily stats
            queue_builder: Queue builder (created over ``store`` if None)
            scheduler: Memory model (module default if None)
            clock: Returns the current time (injected for tests)
        """
        self.store = store
        self.queue_builder = queue_builder or QueueBuilder(store, clock)
        self.scheduler = scheduler
        self.clock = clock

        self.session: ReviewSession | None = None
        self.queue: list[Card] = []
        self.position = 0
        self.completed_stats: SessionStats | None = None

        self._run_started: datetime | None = None
        self._prior_time_ms = 0

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def start_session(
        self,
        mode: SessionMode | str | None = None,
        topic_ids: Sequence[str] | None = None,
        options: QueueOptions | None = None,
    ) -> ReviewSession | None:
        """
        Build a queue and open a new session.

        Args:
            mode: micro, standard or topic (``options.mode`` if None)
            topic_ids: Optional topic filter (``options.topic_ids`` if empty)
            options: Full queue options

        Returns:
            The new session, or None when nothing is due
        """
        options = options or QueueOptions()
        options = QueueOptions(
            mode=mode if mode is not None else options.mode,
            topic_ids=list(topic_ids or options.topic_ids),
            micro_limit=options.micro_limit,
            new_card_limit=options.new_card_limit,
            interleave_related=options.interleave_related,
        )

        result = self.queue_builder.build_queue(options)
        cards = self._load_cards(result.card_ids)
        if not cards:
            logger.info("Nothing due; no session started")
            return None

        self._close_stale_session()

        now = self.clock()
        session = ReviewSession(
            id=str(uuid.uuid4()),
            mode=options.mode,
            card_ids=[c.id for c in cards],
            started_at=now,
            topic_ids=list(options.topic_ids),
        )
        self.store.upsert_session(session)
        self._activate(session, cards, now)

        logger.info(
            f"Session {session.id[:8]} started ({options.mode.value}): "
            f"{len(cards)} cards, {result.total_due} due + {result.total_new} new"
        )
        return session

    def resume_session(self) -> ReviewSession | None:
        """
        Restore the active session from the store.

        Returns:
            The session, or None when there is nothing left to resume
        """
        session = self.store.get_active_session()
        if session is None or session.is_exhausted:
            return None

        done = set(session.completed_card_ids)
        remaining = [cid for cid in session.remaining_card_ids if cid not in done]
        cards = self._load_cards(remaining)
        if not cards:
            return None

        self._activate(session, cards, self.clock())
        self._prior_time_ms = session.total_time_ms

        logger.info(f"Session {session.id[:8]} resumed: {len(cards)} cards left")
        return session

    def end_session(self) -> SessionStats:
        """
        Close the current session.

        Returns:
            SessionStats with accuracy and average time per card
        """
        session = self._require_session()
        now = self.clock()
        total_ms = self._elapsed_ms(now)

        session.is_active = False
        session.completed_at = now
        session.total_time_ms = total_ms
        self.store.upsert_session(session)

        today = now.date()
        daily = self.store.get_daily_stats(today.isoformat()) or empty_daily_stats(today)
        self.store.upsert_daily_stats(add_time(daily, total_ms))

        reviewed = session.cards_reviewed
        stats = SessionStats(
            cards_reviewed=reviewed,
            cards_remembered=session.cards_remembered,
            cards_forgot=session.cards_forgot,
            accuracy=session.cards_remembered / reviewed if reviewed else 0.0,
            average_time_per_card=total_ms / reviewed if reviewed else 0.0,
            total_time_ms=total_ms,
        )

        logger.info(
            f"Session {session.id[:8]} complete: {reviewed} reviewed, "
            f"{stats.accuracy:.0%} accuracy, {total_ms / 1000:.0f}s"
        )

        self.completed_stats = stats
        self.session = None
        self.queue = []
        self.position = 0
        self._run_started = None
        self._prior_time_ms = 0
        return stats

    # =========================================================================
    # Reviewing
    # =========================================================================

    @property
    def is_active(self) -> bool:
        return self.session is not None

    @property
    def current_card(self) -> Card | None:
        if self.session is None or self.position >= len(self.queue):
            return None
        return self.queue[self.position]

    @property
    def remaining(self) -> int:
        return max(0, len(self.queue) - self.position)

    def intervals(self) -> IntervalPreview | None:
        """Preview of both answers for the current card."""
        card = self.current_card
        if card is None:
            return None
        return preview_intervals(card.memory, self.clock(), self.scheduler)

    def submit_response(self, remembered: bool) -> SchedulingResult:
        """
        Answer the current card and advance.

        The card is scheduled first; the card, today's stats and the
        session are then written. The session closes itself after the
        last card, leaving its summary in ``completed_stats``.

        Args:
            remembered: Whether the learner recalled the answer

        Returns:
            SchedulingResult for the answered card
        """
        session = self._require_session()
        card = self.current_card
        if card is None:
            raise NoActiveSessionError("Session has no cards left")

        now = self.clock()
        is_new = card.state is CardState.NEW
        outcome = Outcome.REMEMBERED if remembered else Outcome.FORGOT

        updated, result = review_card(card, outcome, now, self.scheduler)

        self.store.upsert_card(updated)

        today = now.date()
        daily = self.store.get_daily_stats(today.isoformat()) or empty_daily_stats(today)
        self.store.upsert_daily_stats(record_review(daily, remembered, is_new))

        session.cards_reviewed += 1
        if remembered:
            session.cards_remembered += 1
        else:
            session.cards_forgot += 1
        session.completed_card_ids.append(card.id)
        session.current_index = session.card_ids.index(card.id) + 1
        session.total_time_ms = self._elapsed_ms(now)
        self.store.upsert_session(session)

        self.queue[self.position] = updated
        self.position += 1

        logger.debug(
            f"Card {card.id[:8]} {outcome.value}: next in {result.interval_days}d "
            f"({self.remaining} left)"
        )

        if self.position >= len(self.queue):
            self.end_session()

        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_session(self) -> ReviewSession:
        if self.session is None:
            raise NoActiveSessionError("No review session is running")
        return self.session

    def _load_cards(self, card_ids: Sequence[str]) -> list[Card]:
        cards = []
        for card_id in card_ids:
            card = self.store.get_card_by_id(card_id)
            if card is None:
                logger.debug(f"Skipping missing card {card_id}")
                continue
            cards.append(card)
        return cards

    def _activate(self, session: ReviewSession, cards: list[Card], now: datetime) -> None:
        self.session = session
        self.queue = cards
        self.position = 0
        self.completed_stats = None
        self._run_started = now
        self._prior_time_ms = 0

    def _close_stale_session(self) -> None:
        """Close sessions left active, crediting their recorded time to the day they started."""
        stale = self.store.get_active_session()
        while stale is not None:
            stale.is_active = False
            stale.completed_at = self.clock()
            self.store.upsert_session(stale)

            if stale.total_time_ms:
                day = stale.started_at.date()
                daily = self.store.get_daily_stats(day.isoformat()) or empty_daily_stats(day)
                self.store.upsert_daily_stats(add_time(daily, stale.total_time_ms))

            logger.info(
                f"Closed abandoned session {stale.id[:8]} ({stale.total_time_ms / 1000:.0f}s recorded)"
            )
            stale = self.store.get_active_session()

    def _elapsed_ms(self, now: datetime) -> int:
        if self._run_started is None:
            return self._prior_time_ms
        run_ms = int((now - self._run_started).total_seconds() * 1000)
        return self._prior_time_ms + max(0, run_ms)
