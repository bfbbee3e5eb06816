"""
mnemonic: personal spaced-repetition study tool.

Cards are authored under a topic hierarchy and reviewed in sessions.
Each "forgot"/"remembered" answer feeds a memory model that decides
when the card is due again.

Components:
- MemoryScheduler: Difficulty/stability memory model
- QueueBuilder: Due/new pools, topic interleaving, session caps
- TopicRelationIndex: Directed related-topic lookup
- ReviewRunner: Session orchestration and persistence
- MemoryStore / SqliteStore: Storage adapters
"""

from .errors import InvalidArgumentError, NoActiveSessionError
from .models import (
    Card,
    CardState,
    CardType,
    DailyStats,
    MemoryState,
    ReviewSession,
    SessionMode,
    SessionStats,
    Streak,
    Topic,
)
from .queue_builder import (
    DueBreakdown,
    QueueBuilder,
    QueueOptions,
    QueueResult,
    build_queue,
    get_due_breakdown,
    get_due_count,
    interleave_by_topic,
)
from .runner import ReviewRunner
from .scheduler import (
    IntervalPreview,
    MemoryScheduler,
    Outcome,
    Rating,
    SchedulerConfig,
    SchedulingResult,
    calculate_retention,
    empty_memory_state,
    format_interval,
    get_state_name,
    is_due,
    preview_intervals,
    schedule_review,
)
from .store import MemoryStore, ReviewStore, SqliteStore
from .topics import TopicRelationIndex

__version__ = "0.1.0"

__all__ = [
    # Errors
    "InvalidArgumentError",
    "NoActiveSessionError",
    # Records
    "Card",
    "CardState",
    "CardType",
    "DailyStats",
    "MemoryState",
    "ReviewSession",
    "SessionMode",
    "SessionStats",
    "Streak",
    "Topic",
    # Memory model
    "MemoryScheduler",
    "SchedulerConfig",
    "SchedulingResult",
    "IntervalPreview",
    "Rating",
    "Outcome",
    "empty_memory_state",
    "schedule_review",
    "preview_intervals",
    "format_interval",
    "is_due",
    "get_state_name",
    "calculate_retention",
    # Queue
    "QueueBuilder",
    "QueueOptions",
    "QueueResult",
    "DueBreakdown",
    "build_queue",
    "get_due_count",
    "get_due_breakdown",
    "interleave_by_topic",
    "TopicRelationIndex",
    # Sessions & storage
    "ReviewRunner",
    "ReviewStore",
    "MemoryStore",
    "SqliteStore",
]
