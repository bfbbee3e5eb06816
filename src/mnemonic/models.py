"""
Domain records for mnemonic.

Plain dataclasses for cards, topics, review sessions and daily statistics,
plus the immutable memory state each card carries. Every record converts
to and from a JSON-friendly dict so storage adapters can persist it as a
document keyed by id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# Enumerations
# =============================================================================


class CardState(Enum):
    """Coarse lifecycle phase of a card."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class CardType(Enum):
    """Kind of study material a card holds."""

    BASIC = "basic"
    CLOZE = "cloze"
    FORMULA = "formula"


class SessionMode(Enum):
    """How a review session selects and caps its queue."""

    MICRO = "micro"  # Short, length-capped session
    STANDARD = "standard"
    TOPIC = "topic"


# =============================================================================
# Memory State
# =============================================================================


@dataclass(frozen=True)
class MemoryState:
    """
    Memory-model state for a single card.

    Only the memory model creates new instances (see
    ``scheduler.empty_memory_state`` and ``scheduler.schedule_review``).

    Attributes:
        state: Lifecycle phase.
        due: When the card is next due.
        stability: Days for recall probability to decay to 90%.
        difficulty: Intrinsic difficulty on a 1-10 scale (0.0 while new).
        last_review: Timestamp of the most recent review.
        review_count: Total reviews recorded.
        lapses: Times the card was forgotten after graduating.
        step: Index into the (re)learning steps, None outside learning.
        scheduled_days: Interval assigned by the last review.
    """

    state: CardState
    due: datetime
    stability: float = 0.0
    difficulty: float = 0.0
    last_review: datetime | None = None
    review_count: int = 0
    lapses: int = 0
    step: int | None = None
    scheduled_days: int = 0

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "due": _iso(self.due),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "last_review": _iso(self.last_review),
            "review_count": self.review_count,
            "lapses": self.lapses,
            "step": self.step,
            "scheduled_days": self.scheduled_days,
        }

    @classmethod
    def from_dict(cls, data: dict) -> MemoryState:
        return cls(
            state=CardState(data["state"]),
            due=_dt(data["due"]),
            stability=data.get("stability", 0.0),
            difficulty=data.get("difficulty", 0.0),
            last_review=_dt(data.get("last_review")),
            review_count=data.get("review_count", 0),
            lapses=data.get("lapses", 0),
            step=data.get("step"),
            scheduled_days=data.get("scheduled_days", 0),
        )


# =============================================================================
# Card
# =============================================================================


@dataclass
class Card:
    """
    A unit of study material.

    Lifecycle state, due date, last review and review count are read
    through the card's memory state so they can never disagree with it.
    """

    id: str
    type: CardType
    front: str
    back: str
    memory: MemoryState
    topic_ids: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    # Cloze/formula source and which blank this card tests
    template: str | None = None
    cloze_index: int | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def state(self) -> CardState:
        return self.memory.state

    @property
    def due(self) -> datetime:
        return self.memory.due

    @property
    def last_review(self) -> datetime | None:
        return self.memory.last_review

    @property
    def review_count(self) -> int:
        return self.memory.review_count

    @property
    def primary_topic_id(self) -> str | None:
        """First topic id, the key used for interleaving."""
        return self.topic_ids[0] if self.topic_ids else None

    def shares_topic(self, topic_ids: set[str]) -> bool:
        """Whether any of this card's topics is in ``topic_ids``."""
        return any(tid in topic_ids for tid in self.topic_ids)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "front": self.front,
            "back": self.back,
            "memory": self.memory.to_dict(),
            "topic_ids": list(self.topic_ids),
            "tags": list(self.tags),
            "template": self.template,
            "cloze_index": self.cloze_index,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Card:
        return cls(
            id=data["id"],
            type=CardType(data["type"]),
            front=data["front"],
            back=data["back"],
            memory=MemoryState.from_dict(data["memory"]),
            topic_ids=list(data.get("topic_ids", [])),
            tags=list(data.get("tags", [])),
            template=data.get("template"),
            cloze_index=data.get("cloze_index"),
            created_at=_dt(data.get("created_at")),
            updated_at=_dt(data.get("updated_at")),
        )


# =============================================================================
# Topic
# =============================================================================


@dataclass
class Topic:
    """A hierarchical label for cards."""

    id: str
    name: str
    parent_id: str | None = None
    order: int = 0
    related_topic_ids: list[str] = field(default_factory=list)
    color: str = "#C75D38"
    icon: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "order": self.order,
            "related_topic_ids": list(self.related_topic_ids),
            "color": self.color,
            "icon": self.icon,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Topic:
        return cls(
            id=data["id"],
            name=data["name"],
            parent_id=data.get("parent_id"),
            order=data.get("order", 0),
            related_topic_ids=list(data.get("related_topic_ids", [])),
            color=data.get("color", "#C75D38"),
            icon=data.get("icon"),
            created_at=_dt(data.get("created_at")),
            updated_at=_dt(data.get("updated_at")),
        )


# =============================================================================
# Sessions & Stats
# =============================================================================


@dataclass
class ReviewSession:
    """One study run over an ordered queue of card ids."""

    id: str
    mode: SessionMode
    card_ids: list[str]
    started_at: datetime
    topic_ids: list[str] = field(default_factory=list)

    # Queue cursor
    current_index: int = 0
    completed_card_ids: list[str] = field(default_factory=list)

    # Running counters
    cards_reviewed: int = 0
    cards_remembered: int = 0
    cards_forgot: int = 0

    completed_at: datetime | None = None
    total_time_ms: int = 0
    is_active: bool = True

    @property
    def remaining_card_ids(self) -> list[str]:
        return self.card_ids[self.current_index:]

    @property
    def is_exhausted(self) -> bool:
        return self.current_index >= len(self.card_ids)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "mode": self.mode.value,
            "card_ids": list(self.card_ids),
            "started_at": _iso(self.started_at),
            "topic_ids": list(self.topic_ids),
            "current_index": self.current_index,
            "completed_card_ids": list(self.completed_card_ids),
            "cards_reviewed": self.cards_reviewed,
            "cards_remembered": self.cards_remembered,
            "cards_forgot": self.cards_forgot,
            "completed_at": _iso(self.completed_at),
            "total_time_ms": self.total_time_ms,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ReviewSession:
        return cls(
            id=data["id"],
            mode=SessionMode(data["mode"]),
            card_ids=list(data["card_ids"]),
            started_at=_dt(data["started_at"]),
            topic_ids=list(data.get("topic_ids", [])),
            current_index=data.get("current_index", 0),
            completed_card_ids=list(data.get("completed_card_ids", [])),
            cards_reviewed=data.get("cards_reviewed", 0),
            cards_remembered=data.get("cards_remembered", 0),
            cards_forgot=data.get("cards_forgot", 0),
            completed_at=_dt(data.get("completed_at")),
            total_time_ms=data.get("total_time_ms", 0),
            is_active=data.get("is_active", True),
        )


@dataclass
class SessionStats:
    """Summary returned when a session ends."""

    cards_reviewed: int
    cards_remembered: int
    cards_forgot: int
    accuracy: float
    average_time_per_card: float
    total_time_ms: int


@dataclass
class DailyStats:
    """Aggregate review activity for one calendar day."""

    date: str  # ISO date, YYYY-MM-DD
    cards_reviewed: int = 0
    cards_remembered: int = 0
    cards_forgot: int = 0
    new_cards_learned: int = 0
    time_spent_ms: int = 0

    @property
    def day(self) -> date:
        return date.fromisoformat(self.date)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "cards_reviewed": self.cards_reviewed,
            "cards_remembered": self.cards_remembered,
            "cards_forgot": self.cards_forgot,
            "new_cards_learned": self.new_cards_learned,
            "time_spent_ms": self.time_spent_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DailyStats:
        return cls(**data)


@dataclass
class Streak:
    """Consecutive-day review streak."""

    current: int = 0
    longest: int = 0
    last_review_date: str | None = None
