"""
Persistence for mnemonic.

Provides:
- ReviewStore: the storage port the queue builder and session runner use
- MemoryStore: dict-backed store for tests and throwaway sessions
- SqliteStore: single-file SQLite document store

Every record is written atomically on its own; no multi-record
transactions are needed by the review flow.

Database location: ~/.mnemonic/mnemonic.db
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from .models import Card, CardState, DailyStats, ReviewSession, Topic, utcnow
from .topics import descendant_ids


def _utc_key(value: datetime) -> str:
    """Sortable UTC ISO string for indexed datetime columns."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


# =============================================================================
# Storage Port
# =============================================================================


class ReviewStore(ABC):
    """Storage contract for cards, topics, sessions and daily stats."""

    # --- Cards ---

    @abstractmethod
    def get_due_cards(self, before: datetime | None = None) -> list[Card]:
        """Cards with ``due <= before`` (default: now), earliest first."""

    @abstractmethod
    def get_new_cards(self) -> list[Card]:
        """Cards never reviewed, in creation order."""

    @abstractmethod
    def get_all_cards(self) -> list[Card]: ...

    @abstractmethod
    def get_card_by_id(self, card_id: str) -> Card | None: ...

    @abstractmethod
    def upsert_card(self, card: Card) -> None: ...

    @abstractmethod
    def delete_card(self, card_id: str) -> None: ...

    # --- Topics ---

    @abstractmethod
    def get_all_topics(self) -> list[Topic]: ...

    @abstractmethod
    def get_topic(self, topic_id: str) -> Topic | None: ...

    @abstractmethod
    def upsert_topic(self, topic: Topic) -> None: ...

    @abstractmethod
    def _remove_topics(self, topic_ids: list[str]) -> None: ...

    def delete_topic(self, topic_id: str) -> list[str]:
        """
        Delete a topic and all of its descendants.

        Cards keep their (now dangling) topic ids.

        Returns:
            Ids of every deleted topic
        """
        doomed = [topic_id, *descendant_ids(topic_id, self.get_all_topics())]
        self._remove_topics(doomed)
        logger.info(f"Deleted topic {topic_id} and {len(doomed) - 1} descendant(s)")
        return doomed

    # --- Sessions ---

    @abstractmethod
    def get_session(self, session_id: str) -> ReviewSession | None: ...

    @abstractmethod
    def get_active_session(self) -> ReviewSession | None:
        """Most recently started session still marked active."""

    @abstractmethod
    def upsert_session(self, session: ReviewSession) -> None: ...

    # --- Daily stats ---

    @abstractmethod
    def get_daily_stats(self, day: str) -> DailyStats | None: ...

    @abstractmethod
    def get_all_daily_stats(self) -> list[DailyStats]:
        """All daily stats, most recent day first."""

    @abstractmethod
    def upsert_daily_stats(self, stats: DailyStats) -> None: ...

    def close(self) -> None:
        """Release any held resources."""


# =============================================================================
# In-Memory Store
# =============================================================================


class MemoryStore(ReviewStore):
    """Dict-backed store; insertion order stands in for creation order."""

    def __init__(self):
        self.cards: dict[str, Card] = {}
        self.topics: dict[str, Topic] = {}
        self.sessions: dict[str, ReviewSession] = {}
        self.daily_stats: dict[str, DailyStats] = {}

    def get_due_cards(self, before: datetime | None = None) -> list[Card]:
        cutoff = before or utcnow()
        due = [c for c in self.cards.values() if c.due <= cutoff]
        return sorted(due, key=lambda c: c.due)

    def get_new_cards(self) -> list[Card]:
        return [c for c in self.cards.values() if c.state is CardState.NEW]

    def get_all_cards(self) -> list[Card]:
        return list(self.cards.values())

    def get_card_by_id(self, card_id: str) -> Card | None:
        return self.cards.get(card_id)

    def upsert_card(self, card: Card) -> None:
        self.cards[card.id] = card

    def delete_card(self, card_id: str) -> None:
        self.cards.pop(card_id, None)

    def get_all_topics(self) -> list[Topic]:
        return list(self.topics.values())

    def get_topic(self, topic_id: str) -> Topic | None:
        return self.topics.get(topic_id)

    def upsert_topic(self, topic: Topic) -> None:
        self.topics[topic.id] = topic

    def _remove_topics(self, topic_ids: list[str]) -> None:
        for topic_id in topic_ids:
            self.topics.pop(topic_id, None)

    def get_session(self, session_id: str) -> ReviewSession | None:
        return self.sessions.get(session_id)

    def get_active_session(self) -> ReviewSession | None:
        active = [s for s in self.sessions.values() if s.is_active]
        return max(active, key=lambda s: s.started_at, default=None)

    def upsert_session(self, session: ReviewSession) -> None:
        self.sessions[session.id] = session

    def get_daily_stats(self, day: str) -> DailyStats | None:
        return self.daily_stats.get(day)

    def get_all_daily_stats(self) -> list[DailyStats]:
        return sorted(self.daily_stats.values(), key=lambda s: s.date, reverse=True)

    def upsert_daily_stats(self, stats: DailyStats) -> None:
        self.daily_stats[stats.date] = stats


# =============================================================================
# SQLite Store
# =============================================================================


class SqliteStore(ReviewStore):
    """
    SQLite-backed document store.

    Each record is stored as a JSON payload keyed by id. Cards also get
    indexed ``due`` and ``state`` columns so both pool queries stay cheap.
    """

    DEFAULT_DB_PATH = Path.home() / ".mnemonic" / "mnemonic.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the store.

        Args:
            db_path: Custom database path (defaults to ~/.mnemonic/mnemonic.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.debug(f"SqliteStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS cards (
                id TEXT PRIMARY KEY,
                state TEXT NOT NULL,
                due TEXT NOT NULL,
                created_at TEXT,
                data TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS topics (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                started_at TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                data TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS daily_stats (
                date TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
        """)

        # Indexes for the due and new pools
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_cards_due ON cards(due)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_cards_state ON cards(state)")

        self.conn.commit()

    # =========================================================================
    # Cards
    # =========================================================================

    @staticmethod
    def _cards(rows: list[sqlite3.Row]) -> list[Card]:
        return [Card.from_dict(json.loads(row["data"])) for row in rows]

    def get_due_cards(self, before: datetime | None = None) -> list[Card]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT data FROM cards WHERE due <= ? ORDER BY due ASC, rowid ASC",
            (_utc_key(before or utcnow()),),
        )
        return self._cards(cursor.fetchall())

    def get_new_cards(self) -> list[Card]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT data FROM cards WHERE state = ? ORDER BY created_at ASC, rowid ASC",
            (CardState.NEW.value,),
        )
        return self._cards(cursor.fetchall())

    def get_all_cards(self) -> list[Card]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM cards ORDER BY rowid ASC")
        return self._cards(cursor.fetchall())

    def get_card_by_id(self, card_id: str) -> Card | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM cards WHERE id = ?", (card_id,))
        row = cursor.fetchone()
        return Card.from_dict(json.loads(row["data"])) if row else None

    def upsert_card(self, card: Card) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO cards (id, state, due, created_at, data)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                state = excluded.state,
                due = excluded.due,
                data = excluded.data
        """,
            (
                card.id,
                card.state.value,
                _utc_key(card.due),
                _utc_key(card.created_at) if card.created_at else None,
                json.dumps(card.to_dict()),
            ),
        )
        self.conn.commit()

    def delete_card(self, card_id: str) -> None:
        self.conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        self.conn.commit()

    # =========================================================================
    # Topics
    # =========================================================================

    def get_all_topics(self) -> list[Topic]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM topics ORDER BY rowid ASC")
        return [Topic.from_dict(json.loads(row["data"])) for row in cursor.fetchall()]

    def get_topic(self, topic_id: str) -> Topic | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM topics WHERE id = ?", (topic_id,))
        row = cursor.fetchone()
        return Topic.from_dict(json.loads(row["data"])) if row else None

    def upsert_topic(self, topic: Topic) -> None:
        self.conn.execute(
            """
            INSERT INTO topics (id, data) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET data = excluded.data
        """,
            (topic.id, json.dumps(topic.to_dict())),
        )
        self.conn.commit()

    def _remove_topics(self, topic_ids: list[str]) -> None:
        self.conn.executemany("DELETE FROM topics WHERE id = ?", [(t,) for t in topic_ids])
        self.conn.commit()

    # =========================================================================
    # Sessions
    # =========================================================================

    def get_session(self, session_id: str) -> ReviewSession | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM sessions WHERE id = ?", (session_id,))
        row = cursor.fetchone()
        return ReviewSession.from_dict(json.loads(row["data"])) if row else None

    def get_active_session(self) -> ReviewSession | None:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT data FROM sessions WHERE is_active = 1 ORDER BY started_at DESC LIMIT 1"
        )
        row = cursor.fetchone()
        return ReviewSession.from_dict(json.loads(row["data"])) if row else None

    def upsert_session(self, session: ReviewSession) -> None:
        self.conn.execute(
            """
            INSERT INTO sessions (id, started_at, is_active, data) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                is_active = excluded.is_active,
                data = excluded.data
        """,
            (
                session.id,
                _utc_key(session.started_at),
                int(session.is_active),
                json.dumps(session.to_dict()),
            ),
        )
        self.conn.commit()

    # =========================================================================
    # Daily Stats
    # =========================================================================

    def get_daily_stats(self, day: str) -> DailyStats | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM daily_stats WHERE date = ?", (day,))
        row = cursor.fetchone()
        return DailyStats.from_dict(json.loads(row["data"])) if row else None

    def get_all_daily_stats(self) -> list[DailyStats]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM daily_stats ORDER BY date DESC")
        return [DailyStats.from_dict(json.loads(row["data"])) for row in cursor.fetchall()]

    def upsert_daily_stats(self, stats: DailyStats) -> None:
        self.conn.execute(
            """
            INSERT INTO daily_stats (date, data) VALUES (?, ?)
            ON CONFLICT(date) DO UPDATE SET data = excluded.data
        """,
            (stats.date, json.dumps(stats.to_dict())),
        )
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
